import json
import math

import httpx
import pytest

from meritdraft.services.embedding_client import GeminiEmbeddingClient, normalize_embedding
from meritdraft.utils.exceptions import EmbeddingFailedError


def _values_response(values):
    return httpx.Response(200, json={"embedding": {"values": values}})


def _client(handler, sleeps=None, **kwargs):
    return GeminiEmbeddingClient(
        api_key="test-key",
        transport=httpx.MockTransport(handler),
        initial_backoff=kwargs.pop("initial_backoff", 0),
        sleep=(sleeps.append if sleeps is not None else (lambda s: None)),
        **kwargs,
    )


def test_normalize_non_zero_vector_has_unit_norm():
    result = normalize_embedding([3.0, 4.0, 0.0])

    assert result == pytest.approx([0.6, 0.8, 0.0])
    assert math.sqrt(sum(v * v for v in result)) == pytest.approx(1.0)


def test_normalize_zero_vector_is_returned_unchanged():
    assert normalize_embedding([0.0] * 768) == [0.0] * 768


def test_embed_sends_query_request_and_normalizes():
    seen = []

    def handler(request):
        seen.append(request)
        return _values_response([2.0] + [0.0] * 767)

    vector = _client(handler).embed("[CRITERION: awards] [FIELD: AI] Best Paper")

    assert len(vector) == 768
    assert vector[0] == pytest.approx(1.0)
    request = seen[0]
    assert request.url.path.endswith("/models/gemini-embedding-001:embedContent")
    assert request.headers["x-goog-api-key"] == "test-key"
    body = json.loads(request.content)
    assert body["taskType"] == "RETRIEVAL_QUERY"
    assert body["outputDimensionality"] == 768
    assert body["content"]["parts"][0]["text"].startswith("[CRITERION: awards]")


def test_three_transient_failures_exhaust_retries_with_doubling_backoff():
    calls = []
    sleeps = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500)

    client = _client(handler, sleeps=sleeps, initial_backoff=1.0)

    with pytest.raises(EmbeddingFailedError):
        client.embed("query")
    assert len(calls) == 3
    assert sleeps == [1.0, 2.0]


@pytest.mark.parametrize("status_code", [400, 401])
def test_client_errors_short_circuit_after_one_attempt(status_code):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(status_code)

    with pytest.raises(EmbeddingFailedError) as exc_info:
        _client(handler).embed("query")
    assert len(calls) == 1
    assert exc_info.value.status_code == status_code


def test_transport_error_is_retried_until_success():
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) < 3:
            raise httpx.ConnectError("connection refused", request=request)
        return _values_response([0.0, 5.0] + [0.0] * 766)

    vector = _client(handler).embed("query")

    assert len(calls) == 3
    assert vector[1] == pytest.approx(1.0)


def test_wrong_dimension_is_terminal():
    calls = []

    def handler(request):
        calls.append(request)
        return _values_response([1.0, 0.0])

    with pytest.raises(EmbeddingFailedError):
        _client(handler).embed("query")
    assert len(calls) == 1


def test_missing_api_key_fails_at_construction():
    with pytest.raises(ValueError):
        GeminiEmbeddingClient(api_key="  ")


@pytest.mark.parametrize(
    "values",
    [None, "not-a-list", {"0": 1.0}, [None] * 768, ["x"] * 768, [[1.0, 0.0]] * 768],
)
def test_malformed_values_are_retried_as_embedding_failures(values):
    calls = []

    def handler(request):
        calls.append(request)
        return _values_response(values)

    with pytest.raises(EmbeddingFailedError):
        _client(handler).embed("query")
    assert len(calls) == 3
