import json

import httpx
import pytest

from meritdraft.services.completion_client import TRUNCATION_MARKER, GeminiCompletionClient
from meritdraft.utils.exceptions import ContentBlockedError, GenerationFailedError

from conftest import gemini_text_response, prompt_of


def _client(handler, **kwargs):
    return GeminiCompletionClient(
        api_key="test-key",
        transport=httpx.MockTransport(handler),
        initial_backoff=0,
        sleep=lambda s: None,
        **kwargs,
    )


class Recorder:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]


def test_complete_joins_text_parts_and_sends_temperature():
    recorder = Recorder(
        httpx.Response(
            200,
            json={"candidates": [{"content": {"parts": [{"text": "Part one. "}, {"text": ""}, {"text": "Part two."}]}}]},
        )
    )

    text = _client(recorder).complete("Write the section now:", 0.2)

    assert text == "Part one. Part two."
    body = json.loads(recorder.requests[0].content)
    assert body["generationConfig"] == {"temperature": 0.2}
    assert recorder.requests[0].url.path.endswith(":generateContent")


def test_long_prompt_is_truncated_with_marker():
    recorder = Recorder(gemini_text_response("ok"))

    _client(recorder, max_prompt_chars=30000).complete("x" * 30010, 0.2)

    sent = prompt_of(recorder.requests[0])
    assert sent == "x" * 30000 + TRUNCATION_MARKER


def test_short_prompt_is_sent_untouched():
    recorder = Recorder(gemini_text_response("ok"))

    _client(recorder).complete("short prompt", 0.3)

    assert prompt_of(recorder.requests[0]) == "short prompt"


def test_safety_block_is_terminal():
    recorder = Recorder(httpx.Response(200, json={"promptFeedback": {"blockReason": "SAFETY"}}))

    with pytest.raises(ContentBlockedError) as exc_info:
        _client(recorder).complete("prompt", 0.2)
    assert exc_info.value.block_reason == "SAFETY"
    assert len(recorder.requests) == 1


@pytest.mark.parametrize(
    "payload",
    [
        {"error": {"code": 400, "message": "invalid argument"}},
        {"candidates": []},
        {"candidates": [{"content": {}, "finishReason": "SAFETY"}]},
    ],
)
def test_malformed_responses_are_terminal(payload):
    recorder = Recorder(httpx.Response(200, json=payload))

    with pytest.raises(GenerationFailedError):
        _client(recorder).complete("prompt", 0.2)
    assert len(recorder.requests) == 1


def test_empty_text_is_retried_then_fails():
    recorder = Recorder(httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": ""}]}}]}))

    with pytest.raises(GenerationFailedError):
        _client(recorder).complete("prompt", 0.2)
    assert len(recorder.requests) == 3


def test_server_error_then_success():
    recorder = Recorder(httpx.Response(503), gemini_text_response("Recovered."))

    assert _client(recorder).complete("prompt", 0.2) == "Recovered."
    assert len(recorder.requests) == 2


def test_bad_request_is_not_retried():
    recorder = Recorder(httpx.Response(400, text="bad"))

    with pytest.raises(GenerationFailedError) as exc_info:
        _client(recorder).complete("prompt", 0.2)
    assert exc_info.value.status_code == 400
    assert len(recorder.requests) == 1


@pytest.mark.parametrize("payload", [[], "text", {"candidates": ["not-an-object"]}])
def test_non_object_payloads_are_generation_failures(payload):
    recorder = Recorder(httpx.Response(200, json=payload))

    with pytest.raises(GenerationFailedError):
        _client(recorder).complete("prompt", 0.2)
    assert len(recorder.requests) == 1
