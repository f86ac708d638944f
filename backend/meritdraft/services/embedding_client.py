"""
Gemini text-embedding client used to build retrieval queries against the
legal knowledge base.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Sequence

import httpx
import numpy as np

from meritdraft.core.config import settings
from meritdraft.utils.exceptions import EmbeddingFailedError

logger = logging.getLogger(__name__)

RETRIEVAL_QUERY = "RETRIEVAL_QUERY"

# Client errors that no amount of retrying will fix.
_TERMINAL_STATUS_CODES = {400, 401}


def normalize_embedding(values: Sequence[float]) -> list[float]:
    """Scale ``values`` to unit L2 norm. A zero vector is returned unchanged."""
    vector = np.asarray(values, dtype=np.float64)
    if vector.ndim != 1:
        raise ValueError(f"expected a flat vector, got shape {vector.shape}")
    norm = float(np.linalg.norm(vector))
    if norm == 0.0:
        return vector.tolist()
    return (vector / norm).tolist()


class GeminiEmbeddingClient:
    """
    Calls ``models/<model>:embedContent`` and returns a unit-length vector.

    Transport errors, undecodable bodies and non-200 responses other than
    400/401 are retried up to ``max_attempts`` times with doubling backoff.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        base_url: str = settings.GEMINI_API_BASE_URL,
        model: str = settings.GEMINI_EMBEDDING_MODEL,
        dimensions: int = settings.EMBEDDING_DIMENSIONS,
        timeout: float = settings.EMBEDDING_TIMEOUT_SECONDS,
        max_attempts: int = settings.EXTERNAL_MAX_ATTEMPTS,
        initial_backoff: float = settings.EXTERNAL_INITIAL_BACKOFF_SECONDS,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        key = (api_key if api_key is not None else settings.GEMINI_API_KEY).strip()
        if not key:
            raise ValueError("GEMINI_API_KEY not set")
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self.model = model
        self.dimensions = dimensions
        self.max_attempts = max_attempts
        self.initial_backoff = initial_backoff
        self._sleep = sleep
        self._client = httpx.Client(
            base_url=base_url.rstrip("/") + "/",
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json", "x-goog-api-key": key},
        )
        logger.info("GeminiEmbeddingClient initialised with model=%s", self.model)

    def close(self) -> None:
        self._client.close()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def embed(self, text: str, task_type: str = RETRIEVAL_QUERY) -> list[float]:
        """Embed ``text`` and return the normalized vector."""
        payload = {
            "model": f"models/{self.model}",
            "content": {"parts": [{"text": text}]},
            "taskType": task_type,
            "outputDimensionality": self.dimensions,
        }

        backoff = self.initial_backoff
        last_error: Optional[EmbeddingFailedError] = None
        for attempt in range(1, self.max_attempts + 1):
            if attempt > 1:
                self._sleep(backoff)
                backoff *= 2
            try:
                return self._embed_once(payload)
            except EmbeddingFailedError as exc:
                if not exc.retryable:
                    raise
                last_error = exc
                logger.warning(
                    "Embedding attempt %s/%s failed: %s",
                    attempt,
                    self.max_attempts,
                    exc,
                )

        raise EmbeddingFailedError(
            f"embedding failed after {self.max_attempts} attempts: {last_error}",
            retryable=False,
            status_code=last_error.status_code if last_error else None,
        )

    # ------------------------------------------------------------------
    # Single round trip
    # ------------------------------------------------------------------

    def _embed_once(self, payload: dict) -> list[float]:
        try:
            response = self._client.post(f"models/{self.model}:embedContent", json=payload)
        except httpx.HTTPError as exc:
            raise EmbeddingFailedError(f"failed to send request: {exc}", retryable=True) from exc

        if response.status_code != 200:
            raise EmbeddingFailedError(
                f"API error: {response.status_code}",
                retryable=response.status_code not in _TERMINAL_STATUS_CODES,
                status_code=response.status_code,
            )

        try:
            values = response.json()["embedding"]["values"]
        except (ValueError, KeyError, TypeError) as exc:
            raise EmbeddingFailedError(f"failed to decode response: {exc}", retryable=True) from exc

        if not isinstance(values, list):
            raise EmbeddingFailedError(
                f"failed to decode response: values is {type(values).__name__}, expected list",
                retryable=True,
            )
        if len(values) != self.dimensions:
            raise EmbeddingFailedError(
                f"expected {self.dimensions} dimensions, got {len(values)}",
                retryable=False,
            )
        try:
            return normalize_embedding(values)
        except (TypeError, ValueError) as exc:
            raise EmbeddingFailedError(f"failed to decode response: {exc}", retryable=True) from exc
