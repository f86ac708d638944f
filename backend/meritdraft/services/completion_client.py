"""
Gemini text-generation client.

Prompts longer than ``max_prompt_chars`` are cut and marked before they are
sent. Safety blocks, error payloads and malformed candidates are terminal;
network errors, 5xx/429 and empty 200 responses are retried.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Callable, Optional

import httpx

from meritdraft.core.config import settings
from meritdraft.utils.exceptions import ContentBlockedError, GenerationFailedError

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "\n\n[Content truncated due to length...]"

_RETRYABLE_STATUS_CODES = {408, 429}


def truncate_prompt(prompt: str, max_chars: int) -> str:
    """Cut ``prompt`` to ``max_chars`` and append the truncation marker."""
    if len(prompt) <= max_chars:
        return prompt
    logger.warning("Prompt too long (%d chars), truncating to %d chars", len(prompt), max_chars)
    return prompt[:max_chars] + TRUNCATION_MARKER


class GeminiCompletionClient:
    """Calls ``models/<model>:generateContent`` and returns the joined text parts."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        base_url: str = settings.GEMINI_API_BASE_URL,
        model: str = settings.GEMINI_GENERATION_MODEL,
        timeout: float = settings.GENERATION_TIMEOUT_SECONDS,
        max_prompt_chars: int = settings.PROMPT_MAX_CHARS,
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
        self.max_prompt_chars = max_prompt_chars
        self.max_attempts = max_attempts
        self.initial_backoff = initial_backoff
        self._sleep = sleep
        self._client = httpx.Client(
            base_url=base_url.rstrip("/") + "/",
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json", "x-goog-api-key": key},
        )
        logger.info("GeminiCompletionClient initialised with model=%s", self.model)

    def close(self) -> None:
        self._client.close()

    def complete(self, prompt: str, temperature: float) -> str:
        """
        Return generated text for ``prompt``.

        Raises ContentBlockedError on a safety block and GenerationFailedError
        for every other failure, after retries where they apply.
        """
        payload = {
            "contents": [{"parts": [{"text": truncate_prompt(prompt, self.max_prompt_chars)}]}],
            "generationConfig": {"temperature": temperature},
        }

        backoff = self.initial_backoff
        last_error: Optional[GenerationFailedError] = None
        for attempt in range(1, self.max_attempts + 1):
            if attempt > 1:
                self._sleep(backoff)
                backoff *= 2
            try:
                return self._complete_once(payload)
            except GenerationFailedError as exc:
                if not exc.retryable:
                    raise
                last_error = exc
                logger.warning(
                    "Generation attempt %s/%s failed: %s",
                    attempt,
                    self.max_attempts,
                    exc,
                )

        raise GenerationFailedError(
            f"failed to generate content after {self.max_attempts} attempts: {last_error}",
            retryable=False,
            status_code=last_error.status_code if last_error else None,
        )

    def _complete_once(self, payload: dict) -> str:
        try:
            response = self._client.post(f"models/{self.model}:generateContent", json=payload)
        except httpx.HTTPError as exc:
            raise GenerationFailedError(f"failed to send request: {exc}", retryable=True) from exc

        if response.status_code != 200:
            logger.error("Gemini API error: status %d, body: %s", response.status_code, response.text[:1000])
            raise GenerationFailedError(
                f"API error: {response.status_code} - {response.text[:500]}",
                retryable=response.status_code >= 500 or response.status_code in _RETRYABLE_STATUS_CODES,
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except json.JSONDecodeError as exc:
            raise GenerationFailedError(f"failed to decode response: {exc}", retryable=True) from exc

        if not isinstance(body, dict):
            raise GenerationFailedError(f"unexpected response payload: {type(body).__name__}")
        try:
            return self._extract_text(body)
        except (AttributeError, TypeError) as exc:
            raise GenerationFailedError(f"malformed response payload: {exc}") from exc

    def _extract_text(self, body: dict) -> str:
        error = body.get("error") or {}
        if error.get("message"):
            raise GenerationFailedError(
                f"API error: {error['message']} (code: {error.get('code', 0)})",
                status_code=error.get("code"),
            )

        block_reason = (body.get("promptFeedback") or {}).get("blockReason")
        if block_reason:
            raise ContentBlockedError(block_reason)

        candidates = body.get("candidates") or []
        if not candidates:
            raise GenerationFailedError("API returned no candidates")

        parts_text: list[str] = []
        for i, candidate in enumerate(candidates):
            finish_reason = candidate.get("finishReason") or ""
            if finish_reason and finish_reason != "STOP":
                logger.warning("Candidate %d finished with reason: %s", i, finish_reason)

            parts = (candidate.get("content") or {}).get("parts") or []
            if not parts:
                raise GenerationFailedError(
                    f"API candidate has no parts (finish reason: {finish_reason})"
                )
            for part in parts:
                text = part.get("text") or ""
                if text:
                    parts_text.append(text)

        result = "".join(parts_text)
        if not result.strip():
            raise GenerationFailedError("API returned empty content", retryable=True)
        return result
