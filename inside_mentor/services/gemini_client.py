from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List

import aiohttp

from .completion import CompletionError, CompletionErrorKind


def classify_http_error(status: int, body: str) -> CompletionErrorKind:
    text = (body or "").lower()
    if status == 429:
        if "quota" in text or "resource_exhausted" in text or "resource exhausted" in text:
            return CompletionErrorKind.QUOTA_EXCEEDED
        return CompletionErrorKind.RATE_LIMITED
    if status == 503:
        if "overloaded" in text:
            return CompletionErrorKind.OVERLOADED
        return CompletionErrorKind.UNAVAILABLE
    if status in {408, 500, 502, 504}:
        return CompletionErrorKind.UNAVAILABLE
    if status in {401, 403}:
        return CompletionErrorKind.UNAUTHORIZED
    if 400 <= status < 500:
        return CompletionErrorKind.INVALID_REQUEST
    return CompletionErrorKind.UNKNOWN


class GeminiClient:
    """Single-shot prompt-in/text-out client for the Gemini REST API.

    Retries and pacing are not handled here; callers wrap ``generate`` in a
    resilience policy.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        timeout_seconds: int,
        temperature: float,
        max_output_tokens: int,
        base_url: str = "https://generativelanguage.googleapis.com",
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.temperature = temperature
        self.max_output_tokens: int | None = int(max_output_tokens) if int(max_output_tokens) > 0 else None
        self._session: aiohttp.ClientSession | None = None

    async def start(self) -> None:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()

    def _endpoint(self) -> str:
        return f"{self.base_url}/v1beta/models/{self.model}:generateContent?key={self.api_key}"

    def _build_payload(self, prompt: str) -> Dict[str, Any]:
        generation_config: Dict[str, Any] = {"temperature": self.temperature}
        if self.max_output_tokens is not None:
            generation_config["maxOutputTokens"] = self.max_output_tokens
        return {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": generation_config,
        }

    async def _request(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        if self._session is None or self._session.closed:
            await self.start()
        assert self._session is not None

        try:
            async with self._session.post(self._endpoint(), json=payload) as response:
                text = await response.text()
                if response.status != 200:
                    kind = classify_http_error(response.status, text)
                    raise CompletionError(kind, f"Gemini error {response.status}: {text[:500]}")
        except asyncio.CancelledError:
            raise
        except CompletionError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
            raise CompletionError(CompletionErrorKind.UNAVAILABLE, f"Gemini transport error: {exc}") from exc

        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise CompletionError(CompletionErrorKind.UNKNOWN, "Gemini returned non-JSON body") from exc
        if not isinstance(data, dict):
            raise CompletionError(CompletionErrorKind.UNKNOWN, "Gemini returned non-object JSON body")
        return data

    @staticmethod
    def _extract_text(data: Dict[str, Any]) -> str:
        candidates = data.get("candidates") or []
        if not candidates:
            prompt_feedback = data.get("promptFeedback") or {}
            block_reason = prompt_feedback.get("blockReason")
            if block_reason:
                raise CompletionError(CompletionErrorKind.BLOCKED, f"Gemini blocked response: {block_reason}")
            raise CompletionError(CompletionErrorKind.EMPTY, "Gemini returned no candidates")

        first = candidates[0]
        content = first.get("content") or {}
        parts = content.get("parts") or []
        chunks: List[str] = []

        for part in parts:
            text = part.get("text")
            if isinstance(text, str) and text.strip():
                chunks.append(text.strip())

        joined = "\n".join(chunks).strip()
        if joined:
            return joined

        finish_reason = first.get("finishReason")
        if finish_reason:
            raise CompletionError(CompletionErrorKind.EMPTY, f"Gemini empty response (finishReason={finish_reason})")
        raise CompletionError(CompletionErrorKind.EMPTY, "Gemini empty response")

    async def generate(self, prompt: str) -> str:
        data = await self._request(self._build_payload(prompt))
        return self._extract_text(data)
