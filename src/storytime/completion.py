"""Chat completion client for the OpenAI-compatible provider."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Mapping, Optional, Sequence

import httpx
from fastapi import status

from .chat.prompts import GenerationParams
from .config import Settings

logger = logging.getLogger(__name__)


class CompletionError(Exception):
    """Wrap transport or API failures when requesting a completion."""

    def __init__(self, status_code: int, detail: Any):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"OpenAI: {status_code} - {self.detail_text}")

    @property
    def detail_text(self) -> str:
        if isinstance(self.detail, str):
            return self.detail
        if isinstance(self.detail, Mapping) and isinstance(
            self.detail.get("message"), str
        ):
            return self.detail["message"]
        return json.dumps(self.detail, default=repr)


class CompletionClient:
    """Client responsible for single-shot chat completions."""

    _client_lock: asyncio.Lock = asyncio.Lock()
    _client_pool: dict[tuple[str, float], httpx.AsyncClient] = {}

    def __init__(
        self,
        settings: Settings,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._settings = settings
        self._http_client = http_client

    def _client_key(self) -> tuple[str, float]:
        return (self._base_url, float(self._settings.request_timeout))

    async def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is not None:
            return self._http_client

        key = self._client_key()
        client = self.__class__._client_pool.get(key)
        if client is not None:
            return client

        async with self.__class__._client_lock:
            client = self.__class__._client_pool.get(key)
            if client is None:
                timeout = httpx.Timeout(self._settings.request_timeout, connect=10.0)
                limits = httpx.Limits(
                    max_connections=50,
                    max_keepalive_connections=20,
                )
                client = httpx.AsyncClient(timeout=timeout, limits=limits)
                self.__class__._client_pool[key] = client
        return client

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._settings.openai_api_key.get_secret_value()}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    @property
    def _base_url(self) -> str:
        return str(self._settings.openai_base_url).rstrip("/")

    async def complete(
        self,
        messages: Sequence[Mapping[str, Any]],
        params: GenerationParams,
        *,
        model: Optional[str] = None,
    ) -> dict[str, Any]:
        """Request one assistant message for ``messages``."""

        payload: dict[str, Any] = {
            "model": model or self._settings.chat_model,
            "messages": list(messages),
            **params.as_payload(),
        }
        logger.info(
            "Requesting completion (model=%s, messages=%d, temperature=%s)",
            payload["model"],
            len(payload["messages"]),
            params.temperature,
        )

        client = await self._get_http_client()
        try:
            response = await client.post(
                f"{self._base_url}/chat/completions",
                headers=self._headers,
                json=payload,
            )
        except httpx.HTTPError as exc:
            raise CompletionError(status.HTTP_502_BAD_GATEWAY, str(exc)) from exc

        if response.status_code >= 400:
            detail = self._extract_error_detail(response.content)
            raise CompletionError(response.status_code, detail)

        try:
            body = response.json()
        except ValueError as exc:
            raise CompletionError(status.HTTP_502_BAD_GATEWAY, str(exc)) from exc

        return self._extract_message(body)

    @staticmethod
    def _extract_message(payload: Any) -> dict[str, Any]:
        if not isinstance(payload, Mapping):
            raise CompletionError(
                status.HTTP_502_BAD_GATEWAY, "Completion response is not an object"
            )
        choices = payload.get("choices")
        if not isinstance(choices, Sequence) or not choices:
            raise CompletionError(
                status.HTTP_502_BAD_GATEWAY, "Completion response missing choices"
            )
        container = choices[0]
        message = container.get("message") if isinstance(container, Mapping) else None
        if not isinstance(message, Mapping):
            raise CompletionError(
                status.HTTP_502_BAD_GATEWAY, "Completion response missing message"
            )
        content = message.get("content")
        if not isinstance(content, str):
            refusal = message.get("refusal")
            detail = (
                f"Model refused: {refusal}"
                if isinstance(refusal, str) and refusal
                else "Completion response missing content"
            )
            raise CompletionError(status.HTTP_502_BAD_GATEWAY, detail)
        return {"role": "assistant", "content": content}

    async def aclose(self) -> None:
        await self.__class__.aclose_shared()

    @classmethod
    async def aclose_shared(cls) -> None:
        async with cls._client_lock:
            clients = list(cls._client_pool.values())
            cls._client_pool.clear()
        for client in clients:
            try:
                await client.aclose()
            except Exception:  # pragma: no cover - best effort cleanup
                logger.debug("Failed to close pooled HTTP client", exc_info=True)

    @staticmethod
    def _extract_error_detail(raw: bytes) -> Any:
        if not raw:
            return "Provider returned an empty error response."
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError:
            text = raw.decode("utf-8", errors="ignore")
        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            return text
        if isinstance(payload, dict):
            return payload.get("error") or payload
        return payload


__all__ = ["CompletionClient", "CompletionError"]
