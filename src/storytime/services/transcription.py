"""Audio transcription through the OpenAI Whisper endpoint."""

from __future__ import annotations

import logging
from typing import Optional

import openai
from fastapi import status

from ..config import Settings

logger = logging.getLogger(__name__)


class TranscriptionError(Exception):
    def __init__(self, status_code: int, detail: str):
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail


class Transcriber:
    """Send uploaded audio to the transcription model."""

    def __init__(self, settings: Settings, client: Optional[openai.AsyncOpenAI] = None):
        self._settings = settings
        self._client = client or openai.AsyncOpenAI(
            api_key=settings.openai_api_key.get_secret_value(),
            base_url=str(settings.openai_base_url).rstrip("/"),
            timeout=settings.request_timeout,
        )

    async def transcribe(
        self, filename: str, data: bytes, content_type: Optional[str] = None
    ) -> str:
        logger.info(
            "Transcribing %s (%s, %d bytes)", filename, content_type, len(data)
        )
        try:
            result = await self._client.audio.transcriptions.create(
                file=(filename, data, content_type or "application/octet-stream"),
                model=self._settings.transcription_model,
            )
        except openai.APIStatusError as exc:
            logger.error("OpenAI transcription error: %s", exc)
            raise TranscriptionError(
                exc.status_code, f"OpenAI: {exc.status_code} - {exc.message}"
            ) from exc
        except openai.APIError as exc:
            logger.error("OpenAI transcription error: %s", exc)
            raise TranscriptionError(
                status.HTTP_502_BAD_GATEWAY, f"OpenAI: {exc.message}"
            ) from exc

        logger.info("Received transcription (%d chars)", len(result.text))
        return result.text


__all__ = ["TranscriptionError", "Transcriber"]
