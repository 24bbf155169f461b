"""OpenAI text-to-speech adapter returning audio data URIs."""

from __future__ import annotations

import base64
import logging
from typing import Optional

import openai

from ..config import Settings

logger = logging.getLogger(__name__)

# Provider limit on input characters per speech request.
TTS_TEXT_LENGTH_MAX = 4096

VOICE_MAPPING: dict[str, str] = {
    "male": "echo",
    "female": "nova",
}

_MIME_TYPES = {
    "mp3": "audio/mpeg",
    "opus": "audio/opus",
    "aac": "audio/aac",
    "flac": "audio/flac",
    "wav": "audio/wav",
    "pcm": "audio/pcm",
}


class SpeechError(Exception):
    """Raised when the speech provider fails to synthesize a paragraph."""


class ParagraphTooLongError(SpeechError):
    def __init__(self, length: int):
        super().__init__(
            f"Paragraph of {length} characters exceeds the maximum of "
            f"{TTS_TEXT_LENGTH_MAX}"
        )
        self.length = length


def resolve_voice(preferred: Optional[str], default: str) -> str:
    """Map a stored voice preference to a provider voice id.

    Accepts either a gender label (``male``/``female``) or a voice id.
    """

    if not preferred or not preferred.strip():
        return default
    value = preferred.strip().lower()
    return VOICE_MAPPING.get(value, value)


def to_data_uri(audio: bytes, response_format: str = "mp3") -> str:
    mime = _MIME_TYPES.get(response_format, "application/octet-stream")
    encoded = base64.b64encode(audio).decode("ascii")
    return f"data:{mime};base64,{encoded}"


class SpeechSynthesizer:
    """Synthesize paragraphs with the OpenAI speech endpoint."""

    def __init__(
        self,
        settings: Settings,
        client: Optional[openai.AsyncOpenAI] = None,
    ):
        self._settings = settings
        self._client = client or openai.AsyncOpenAI(
            api_key=settings.openai_api_key.get_secret_value(),
            base_url=str(settings.openai_base_url).rstrip("/"),
            timeout=settings.request_timeout,
        )

    @property
    def client(self) -> openai.AsyncOpenAI:
        return self._client

    async def synthesize(self, text: str, voice: str) -> str:
        if len(text) > TTS_TEXT_LENGTH_MAX:
            raise ParagraphTooLongError(len(text))

        preview = text if len(text) <= 50 else text[:50] + "..."
        logger.info("Synthesizing audio with voice %s: %r", voice, preview)

        try:
            response = await self._client.audio.speech.create(
                model=self._settings.tts_model,
                voice=voice,
                input=text,
                response_format=self._settings.tts_response_format,
                speed=self._settings.tts_speed,
            )
        except openai.APIError as exc:
            logger.error("OpenAI TTS API error: %s", exc)
            raise SpeechError(f"OpenAI TTS: {exc}") from exc

        return to_data_uri(response.content, self._settings.tts_response_format)

    async def aclose(self) -> None:
        await self._client.close()


__all__ = [
    "ParagraphTooLongError",
    "SpeechError",
    "SpeechSynthesizer",
    "TTS_TEXT_LENGTH_MAX",
    "VOICE_MAPPING",
    "resolve_voice",
    "to_data_uri",
]
