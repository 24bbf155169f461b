"""Tests for the text-to-speech adapter."""

from __future__ import annotations

import base64
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from storytime.services.speech import (
    TTS_TEXT_LENGTH_MAX,
    ParagraphTooLongError,
    SpeechError,
    SpeechSynthesizer,
    resolve_voice,
    to_data_uri,
)


def _client(**create_kwargs) -> MagicMock:
    client = MagicMock()
    client.audio.speech.create = AsyncMock(**create_kwargs)
    client.close = AsyncMock()
    return client


@pytest.mark.asyncio
async def test_synthesize_returns_data_uri(settings):
    client = _client(return_value=SimpleNamespace(content=b"ID3audio"))
    synthesizer = SpeechSynthesizer(settings, client=client)

    uri = await synthesizer.synthesize("Once upon a time.", "nova")

    assert uri == "data:audio/mpeg;base64," + base64.b64encode(b"ID3audio").decode()
    client.audio.speech.create.assert_awaited_once_with(
        model="tts-1",
        voice="nova",
        input="Once upon a time.",
        response_format="mp3",
        speed=0.88,
    )


@pytest.mark.asyncio
async def test_synthesize_rejects_text_over_limit(settings):
    client = _client(return_value=SimpleNamespace(content=b""))
    synthesizer = SpeechSynthesizer(settings, client=client)

    with pytest.raises(ParagraphTooLongError) as excinfo:
        await synthesizer.synthesize("a" * (TTS_TEXT_LENGTH_MAX + 1), "nova")

    assert excinfo.value.length == TTS_TEXT_LENGTH_MAX + 1
    client.audio.speech.create.assert_not_awaited()


@pytest.mark.asyncio
async def test_provider_error_is_wrapped(settings):
    request = httpx.Request("POST", "https://example.com/v1/audio/speech")
    client = _client(side_effect=openai.APIConnectionError(request=request))
    synthesizer = SpeechSynthesizer(settings, client=client)

    with pytest.raises(SpeechError, match="^OpenAI TTS: "):
        await synthesizer.synthesize("Hello", "echo")


@pytest.mark.asyncio
async def test_aclose_closes_client(settings):
    client = _client()
    await SpeechSynthesizer(settings, client=client).aclose()
    client.close.assert_awaited_once()


@pytest.mark.parametrize(
    "preferred, expected",
    [
        ("female", "nova"),
        ("Male", "echo"),
        ("alloy", "alloy"),
        ("", "nova"),
        (None, "nova"),
    ],
)
def test_resolve_voice(preferred, expected):
    assert resolve_voice(preferred, "nova") == expected


def test_to_data_uri_uses_format_mime_type():
    assert to_data_uri(b"x", "opus").startswith("data:audio/opus;base64,")
    assert to_data_uri(b"x", "unknown").startswith("data:application/octet-stream;")
