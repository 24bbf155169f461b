"""Tests for the title generation service."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from storytime.chat.prompts import GenerationParams
from storytime.completion import CompletionError
from storytime.services.title_service import (
    TITLE_SYSTEM_PROMPT,
    TITLE_USER_PROMPT,
    generate_title,
)

PARAMS = GenerationParams(temperature=0.7, max_tokens=50)


def _make_client(content: str | None = None, error: Exception | None = None):
    client = MagicMock()
    if error is not None:
        client.complete = AsyncMock(side_effect=error)
    else:
        client.complete = AsyncMock(
            return_value={"role": "assistant", "content": content}
        )
    return client


@pytest.mark.asyncio
async def test_generate_title_happy_path():
    client = _make_client("The Brave Little Dragon")
    history = [{"role": "user", "content": "Tell me a story about a dragon"}]

    result = await generate_title(client, history, PARAMS)

    assert result == "The Brave Little Dragon"
    messages, params = client.complete.await_args.args
    assert messages == [
        {"role": "system", "content": TITLE_SYSTEM_PROMPT},
        {"role": "user", "content": "Tell me a story about a dragon"},
        {"role": "user", "content": TITLE_USER_PROMPT},
    ]
    assert params is PARAMS


@pytest.mark.asyncio
async def test_generate_title_empty_messages():
    client = _make_client("unused")
    result = await generate_title(client, [], PARAMS)
    assert result is None
    client.complete.assert_not_awaited()


@pytest.mark.asyncio
async def test_generate_title_api_error():
    client = _make_client(error=CompletionError(500, "Internal Server Error"))
    messages = [{"role": "user", "content": "Hello"}]

    result = await generate_title(client, messages, PARAMS)

    assert result is None


@pytest.mark.asyncio
async def test_generate_title_strips_quotes():
    client = _make_client('"Moonlit Picnic"\n')
    result = await generate_title(
        client, [{"role": "user", "content": "picnic"}], PARAMS
    )
    assert result == "Moonlit Picnic"


@pytest.mark.asyncio
async def test_generate_title_rejects_blank_title():
    history = [{"role": "user", "content": "Hello"}]
    assert await generate_title(_make_client('  ""  '), history, PARAMS) is None


@pytest.mark.asyncio
async def test_generate_title_keeps_long_titles():
    long_title = "The " + "Very " * 40 + "Long Dragon Adventure"

    result = await generate_title(
        _make_client(long_title), [{"role": "user", "content": "Hello"}], PARAMS
    )

    assert result == long_title
