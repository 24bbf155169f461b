"""Lightweight LLM title generation for dialog histories."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

from ..chat.prompts import GenerationParams
from ..completion import CompletionClient, CompletionError

logger = logging.getLogger(__name__)

TITLE_SYSTEM_PROMPT = (
    "You are a creative AI assistant tasked with generating a concise and engaging "
    "title for the following conversation. The title should capture the essence of "
    "the dialog without being too long. Respond only with the title, without any "
    "additional explanation or quotation marks."
)
TITLE_USER_PROMPT = "Based on this conversation, please generate a short, engaging title."


async def generate_title(
    client: CompletionClient,
    dialog_history: Sequence[Mapping[str, Any]],
    params: GenerationParams,
) -> str | None:
    """Ask the completion provider for a conversation title.

    Returns the title string, or None on failure.
    """
    if not dialog_history:
        return None

    messages = [
        {"role": "system", "content": TITLE_SYSTEM_PROMPT},
        *(dict(message) for message in dialog_history),
        {"role": "user", "content": TITLE_USER_PROMPT},
    ]
    try:
        reply = await client.complete(messages, params)
    except CompletionError:
        logger.exception("Failed to generate title")
        return None

    title = reply["content"].strip().strip('"').strip()
    if not title:
        return None
    return title


__all__ = ["TITLE_SYSTEM_PROMPT", "TITLE_USER_PROMPT", "generate_title"]
