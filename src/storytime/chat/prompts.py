"""System prompt composition and generation presets."""

from __future__ import annotations

import datetime as _dt
import logging
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional, Sequence

from .themes import ThemeTag

logger = logging.getLogger(__name__)


class QueryType(str, Enum):
    STORY = "story"
    QNA = "qna"


class VisualTask(str, Enum):
    MICRO = "Micro"
    PLANTS = "Plants"
    ANIMALS = "Animals"
    INSECTS = "Insects"
    DAILY = "Daily"
    TRANSLATION = "Translation"


@dataclass(frozen=True)
class GenerationParams:
    temperature: float
    max_tokens: int

    def as_payload(self) -> dict[str, Any]:
        return {"temperature": self.temperature, "max_tokens": self.max_tokens}


GENERATION_PRESETS: Mapping[QueryType, GenerationParams] = MappingProxyType(
    {
        QueryType.STORY: GenerationParams(temperature=1.01, max_tokens=16_384),
        QueryType.QNA: GenerationParams(temperature=0.44, max_tokens=16_384),
    }
)

# Hours in [NIGHT_START_HOUR, 24) and [0, NIGHT_END_HOUR) count as bedtime.
NIGHT_START_HOUR = 19
NIGHT_END_HOUR = 6

_STORY_OPENING = (
    "When crafting your story:\n"
    '- Start in a unique, original way, avoiding common openings like "Once upon a time"\n'
    "- Make the opening immediately engaging and relevant to the story's theme"
)
_NIGHT_ENDING = (
    "As it's evening/night time, conclude with a calming, sleep-appropriate ending."
)
_DAY_ENDING = "Conclude with an energetic, day-appropriate ending."


def parse_local_time(value: str) -> _dt.datetime:
    """Parse an ISO 8601 timestamp, accepting a trailing ``Z``.

    Raises ``ValueError`` when the value is not a valid timestamp.
    """

    text = value.strip()
    if not text:
        raise ValueError("empty timestamp")
    return _dt.datetime.fromisoformat(text.replace("Z", "+00:00"))


def is_night_time(moment: _dt.datetime) -> bool:
    """Return True when the wall-clock hour of ``moment`` is bedtime."""

    hour = moment.hour
    return hour >= NIGHT_START_HOUR or hour < NIGHT_END_HOUR


def compose_system_prompt(
    *,
    age: int,
    query_type: QueryType | str,
    themes: Sequence[ThemeTag],
    is_visual: bool = False,
    visual_task: Optional[VisualTask | str] = None,
    current_time: Optional[_dt.datetime] = None,
    current_time_text: Optional[str] = None,
) -> str:
    """Build the system instruction for one chat invocation.

    The result depends only on the arguments, so equal inputs always yield
    the same string. ``current_time_text`` is the timestamp as the caller
    sent it and is echoed verbatim; ``current_time`` decides the closing tone.
    """

    mode = QueryType(query_type)
    is_story = mode is QueryType.STORY

    role = "creative storyteller" if is_story else "knowledgeable educator"
    output_noun = "stories" if is_story else "responses"
    tone_rule = "Imaginative yet relatable" if is_story else "Educational and engaging"

    sections: list[str] = [
        "\n".join(
            [
                f"You are POPO, a {role} for a {age}-year-old audience. "
                f"Your {output_noun} should be:",
                "- Age-appropriate and positive",
                f"- {tone_rule}",
                "- Free of intense or frightening content",
                "- Told in plain text without special formatting",
            ]
        ),
        "\n".join(theme.prompt_for(mode.value) for theme in themes),
    ]

    if is_story:
        sections.append(_STORY_OPENING)
    if current_time is not None:
        shown = current_time_text or current_time.isoformat()
        sections.append(f"Current local time: {shown}")

    prompt = "\n\n".join(section for section in sections if section)

    if is_visual:
        task = VisualTask(visual_task).value if visual_task else None
        related = f" related to {task}" if task else ""
        prompt += f"\nBased on the provided image{related}."

    if is_story and current_time is not None:
        prompt += "\n" + (_NIGHT_ENDING if is_night_time(current_time) else _DAY_ENDING)

    logger.debug("compose_system_prompt: %s", prompt)
    return prompt


def build_messages(
    system_prompt: str,
    dialog_history: Sequence[Mapping[str, Any]],
    *,
    welcome_message: Optional[str] = None,
) -> list[dict[str, Any]]:
    """Assemble the message sequence sent to the completion provider."""

    messages: list[dict[str, Any]] = [{"role": "system", "content": system_prompt}]
    if welcome_message:
        messages.append({"role": "assistant", "content": welcome_message})
    messages.extend(dict(message) for message in dialog_history)
    return messages


__all__ = [
    "GENERATION_PRESETS",
    "GenerationParams",
    "QueryType",
    "VisualTask",
    "build_messages",
    "compose_system_prompt",
    "is_night_time",
    "parse_local_time",
]
