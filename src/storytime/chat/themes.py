"""Keyword-based theme detection for prompt biasing."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Any, Iterable, Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ThemeTag:
    key: str
    keywords: tuple[str, ...]
    story_prompt: str
    qna_prompt: str

    def prompt_for(self, query_type: str) -> str:
        return self.story_prompt if query_type == "story" else self.qna_prompt

    def matches(self, lowered_text: str) -> bool:
        return any(keyword in lowered_text for keyword in self.keywords)


THEMES: tuple[ThemeTag, ...] = (
    ThemeTag(
        key="ADVENTURE",
        keywords=(
            "adventure",
            "explore",
            "quest",
            "journey",
            "discover",
            "mission",
            "expedition",
            "treasure",
            "map",
        ),
        story_prompt=(
            "Create an exciting adventure with thrilling discoveries and challenges "
            "that can be overcome through wit, courage, and determination. Keep the "
            "excitement high while ensuring all challenges and resolutions are "
            "age-appropriate."
        ),
        qna_prompt=(
            "Address questions about exploration, discovery, and adventure with "
            "enthusiasm, while emphasizing safety, preparation, and responsible "
            "decision-making."
        ),
    ),
    ThemeTag(
        key="FAMILY",
        keywords=("family", "parents", "siblings", "home", "relatives"),
        story_prompt=(
            "Focus on warm family relationships, understanding between generations, "
            "and the value of family bonds."
        ),
        qna_prompt=(
            "Address family-related questions with sensitivity, emphasizing positive "
            "family dynamics and healthy relationships."
        ),
    ),
    ThemeTag(
        key="FRIENDSHIP",
        keywords=("friends", "friendship", "teamwork", "loyalty"),
        story_prompt=(
            "Emphasize the power of friendship, loyalty, and working together to "
            "overcome challenges."
        ),
        qna_prompt=(
            "Focus on developing and maintaining healthy friendships, resolving "
            "conflicts, and being a good friend."
        ),
    ),
    ThemeTag(
        key="MAGIC",
        keywords=("magic", "wizard", "witch", "spell", "magical", "enchanted"),
        story_prompt=(
            "Weave magical elements naturally into the story while maintaining "
            "believability and wonder."
        ),
        qna_prompt=(
            "Discuss magical concepts in relation to imagination, creativity, and "
            "wonder, while distinguishing fantasy from reality."
        ),
    ),
    ThemeTag(
        key="SCIFI",
        keywords=("space", "future", "robot", "technology", "science"),
        story_prompt=(
            "Incorporate age-appropriate science fiction concepts that spark "
            "curiosity about science and technology."
        ),
        qna_prompt=(
            "Explain scientific and technological concepts in an engaging, "
            "age-appropriate way while encouraging curiosity."
        ),
    ),
    ThemeTag(
        key="COMEDY",
        keywords=("funny", "humor", "laugh", "joke", "silly"),
        story_prompt=(
            "Include light humor and fun situations while avoiding sarcasm or "
            "mean-spirited jokes."
        ),
        qna_prompt=(
            "Address questions with a touch of humor when appropriate, while "
            "maintaining educational value."
        ),
    ),
    ThemeTag(
        key="GROWTH",
        keywords=("learn", "grow", "change", "understand", "realize"),
        story_prompt=(
            "Focus on personal growth, self-discovery, and overcoming internal "
            "challenges."
        ),
        qna_prompt=(
            "Guide learning and personal development with encouraging, "
            "constructive responses."
        ),
    ),
)


def extract_message_text(content: Any) -> str:
    """Flatten message content to the text used for detection.

    Plain strings are returned as-is; part lists contribute their ``text``
    parts joined by a space. Image parts and anything else are ignored.
    """

    if isinstance(content, str):
        return content
    if isinstance(content, Iterable):
        fragments: list[str] = []
        for part in content:
            if isinstance(part, dict):
                if part.get("type") == "text" and isinstance(part.get("text"), str):
                    fragments.append(part["text"])
            elif getattr(part, "type", None) == "text":
                fragments.append(getattr(part, "text", ""))
        return " ".join(fragments)
    return ""


def detect_themes(
    text: str,
    *,
    registry: Sequence[ThemeTag] = THEMES,
    rng: random.Random | None = None,
) -> list[ThemeTag]:
    """Return the themes whose keywords occur in ``text``.

    Falls back to one theme picked uniformly at random when nothing matches,
    so the result is never empty.
    """

    lowered = (text or "").lower()
    detected = [theme for theme in registry if theme.matches(lowered)]
    if detected:
        logger.info(
            "detect_themes: detected %s", ", ".join(theme.key for theme in detected)
        )
        return detected

    chooser = rng if rng is not None else random
    fallback = chooser.choice(list(registry))
    logger.info("detect_themes: no keyword match, picked %s", fallback.key)
    return [fallback]


__all__ = ["THEMES", "ThemeTag", "detect_themes", "extract_message_text"]
