"""Paragraph segmentation of assistant replies."""

from __future__ import annotations

import logging
import re

from ..schemas.chat import ParagraphUnit

logger = logging.getLogger(__name__)

_SPEAKABLE = re.compile(r"[A-Za-z0-9]")


def is_speakable(line: str) -> bool:
    """Return True when ``line`` has content worth synthesizing."""

    return bool(line.strip()) and _SPEAKABLE.search(line) is not None


def split_paragraphs(text: str) -> list[ParagraphUnit]:
    """Split ``text`` on newlines into indexed paragraph units.

    Blank lines and lines without any ASCII letter or digit are dropped.
    Indices count the surviving lines only.
    """

    kept = [line for line in (text or "").split("\n") if is_speakable(line)]
    logger.debug("split_paragraphs: kept %d paragraph(s)", len(kept))
    return [ParagraphUnit(index=index, text=line) for index, line in enumerate(kept)]


__all__ = ["is_speakable", "split_paragraphs"]
