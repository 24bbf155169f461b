"""Streaming chat-to-audio pipeline.

One invocation turns a dialog history into newline-delimited JSON records:

1. detect themes in the latest user turn and compose the system prompt
2. request a single completion and append it to the invocation's history
3. split the reply into paragraphs
4. synthesize each paragraph in order and yield one progress record per
   paragraph

Any failure after the stream opened produces exactly one terminal record
(``currentParagraph: null`` plus ``error``) carrying whatever history was
assembled so far. The generator is pull-driven: paragraph ``i + 1`` is not
synthesized until the consumer has taken the record for paragraph ``i``.
"""

from __future__ import annotations

import datetime as _dt
import logging
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Mapping, Optional, Protocol, Sequence

from ..schemas.chat import ParagraphUnit, StreamRecord
from ..services.speech import TTS_TEXT_LENGTH_MAX
from .prompts import (
    GENERATION_PRESETS,
    GenerationParams,
    QueryType,
    VisualTask,
    build_messages,
    compose_system_prompt,
)
from .segmenter import split_paragraphs
from .themes import detect_themes, extract_message_text

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    VALIDATING = "validating"
    GENERATING = "generating"
    SEGMENTING = "segmenting"
    EMITTING = "emitting"
    FAILED = "failed"
    CLOSED = "closed"


class DialogHistoryError(ValueError):
    """Raised when a dialog history cannot trigger generation."""


class Completer(Protocol):
    async def complete(
        self, messages: Sequence[Mapping[str, Any]], params: GenerationParams
    ) -> dict[str, Any]:
        ...


class Synthesizer(Protocol):
    async def synthesize(self, text: str, voice: str) -> str:
        ...


def ensure_user_turn(dialog_history: Sequence[Mapping[str, Any]]) -> None:
    """Reject histories that are empty or do not end with a user turn."""

    if not dialog_history:
        raise DialogHistoryError("Dialog history is empty")
    if dialog_history[-1].get("role") != "user":
        raise DialogHistoryError("The last message must be from the user")


@dataclass
class ChatInvocation:
    dialog_history: list[dict[str, Any]]
    age: int
    voice: str
    query_type: QueryType = QueryType.QNA
    is_visual: bool = False
    visual_task: Optional[VisualTask] = None
    current_time: Optional[_dt.datetime] = None
    current_time_text: Optional[str] = None


@dataclass
class PipelineStats:
    paragraphs: int = 0
    emitted: int = 0
    skipped: list[int] = field(default_factory=list)


class ChatPipeline:
    """Drive one chat invocation from completion to streamed audio records."""

    def __init__(
        self,
        completer: Completer,
        synthesizer: Synthesizer,
        *,
        rng: random.Random | None = None,
        max_paragraph_length: int = TTS_TEXT_LENGTH_MAX,
    ) -> None:
        self._completer = completer
        self._synthesizer = synthesizer
        self._rng = rng
        self._max_paragraph_length = max_paragraph_length
        self.state = PipelineState.VALIDATING
        self.stats = PipelineStats()

    def _transition(self, state: PipelineState) -> None:
        logger.debug("Pipeline state %s -> %s", self.state.value, state.value)
        self.state = state

    def prepare_messages(self, invocation: ChatInvocation) -> list[dict[str, Any]]:
        """Compose the system prompt and the full provider message list."""

        latest = invocation.dialog_history[-1]
        themes = detect_themes(
            extract_message_text(latest.get("content")), rng=self._rng
        )
        system_prompt = compose_system_prompt(
            age=invocation.age,
            query_type=invocation.query_type,
            themes=themes,
            is_visual=invocation.is_visual,
            visual_task=invocation.visual_task,
            current_time=invocation.current_time,
            current_time_text=invocation.current_time_text,
        )
        return build_messages(system_prompt, invocation.dialog_history)

    async def records(self, invocation: ChatInvocation) -> AsyncIterator[StreamRecord]:
        """Yield progress records; exceptions propagate to the caller."""

        ensure_user_turn(invocation.dialog_history)
        history = invocation.dialog_history

        self._transition(PipelineState.GENERATING)
        messages = self.prepare_messages(invocation)
        assistant_message = await self._completer.complete(
            messages, GENERATION_PRESETS[invocation.query_type]
        )
        logger.info(
            "Received completion (%d chars)",
            len(assistant_message.get("content") or ""),
        )
        history.append(assistant_message)

        self._transition(PipelineState.SEGMENTING)
        paragraphs = split_paragraphs(assistant_message.get("content") or "")
        self.stats.paragraphs = len(paragraphs)
        logger.info("Split response into %d paragraph(s)", len(paragraphs))

        self._transition(PipelineState.EMITTING)
        for paragraph in paragraphs:
            if len(paragraph.text) > self._max_paragraph_length:
                logger.warning(
                    "Paragraph %d exceeds the maximum length of %d characters, skipping",
                    paragraph.index,
                    self._max_paragraph_length,
                )
                self.stats.skipped.append(paragraph.index)
                continue

            audio = await self._synthesizer.synthesize(paragraph.text, invocation.voice)
            unit = ParagraphUnit(index=paragraph.index, text=paragraph.text, audio=audio)
            yield StreamRecord(dialog_history=history, current_paragraph=unit)

    async def stream(self, invocation: ChatInvocation) -> AsyncIterator[str]:
        """Yield NDJSON lines, ending with a terminal record on failure."""

        history = invocation.dialog_history
        progress = self.records(invocation)
        try:
            async for record in progress:
                line = record.to_json_line()
                yield line
                self.stats.emitted += 1
                logger.info(
                    "Streamed paragraph %d (history=%d, audio=%d chars)",
                    record.current_paragraph.index,
                    len(record.dialog_history),
                    len(record.current_paragraph.audio or ""),
                )
        except Exception as exc:
            self._transition(PipelineState.FAILED)
            logger.error("Chat pipeline failed: %s", exc, exc_info=True)
            try:
                line = StreamRecord(
                    dialog_history=history,
                    current_paragraph=None,
                    error=str(exc) or exc.__class__.__name__,
                ).to_json_line()
            except Exception:
                logger.exception("Failed to build terminal error record")
            else:
                yield line
        finally:
            try:
                await progress.aclose()
            finally:
                self._transition(PipelineState.CLOSED)
                logger.info(
                    "Chat stream closed (emitted=%d, skipped=%d)",
                    self.stats.emitted,
                    len(self.stats.skipped),
                )


__all__ = [
    "ChatInvocation",
    "ChatPipeline",
    "Completer",
    "DialogHistoryError",
    "PipelineState",
    "PipelineStats",
    "Synthesizer",
    "ensure_user_turn",
]
