"""Pydantic models for chat requests and streamed records."""

from __future__ import annotations

import json
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class TextPart(BaseModel):
    type: Literal["text"]
    text: str


class ImageUrl(BaseModel):
    url: str

    model_config = ConfigDict(extra="allow")


class ImageUrlPart(BaseModel):
    type: Literal["image_url"]
    image_url: ImageUrl


ContentPart = Annotated[Union[TextPart, ImageUrlPart], Field(discriminator="type")]


class DialogMessage(BaseModel):
    """Represents a single dialog turn."""

    role: Literal["system", "user", "assistant"]
    content: Union[str, List[ContentPart]]

    model_config = ConfigDict(extra="allow")

    @model_validator(mode="after")
    def _check_content_shape(self) -> "DialogMessage":
        if self.role != "user" and not isinstance(self.content, str):
            raise ValueError(f"{self.role} message content must be a string")
        return self

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class DialogRequest(BaseModel):
    """Request body shared by the chat and title endpoints."""

    dialog_history: List[DialogMessage] = Field(
        ..., alias="dialogHistory", min_length=1
    )

    model_config = ConfigDict(populate_by_name=True)

    def history_payload(self) -> List[Dict[str, Any]]:
        return [message.to_payload() for message in self.dialog_history]


class ParagraphUnit(BaseModel):
    """One speakable chunk of the assistant reply."""

    index: int = Field(..., ge=0)
    text: str
    audio: Optional[str] = None


class StreamRecord(BaseModel):
    """Wire unit written per pipeline step."""

    dialog_history: List[Dict[str, Any]] = Field(..., alias="dialogHistory")
    current_paragraph: Optional[ParagraphUnit] = Field(
        default=None, alias="currentParagraph"
    )
    error: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)

    @property
    def is_terminal(self) -> bool:
        return self.current_paragraph is None

    def to_json_line(self) -> str:
        """Serialize as one newline-terminated JSON object."""

        payload: Dict[str, Any] = {
            "dialogHistory": self.dialog_history,
            "currentParagraph": (
                self.current_paragraph.model_dump()
                if self.current_paragraph is not None
                else None
            ),
        }
        if self.error is not None:
            payload["error"] = self.error
        return json.dumps(payload, ensure_ascii=False) + "\n"


class TitleResponse(BaseModel):
    title: str


class TranscriptionResponse(BaseModel):
    text: str


__all__ = [
    "ContentPart",
    "DialogMessage",
    "DialogRequest",
    "ImageUrl",
    "ImageUrlPart",
    "ParagraphUnit",
    "StreamRecord",
    "TextPart",
    "TitleResponse",
    "TranscriptionResponse",
]
