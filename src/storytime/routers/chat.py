"""Chat streaming API routes."""

from __future__ import annotations

import copy
import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from ..auth import get_current_email
from ..chat.pipeline import (
    ChatInvocation,
    ChatPipeline,
    DialogHistoryError,
    ensure_user_turn,
)
from ..chat.prompts import GenerationParams, QueryType, VisualTask, parse_local_time
from ..completion import CompletionClient
from ..config import Settings, get_settings
from ..repository import UserProfile, UserRepository
from ..schemas.chat import DialogRequest, TitleResponse
from ..services.speech import SpeechSynthesizer, resolve_voice
from ..services.title_service import generate_title

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["chat"])

_INVALID_BODY = "Invalid request body. Expected JSON with a dialogHistory array."


def get_completion_client(request: Request) -> CompletionClient:
    return request.app.state.completion_client


def get_speech_synthesizer(request: Request) -> SpeechSynthesizer:
    return request.app.state.speech_synthesizer


def get_user_repository(request: Request) -> UserRepository:
    return request.app.state.user_repository


def get_chat_pipeline(
    completion_client: CompletionClient = Depends(get_completion_client),
    synthesizer: SpeechSynthesizer = Depends(get_speech_synthesizer),
) -> ChatPipeline:
    return ChatPipeline(completion_client, synthesizer)


def get_title_params(settings: Settings = Depends(get_settings)) -> GenerationParams:
    return GenerationParams(
        temperature=settings.title_temperature,
        max_tokens=settings.title_max_tokens,
    )


def _describe_validation_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid dialog history"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", "invalid value")
    return f"Invalid dialog history - {location}: {message}" if location else message


async def _read_dialog_request(request: Request) -> DialogRequest:
    try:
        body = await request.json()
    except ValueError as exc:
        logger.warning("Error parsing request body: %s", exc)
        raise HTTPException(status_code=400, detail=_INVALID_BODY) from exc

    if not isinstance(body, dict) or not isinstance(body.get("dialogHistory"), list):
        raise HTTPException(status_code=400, detail=_INVALID_BODY)

    try:
        return DialogRequest.model_validate(body)
    except ValidationError as exc:
        detail = _describe_validation_error(exc)
        logger.warning("Rejected dialog history: %s", detail)
        raise HTTPException(status_code=400, detail=detail) from exc


async def _load_profile(repository: UserRepository, email: str) -> UserProfile:
    user = await repository.get_user_by_email(email)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def _parse_query_type(value: Optional[str]) -> QueryType:
    raw = value or QueryType.QNA.value
    try:
        return QueryType(raw)
    except ValueError as exc:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid query_type: {raw}. Expected 'story' or 'qna'.",
        ) from exc


def _parse_visual_task(value: Optional[str]) -> Optional[VisualTask]:
    if not value:
        return None
    try:
        return VisualTask(value)
    except ValueError as exc:
        expected = ", ".join(task.value for task in VisualTask)
        raise HTTPException(
            status_code=400,
            detail=f"Invalid visual_task: {value}. Expected one of {expected}.",
        ) from exc


async def _handle_chat(
    request: Request,
    *,
    is_visual: bool,
    email: str,
    repository: UserRepository,
    pipeline: ChatPipeline,
    settings: Settings,
    query_type: Optional[str],
    current_time: Optional[str],
    visual_task: Optional[str],
) -> StreamingResponse:
    logger.info(
        "Started processing %s chat request", "visual" if is_visual else "textual"
    )

    user = await _load_profile(repository, email)
    age = user.age()
    if age < 0:
        logger.error("Invalid yob: %s", user.yob)
        raise HTTPException(status_code=400, detail=f"Invalid year of birth: {user.yob}")

    mode = _parse_query_type(query_type)

    local_time = None
    if current_time:
        try:
            local_time = parse_local_time(current_time)
        except ValueError as exc:
            raise HTTPException(
                status_code=400,
                detail=(
                    f"Invalid current_time: {current_time}. Expected ISO 8601 "
                    "format such as 2022-02-22T22:22:22+08:00."
                ),
            ) from exc

    task = _parse_visual_task(visual_task)

    dialog_request = await _read_dialog_request(request)
    history: list[dict[str, Any]] = copy.deepcopy(dialog_request.history_payload())
    try:
        ensure_user_turn(history)
    except DialogHistoryError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    logger.info(
        "Chat request accepted (age=%d, query_type=%s, messages=%d)",
        age,
        mode.value,
        len(history),
    )
    invocation = ChatInvocation(
        dialog_history=history,
        age=age,
        voice=resolve_voice(user.preferred_voice, settings.default_voice),
        query_type=mode,
        is_visual=is_visual,
        visual_task=task,
        current_time=local_time,
        current_time_text=current_time if local_time is not None else None,
    )
    return StreamingResponse(
        pipeline.stream(invocation),
        media_type="application/json",
    )


@router.post("/chat/textual", response_model=None, status_code=200)
async def textual_chat(
    request: Request,
    query_type: Optional[str] = Query(None, alias="query_type"),
    current_time: Optional[str] = Query(None, alias="current_time"),
    visual_task: Optional[str] = Query(None, alias="visual_task"),
    email: str = Depends(get_current_email),
    repository: UserRepository = Depends(get_user_repository),
    pipeline: ChatPipeline = Depends(get_chat_pipeline),
    settings: Settings = Depends(get_settings),
) -> StreamingResponse:
    """Stream a text-only chat reply as newline-delimited JSON records."""

    return await _handle_chat(
        request,
        is_visual=False,
        email=email,
        repository=repository,
        pipeline=pipeline,
        settings=settings,
        query_type=query_type,
        current_time=current_time,
        visual_task=visual_task,
    )


@router.post("/chat/visual", response_model=None, status_code=200)
async def visual_chat(
    request: Request,
    query_type: Optional[str] = Query(None, alias="query_type"),
    current_time: Optional[str] = Query(None, alias="current_time"),
    visual_task: Optional[str] = Query(None, alias="visual_task"),
    email: str = Depends(get_current_email),
    repository: UserRepository = Depends(get_user_repository),
    pipeline: ChatPipeline = Depends(get_chat_pipeline),
    settings: Settings = Depends(get_settings),
) -> StreamingResponse:
    """Stream a reply about an attached image as newline-delimited JSON records."""

    return await _handle_chat(
        request,
        is_visual=True,
        email=email,
        repository=repository,
        pipeline=pipeline,
        settings=settings,
        query_type=query_type,
        current_time=current_time,
        visual_task=visual_task,
    )


@router.post("/chat/title", response_model=TitleResponse, status_code=200)
async def dialog_title(
    request: Request,
    client: CompletionClient = Depends(get_completion_client),
    params: GenerationParams = Depends(get_title_params),
) -> TitleResponse:
    """Generate a short title for a dialog history."""

    dialog_request = await _read_dialog_request(request)
    history = dialog_request.history_payload()
    logger.info("Requesting title for %d message(s)", len(history))

    title = await generate_title(client, history, params)
    if title is None:
        raise HTTPException(status_code=502, detail="Failed to generate a title")
    return TitleResponse(title=title)


__all__ = [
    "get_chat_pipeline",
    "get_completion_client",
    "get_speech_synthesizer",
    "get_title_params",
    "get_user_repository",
    "router",
]
