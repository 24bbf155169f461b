from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile

from ..config import Settings, get_settings
from ..schemas.chat import TranscriptionResponse
from ..services.transcription import Transcriber, TranscriptionError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["transcription"])


def get_transcriber(request: Request) -> Transcriber:
    return request.app.state.transcriber


@router.post("/transcribe", response_model=TranscriptionResponse)
async def transcribe_audio(
    audio: UploadFile | None = File(None),
    transcriber: Transcriber = Depends(get_transcriber),
    settings: Settings = Depends(get_settings),
) -> TranscriptionResponse:
    if audio is None:
        raise HTTPException(status_code=400, detail="No audio file found in the request")

    max_bytes = settings.transcription_max_bytes
    if audio.size is not None and audio.size > max_bytes:
        logger.warning("Rejected audio file %s: %d bytes", audio.filename, audio.size)
        raise HTTPException(status_code=400, detail="File size exceeds the limit")

    # One byte past the limit is enough to detect an oversized upload
    data = await audio.read(max_bytes + 1)
    logger.info(
        "Received audio file: %s %s %d bytes",
        audio.filename,
        audio.content_type,
        len(data),
    )
    if len(data) > max_bytes:
        raise HTTPException(status_code=400, detail="File size exceeds the limit")
    if not data:
        raise HTTPException(status_code=400, detail="Audio file is empty")

    try:
        text = await transcriber.transcribe(
            audio.filename or "audio", data, audio.content_type
        )
    except TranscriptionError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.detail) from exc
    return TranscriptionResponse(text=text)
