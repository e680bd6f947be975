"""
Video routes: upload, trigger webhook, retry, status, journal
"""
from fastapi import APIRouter, Body, Depends, File, Form, HTTPException, Query, Response, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Literal, Optional

from ..compressor import PROFILES
from ..auth import get_current_user_id, get_current_user_id_optional, require_trigger_secret
from ..config import settings
from ..db import get_db
from ..exceptions import InvalidArgumentError
from ..logger import logger
from ..models import JobStatus
from ..schemas import (
    JournalEntryOut,
    JournalResponse,
    SignedUrlRequest,
    SignedUrlResponse,
    TriggerResponse,
    VideoJobOut,
)
from ..services.journal import list_jobs
from ..services.orchestrator import PipelineOrchestrator
from ..services.trigger import dispatch, extract_job_id
from ..services.uploads import ingest_upload
from ..storage import get_media_store
from ..tasks import build_orchestrator

router = APIRouter(tags=["Videos"])

ACCEPTED_UPLOAD_TYPES = ("application/octet-stream",)

def get_orchestrator() -> PipelineOrchestrator:
    return build_orchestrator()

def get_dispatcher():
    return dispatch

@router.post("/videos", response_model=VideoJobOut, status_code=201)
async def upload_video(
    file: UploadFile = File(...),
    title: Optional[str] = Form(None),
    session_id: Optional[str] = Form(None),
    compress: bool = Form(True),
    profile: Literal["default", "fast"] = Form("default"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    media_store=Depends(get_media_store),
    dispatch_fn=Depends(get_dispatcher),
):
    """
    Upload a pitch video. The job starts in `uploaded`; processing is queued
    right away unless the pipeline runs inline (then the trigger webhook
    drives it).
    """
    content_type = file.content_type or "application/octet-stream"
    logger.info(
        "Upload request received",
        extra={
            "user_id": user_id,
            "session_id": session_id,
            "uploaded_file": file.filename,
            "content_type": content_type,
            "profile": profile,
        },
    )
    if not content_type.startswith("video/") and content_type not in ACCEPTED_UPLOAD_TYPES:
        raise InvalidArgumentError(f"Unsupported content type: {content_type}")

    raw = await file.read()
    job = await ingest_upload(
        db,
        media_store,
        user_id=user_id,
        raw=raw,
        filename=file.filename or "pitch.mp4",
        session_id=session_id,
        title=title,
        compress=compress,
        options=PROFILES[profile],
        dispatch_fn=None if settings.PIPELINE_INLINE else dispatch_fn,
    )
    return VideoJobOut.from_job(job)

@router.post("/videos/trigger", response_model=TriggerResponse, dependencies=[Depends(require_trigger_secret)])
async def trigger_video(
    response: Response,
    payload: Any = Body(...),
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
    dispatch_fn=Depends(get_dispatcher),
):
    """
    Status-driven trigger. Accepts `{job_id}` or a database change event for
    the `videos` table.
    """
    job_id = extract_job_id(payload)
    if job_id is None:
        logger.info("Trigger payload ignored", extra={"payload_type": payload.get("type"), "table": payload.get("table")})
        return TriggerResponse(status="ignored", detail="Event does not concern an uploaded video")

    job = await orchestrator.get_job(job_id)
    if job.status != JobStatus.UPLOADED:
        logger.info(f"Trigger ignored for job {job_id}: status is '{job.status}'", extra={"job_id": job_id})
        return TriggerResponse(job_id=job_id, status=job.status, detail="Job is not waiting for processing")

    if settings.PIPELINE_INLINE:
        processed = await orchestrator.handle_upload_event(job_id)
        if processed is None:
            current = await orchestrator.get_job(job_id)
            return TriggerResponse(job_id=job_id, status=current.status, detail="Job is already being processed")
        return TriggerResponse(job_id=job_id, status=processed.status)

    dispatch_fn(job_id)
    response.status_code = 202
    return TriggerResponse(job_id=job_id, status="queued")

@router.get("/videos/journal", response_model=JournalResponse)
async def get_journal(
    session_id: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None),
    current_user_id: Optional[str] = Depends(get_current_user_id_optional),
    db: AsyncSession = Depends(get_db),
):
    """Jobs of a session or user, oldest first. Defaults to the caller's own jobs."""
    if not session_id and not user_id:
        user_id = current_user_id
    jobs = await list_jobs(db, user_id=user_id, session_id=session_id)
    data = [JournalEntryOut.from_job(job) for job in jobs]
    return JournalResponse(data=data, totalCount=len(data))

@router.get("/videos/{job_id}", response_model=VideoJobOut)
async def get_video(job_id: str, orchestrator: PipelineOrchestrator = Depends(get_orchestrator)):
    job = await orchestrator.get_job(job_id)
    return VideoJobOut.from_job(job)

@router.post("/videos/{job_id}/retry", response_model=VideoJobOut)
async def retry_video(
    job_id: str,
    response: Response,
    user_id: str = Depends(get_current_user_id),
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
    dispatch_fn=Depends(get_dispatcher),
):
    """Send a failed job back through the pipeline."""
    job = await orchestrator.get_job(job_id)
    if job.user_id != user_id:
        raise HTTPException(status_code=403, detail="Not allowed to retry this video")

    job = await orchestrator.retry(job_id)
    if settings.PIPELINE_INLINE:
        processed = await orchestrator.handle_upload_event(job_id)
        return VideoJobOut.from_job(processed or await orchestrator.get_job(job_id))

    dispatch_fn(job_id)
    response.status_code = 202
    return VideoJobOut.from_job(job)

@router.post("/storage/signed-url", response_model=SignedUrlResponse)
async def create_signed_url(
    request: SignedUrlRequest,
    user_id: str = Depends(get_current_user_id),
    media_store=Depends(get_media_store),
):
    ttl = request.expires_in or settings.SIGNED_URL_TTL_SECONDS
    signed_url = media_store.signed_url(request.storage_path, ttl)
    logger.info("Signed URL issued", extra={"user_id": user_id, "storage_path": request.storage_path, "expires_in": ttl})
    return SignedUrlResponse(signed_url=signed_url)
