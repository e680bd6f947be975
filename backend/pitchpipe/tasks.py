import asyncio
from typing import Optional

from .workers import celery_app
from .config import settings
from .db import AsyncSessionLocal, engine
from .exceptions import NotificationError
from .models import Profile, VideoJob
from .notifier import ResendNotifier
from .providers.analysis import OpenAIAnalysisEngine
from .providers.transcription import WhisperTranscriber
from .services.orchestrator import PipelineOrchestrator
from .services.trigger import sweep_uploaded_jobs
from .storage import get_media_store
from .logger import logger


def enqueue_completion_email(job: VideoJob) -> None:
    send_completion_email_task.apply_async(args=(job.id,))


def build_orchestrator(session_factory=AsyncSessionLocal) -> PipelineOrchestrator:
    return PipelineOrchestrator(
        session_factory=session_factory,
        media_store=get_media_store(),
        transcriber=WhisperTranscriber(),
        analyzer=OpenAIAnalysisEngine(),
        notify=enqueue_completion_email if settings.NOTIFY_ON_COMPLETE else None,
    )


async def _profile_email(user_id: str) -> Optional[str]:
    async with AsyncSessionLocal() as db:
        profile = await db.get(Profile, user_id)
    return profile.email if profile else None


@celery_app.task(acks_late=True)
def process_video_task(job_id: str):
    """
    Run the pipeline for one uploaded job. Duplicate deliveries return without
    doing anything; failures are recorded on the job, not retried here.
    """
    async def _run():
        try:
            job = await build_orchestrator().handle_upload_event(job_id)
            return job.status if job else None
        finally:
            # connections are bound to this event loop
            await engine.dispose()

    logger.info(f"Processing task started for job: {job_id}", extra={"job_id": job_id})
    return asyncio.run(_run())


@celery_app.task(acks_late=True)
def send_completion_email_task(job_id: str):
    """
    Tell the owner of a completed job that their video is ready.
    """
    async def _run():
        try:
            async with AsyncSessionLocal() as db:
                job = await db.get(VideoJob, job_id)
            if not job:
                logger.error(f"Job not found in database: {job_id}")
                return None
            return job, await _profile_email(job.user_id)
        finally:
            await engine.dispose()

    found = asyncio.run(_run())
    if found is None:
        return
    job, email = found
    if not email:
        logger.warning(f"No e-mail on profile for job {job_id}", extra={"job_id": job_id, "user_id": job.user_id})
        return

    video_url = get_media_store().signed_url(job.storage_path)
    try:
        ResendNotifier().send_video_ready(email, video_url)
    except NotificationError as e:
        logger.warning(
            f"Completion e-mail failed for job {job_id}: {e.message}",
            extra={"job_id": job_id, "error": e.message},
        )
        raise

    logger.info(f"Completion e-mail sent for job {job_id}", extra={"job_id": job_id})


@celery_app.task(acks_late=True)
def sweep_uploaded_jobs_task():
    """Dispatch jobs whose trigger was never delivered."""
    async def _run():
        try:
            return await sweep_uploaded_jobs(AsyncSessionLocal)
        finally:
            await engine.dispose()

    return asyncio.run(_run())
