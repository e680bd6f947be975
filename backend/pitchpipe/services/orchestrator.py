"""
Video job state machine.

    uploaded -> transcribing -> analyzing -> completed
         \____________\_____________\______> failed

Every transition is a conditional UPDATE on the expected current status, so a
job has at most one active run: the claim `uploaded -> transcribing` can only
be won by one caller and every later write checks the status it left behind.
Provider calls run in worker threads under a hard timeout; nothing is retried
automatically. A failed job goes back to `uploaded` only through `retry`.
"""
from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional

from sqlalchemy import select, update

from ..config import settings
from ..exceptions import (
    InvalidJobStateError,
    JobNotFoundError,
    PitchPipeError,
    UpstreamFailureError,
)
from ..logger import logger
from ..models import JobStatus, VideoJob, utcnow


class PipelineOrchestrator:
    def __init__(
        self,
        session_factory,
        media_store,
        transcriber,
        analyzer,
        notify: Optional[Callable[[VideoJob], Any]] = None,
        provider_timeout: float = settings.PROVIDER_TIMEOUT_SECONDS,
    ):
        self.session_factory = session_factory
        self.media_store = media_store
        self.transcriber = transcriber
        self.analyzer = analyzer
        self.notify = notify
        self.provider_timeout = provider_timeout

    async def get_job(self, job_id: str) -> VideoJob:
        async with self.session_factory() as db:
            job = await db.get(VideoJob, job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    async def handle_upload_event(self, job_id: str) -> Optional[VideoJob]:
        """
        Process one trigger for `job_id`.

        Returns the job in its final state, or None when the trigger was a
        duplicate / out-of-order delivery (job not `uploaded`). Raises
        JobNotFoundError for unknown ids, and re-raises the storage or
        provider error after the job has been marked `failed`.
        """
        try:
            job = await self._claim(job_id)
        except InvalidJobStateError as e:
            logger.info(
                f"Trigger ignored for job {job_id}: status is '{e.current_state}'",
                extra={"job_id": job_id, "status": e.current_state},
            )
            return None

        logger.info(f"Job {job_id} claimed for processing", extra={"job_id": job_id, "attempt": job.attempts})
        job = await self._run(job)

        if self.notify is not None:
            try:
                # publishing to the broker can block
                await asyncio.to_thread(self.notify, job)
            except Exception as e:
                logger.warning(
                    f"Completion notification failed for job {job_id}: {e}",
                    extra={"job_id": job_id, "error": str(e)},
                )
        return job

    async def retry(self, job_id: str) -> VideoJob:
        """Reset a failed job to `uploaded` so a new trigger can process it."""
        async with self.session_factory() as db:
            result = await db.execute(
                update(VideoJob)
                .where(VideoJob.id == job_id, VideoJob.status == JobStatus.FAILED)
                .values(
                    status=JobStatus.UPLOADED,
                    error_message=None,
                    transcription_text=None,
                    analysis=None,
                    updated_at=utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            updated = result.rowcount
            await db.commit()
            job = await db.get(VideoJob, job_id)

        if job is None:
            raise JobNotFoundError(job_id)
        if updated != 1:
            raise InvalidJobStateError(job_id, job.status, JobStatus.FAILED)

        logger.info(f"Job {job_id} reset to '{JobStatus.UPLOADED}' for retry", extra={"job_id": job_id})
        return job

    async def _run(self, job: VideoJob) -> VideoJob:
        job_id = job.id
        stage = JobStatus.TRANSCRIBING
        try:
            media = await asyncio.to_thread(self.media_store.get, job.storage_path)

            transcript = await self._call_provider("transcription", self.transcriber.transcribe, media)
            if not isinstance(transcript, str) or not transcript.strip():
                raise UpstreamFailureError("transcription", "provider returned an empty transcript")
            await self._transition(job_id, JobStatus.TRANSCRIBING, JobStatus.ANALYZING, transcription_text=transcript)
            stage = JobStatus.ANALYZING
            logger.info(f"Job {job_id} transcribed", extra={"job_id": job_id, "chars": len(transcript)})

            analysis = await self._call_provider("analysis", self.analyzer.analyze, transcript)
            if not isinstance(analysis, dict):
                raise UpstreamFailureError("analysis", "provider returned a non-object result")
            job = await self._transition(job_id, JobStatus.ANALYZING, JobStatus.COMPLETED, analysis=analysis)
        except PitchPipeError as e:
            await self._fail(job_id, stage, e.message)
            raise
        except Exception as e:
            await self._fail(job_id, stage, f"Unexpected error: {type(e).__name__}: {e}")
            raise

        logger.info(
            f"Job {job_id} completed",
            extra={"job_id": job_id, "score": (job.analysis or {}).get("score")},
        )
        return job

    async def _call_provider(self, provider: str, fn: Callable, *args):
        try:
            return await asyncio.wait_for(asyncio.to_thread(fn, *args), timeout=self.provider_timeout)
        except asyncio.TimeoutError:
            raise UpstreamFailureError(provider, f"timed out after {self.provider_timeout}s")
        except PitchPipeError:
            raise
        except Exception as e:
            raise UpstreamFailureError(provider, str(e) or type(e).__name__)

    async def _claim(self, job_id: str) -> VideoJob:
        async with self.session_factory() as db:
            result = await db.execute(
                update(VideoJob)
                .where(VideoJob.id == job_id, VideoJob.status == JobStatus.UPLOADED)
                .values(
                    status=JobStatus.TRANSCRIBING,
                    attempts=VideoJob.attempts + 1,
                    updated_at=utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            updated = result.rowcount
            await db.commit()
            job = await db.get(VideoJob, job_id)

        if job is None:
            raise JobNotFoundError(job_id)
        if updated != 1:
            raise InvalidJobStateError(job_id, job.status, JobStatus.UPLOADED)
        return job

    async def _transition(self, job_id: str, from_status: str, to_status: str, **fields) -> VideoJob:
        async with self.session_factory() as db:
            result = await db.execute(
                update(VideoJob)
                .where(VideoJob.id == job_id, VideoJob.status == from_status)
                .values(status=to_status, updated_at=utcnow(), **fields)
                .execution_options(synchronize_session=False)
            )
            updated = result.rowcount
            await db.commit()
            job = (await db.execute(select(VideoJob).where(VideoJob.id == job_id))).scalar_one_or_none()

        if job is None:
            raise JobNotFoundError(job_id)
        if updated != 1:
            raise InvalidJobStateError(job_id, job.status, from_status)
        logger.info(
            f"Job {job_id} status updated to '{to_status}'",
            extra={"job_id": job_id, "from_status": from_status, "status": to_status},
        )
        return job

    async def _fail(self, job_id: str, from_status: str, message: str) -> None:
        async with self.session_factory() as db:
            result = await db.execute(
                update(VideoJob)
                .where(VideoJob.id == job_id, VideoJob.status == from_status)
                .values(status=JobStatus.FAILED, error_message=message, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            updated = result.rowcount
            await db.commit()

        if updated != 1:
            logger.warning(
                f"Job {job_id} left '{from_status}' before it could be marked failed",
                extra={"job_id": job_id, "error": message},
            )
            return
        logger.error(
            f"Job {job_id} failed during '{from_status}': {message}",
            extra={"job_id": job_id, "status": JobStatus.FAILED, "error": message},
        )
