"""
Trigger delivery: turns webhook payloads, database change events and polling
sweeps into orchestrator runs. Delivery is at-least-once; duplicates are
absorbed by the orchestrator's claim on `uploaded`.
"""
from __future__ import annotations

from datetime import timedelta
from typing import Any, Callable, List, Optional

from sqlalchemy import select

from ..config import settings
from ..exceptions import InvalidArgumentError
from ..logger import logger
from ..models import JobStatus, VideoJob, utcnow

JOB_ID_KEYS = ("job_id", "jobId", "videoId", "video_id")
CHANGE_EVENT_TYPES = ("INSERT", "UPDATE")


def extract_job_id(payload: Any) -> Optional[str]:
    """
    Job id carried by a trigger payload.

    Accepts `{"job_id": ...}` (or jobId / videoId / video_id) and database
    change envelopes `{"type", "table", "record"}`. Returns None for change
    events that are not about a freshly uploaded video.
    """
    if not isinstance(payload, dict):
        raise InvalidArgumentError("Trigger payload must be a JSON object")

    if "record" in payload or "table" in payload:
        record = payload.get("record")
        if not isinstance(record, dict):
            raise InvalidArgumentError("Change event has no record")
        if payload.get("table") != VideoJob.__tablename__ or payload.get("type") not in CHANGE_EVENT_TYPES:
            return None
        if record.get("status") != JobStatus.UPLOADED:
            return None
        job_id = record.get("id")
    else:
        job_id = next((payload[k] for k in JOB_ID_KEYS if payload.get(k)), None)

    if not isinstance(job_id, str) or not job_id.strip():
        raise InvalidArgumentError("Trigger payload does not identify a job")
    return job_id.strip()


def dispatch(job_id: str) -> None:
    """Enqueue a processing run for `job_id`."""
    from ..tasks import process_video_task

    process_video_task.apply_async(args=(job_id,))
    logger.info(f"Processing run enqueued for job {job_id}", extra={"job_id": job_id})


async def sweep_uploaded_jobs(
    session_factory,
    dispatch_fn: Callable[[str], None] = dispatch,
    grace_seconds: int = settings.SWEEP_GRACE_SECONDS,
    limit: int = settings.SWEEP_BATCH_SIZE,
) -> List[str]:
    """
    Polling delivery: dispatch jobs that have sat in `uploaded` longer than
    the grace period (lost webhook, broker outage, retried jobs).
    """
    cutoff = utcnow() - timedelta(seconds=grace_seconds)
    async with session_factory() as db:
        result = await db.execute(
            select(VideoJob.id)
            .where(VideoJob.status == JobStatus.UPLOADED, VideoJob.updated_at <= cutoff)
            .order_by(VideoJob.updated_at)
            .limit(limit)
        )
        job_ids = list(result.scalars().all())

    for job_id in job_ids:
        dispatch_fn(job_id)

    if job_ids:
        logger.info(f"Sweep dispatched {len(job_ids)} uploaded jobs", extra={"job_ids": job_ids})
    return job_ids
