from __future__ import annotations

import argparse
import asyncio
from typing import List, Optional

from sqlalchemy import select

from pitchpipe.db import AsyncSessionLocal, engine
from pitchpipe.exceptions import InvalidJobStateError
from pitchpipe.logger import logger
from pitchpipe.models import JobStatus, VideoJob
from pitchpipe.services.orchestrator import PipelineOrchestrator
from pitchpipe.services.trigger import dispatch


async def _failed_job_ids(user_id: Optional[str], limit: int) -> List[str]:
    query = select(VideoJob.id).where(VideoJob.status == JobStatus.FAILED)
    if user_id:
        query = query.where(VideoJob.user_id == user_id)
    async with AsyncSessionLocal() as db:
        result = await db.execute(query.order_by(VideoJob.updated_at).limit(limit))
        return list(result.scalars().all())


async def retry_failed_jobs(*, yes: bool, user_id: Optional[str], limit: int, enqueue: bool) -> None:
    job_ids = await _failed_job_ids(user_id, limit)
    logger.warning(
        "Retry of failed jobs requested",
        extra={"failed_jobs": len(job_ids), "user_id": user_id, "enqueue": enqueue},
    )

    if not yes:
        await engine.dispose()
        raise SystemExit(
            f"Refusing to run without --yes. "
            f"This will reset {len(job_ids)} failed jobs to '{JobStatus.UPLOADED}'."
        )

    # retry() only touches the database.
    orchestrator = PipelineOrchestrator(AsyncSessionLocal, media_store=None, transcriber=None, analyzer=None)
    reset = []
    for job_id in job_ids:
        try:
            await orchestrator.retry(job_id)
        except InvalidJobStateError as e:
            logger.warning(f"Job {job_id} skipped: status is '{e.current_state}'", extra={"job_id": job_id})
            continue
        reset.append(job_id)
        if enqueue:
            dispatch(job_id)

    await engine.dispose()
    logger.warning(
        "Retry of failed jobs completed",
        extra={"reset_jobs": len(reset), "skipped_jobs": len(job_ids) - len(reset)},
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Reset failed video jobs to 'uploaded' so the pipeline processes them again.",
    )
    parser.add_argument("--user-id", default=None, help="Only retry jobs of this user.")
    parser.add_argument("--limit", type=int, default=100, help="Maximum number of jobs to reset.")
    parser.add_argument(
        "--no-enqueue",
        action="store_true",
        help="Only reset the status; leave dispatch to the periodic sweep.",
    )
    parser.add_argument(
        "--yes",
        action="store_true",
        help="Confirm the action (required).",
    )
    return parser


def main() -> None:
    parser = _build_parser()
    args = parser.parse_args()
    asyncio.run(
        retry_failed_jobs(
            yes=bool(args.yes),
            user_id=args.user_id,
            limit=args.limit,
            enqueue=not args.no_enqueue,
        )
    )


if __name__ == "__main__":
    main()
