from __future__ import annotations

from typing import List, Optional

from sqlalchemy import select

from ..exceptions import InvalidArgumentError
from ..models import VideoJob


async def list_jobs(db, user_id: Optional[str] = None, session_id: Optional[str] = None) -> List[VideoJob]:
    """Jobs of a user and/or session, oldest first. Failed jobs are included."""
    if not user_id and not session_id:
        raise InvalidArgumentError("user_id or session_id is required")

    query = select(VideoJob)
    if user_id:
        query = query.where(VideoJob.user_id == user_id)
    if session_id:
        query = query.where(VideoJob.session_id == session_id)

    result = await db.execute(query.order_by(VideoJob.created_at.asc(), VideoJob.id.asc()))
    return list(result.scalars().all())
