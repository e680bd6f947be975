from __future__ import annotations

import uuid
from collections.abc import Mapping
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ..exceptions import ConflictError, InvalidArgumentError, NotFoundError
from ..logger import logger
from ..models import ConnectionRequest, ConnectionStatus, Profile, VideoJob, pair_key


def _match_score(analysis_data: Optional[Mapping[str, Any]]) -> Optional[float]:
    if not analysis_data:
        return None
    score = analysis_data.get("score")
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        return None
    return float(score)


class Matcher:
    """
    Creates connection requests between two users.

    At most one request exists per unordered pair. The existence check is a
    fast path for the common duplicate; the unique `pair_key` constraint is
    what settles concurrent inserts, and the loser gets ConflictError.
    """

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def request_connection(
        self,
        requester_id: str,
        target_id: str,
        video_id: Optional[str] = None,
        analysis_data: Optional[Mapping[str, Any]] = None,
    ) -> ConnectionRequest:
        requester_id = (requester_id or "").strip()
        target_id = (target_id or "").strip()
        if not requester_id or not target_id:
            raise InvalidArgumentError("requester_id and target_id are required")
        if requester_id == target_id:
            raise InvalidArgumentError("A user cannot request a connection with themselves")
        if analysis_data is not None and not isinstance(analysis_data, Mapping):
            raise InvalidArgumentError("analysis_data must be an object")

        key = pair_key(requester_id, target_id)
        async with self.session_factory() as db:
            target = await db.get(Profile, target_id)
            if target is None:
                raise NotFoundError(f"User {target_id} not found", "USER_NOT_FOUND")

            if video_id:
                video = (
                    await db.execute(
                        select(VideoJob.id).where(VideoJob.id == video_id, VideoJob.user_id == requester_id)
                    )
                ).scalar_one_or_none()
                if video is None:
                    raise NotFoundError(
                        f"Video {video_id} not found for user {requester_id}", "VIDEO_NOT_FOUND"
                    )

            existing = (
                await db.execute(select(ConnectionRequest.id).where(ConnectionRequest.pair_key == key))
            ).scalar_one_or_none()
            if existing is not None:
                logger.info(
                    "Connection request already exists",
                    extra={"requester_id": requester_id, "target_id": target_id, "connection_id": existing},
                )
                raise ConflictError(f"A connection request already exists between {requester_id} and {target_id}")

            connection = ConnectionRequest(
                id=str(uuid.uuid4()),
                requester_id=requester_id,
                target_id=target_id,
                pair_key=key,
                video_id=video_id,
                status=ConnectionStatus.PENDING,
                analysis_data=dict(analysis_data) if analysis_data is not None else None,
                match_score=_match_score(analysis_data),
            )
            db.add(connection)
            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()
                logger.info(
                    "Concurrent connection request lost the insert race",
                    extra={"requester_id": requester_id, "target_id": target_id},
                )
                raise ConflictError(f"A connection request already exists between {requester_id} and {target_id}")
            await db.refresh(connection)

        logger.info(
            "Connection request created",
            extra={
                "connection_id": connection.id,
                "requester_id": requester_id,
                "target_id": target_id,
                "video_id": video_id,
                "match_score": connection.match_score,
            },
        )
        return connection
