from __future__ import annotations

import asyncio
import mimetypes
import uuid
from pathlib import PurePath
from typing import Callable, Optional

from ..compressor import CompressionOptions, DEFAULT_PROFILE, compress as compress_video
from ..exceptions import EncodingFailureError, InvalidArgumentError
from ..logger import logger
from ..models import JobStatus, VideoJob


async def ingest_upload(
    db,
    media_store,
    user_id: str,
    raw: bytes,
    filename: str,
    session_id: Optional[str] = None,
    title: Optional[str] = None,
    compress: bool = True,
    options: CompressionOptions = DEFAULT_PROFILE,
    dispatch_fn: Optional[Callable[[str], None]] = None,
) -> VideoJob:
    """
    Store an uploaded pitch video and register it as an `uploaded` job.

    Compression is best effort: on EncodingFailureError the original bytes
    are stored unchanged.
    """
    if not raw:
        raise InvalidArgumentError("Uploaded file is empty")

    data = raw
    extension = PurePath(filename or "").suffix.lower() or ".mp4"
    content_type = mimetypes.guess_type(f"x{extension}")[0] or "application/octet-stream"
    if compress:
        try:
            result = await asyncio.to_thread(compress_video, raw, options)
            data, extension, content_type = result.data, ".mp4", "video/mp4"
        except EncodingFailureError as e:
            logger.warning(
                f"Compression failed, storing original upload: {e.message}",
                extra={"user_id": user_id, "uploaded_file": filename},
            )

    job_id = str(uuid.uuid4())
    key = f"videos/{user_id}/{job_id}{extension}"
    storage_path = await asyncio.to_thread(media_store.put, data, key, content_type)

    job = VideoJob(
        id=job_id,
        user_id=user_id,
        session_id=session_id,
        title=title or "Sans titre",
        storage_path=storage_path,
        status=JobStatus.UPLOADED,
    )
    db.add(job)
    await db.commit()
    await db.refresh(job)

    logger.info(
        f"Job created: {job_id}",
        extra={"job_id": job_id, "user_id": user_id, "session_id": session_id, "size_bytes": len(data)},
    )

    if dispatch_fn is not None:
        dispatch_fn(job_id)
    return job
