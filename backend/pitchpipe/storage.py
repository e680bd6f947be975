"""
Media storage on an S3-compatible bucket.

Paths handed out by this module are `s3://<bucket>/<key>` URIs. Older rows may
hold a bare key (`videos/<user>/<file>.mp4`) or a `<bucket>/<key>` path; both
are resolved against the configured bucket.
"""
from __future__ import annotations

import uuid
from functools import lru_cache
from typing import Optional, Tuple
from urllib.parse import urlparse

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .config import settings
from .exceptions import StorageFailureError
from .logger import logger


def build_s3_client():
    return boto3.client(
        "s3",
        aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
        aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
        region_name=settings.AWS_REGION_NAME,
        endpoint_url=settings.AWS_ENDPOINT_URL,
    )


class S3MediaStore:
    def __init__(self, client, bucket: str, default_ttl: int = settings.SIGNED_URL_TTL_SECONDS):
        self.client = client
        self.bucket = bucket
        self.default_ttl = default_ttl

    def split_path(self, path: str) -> Tuple[str, str]:
        p = urlparse(path)
        if p.scheme == "s3":
            return p.netloc, p.path.lstrip("/")
        if p.scheme in ("http", "https"):
            parts = p.path.lstrip("/").split("/", 1)
            if len(parts) != 2:
                raise StorageFailureError(f"Unexpected storage URL: {path}")
            return parts[0], parts[1]
        key = path.lstrip("/")
        if key.startswith(f"{self.bucket}/"):
            key = key[len(self.bucket) + 1:]
        return self.bucket, key

    def put(self, data: bytes, key: Optional[str] = None, content_type: str = "video/mp4") -> str:
        key = key or f"uploads/{uuid.uuid4()}.mp4"
        try:
            self.client.put_object(Bucket=self.bucket, Key=key, Body=data, ContentType=content_type)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to upload media to S3: {key}, error: {e}")
            raise StorageFailureError(f"Failed to upload media: {e}")
        path = f"s3://{self.bucket}/{key}"
        logger.info("Uploaded media", extra={"storage_path": path, "size_bytes": len(data)})
        return path

    def get(self, path: str) -> bytes:
        bucket, key = self.split_path(path)
        try:
            obj = self.client.get_object(Bucket=bucket, Key=key)
            return obj["Body"].read()
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to read media from S3: {path}, error: {e}")
            raise StorageFailureError(f"Failed to read media {path}: {e}")

    def signed_url(self, path: str, ttl_seconds: Optional[int] = None) -> str:
        bucket, key = self.split_path(path)
        expires = ttl_seconds if ttl_seconds is not None else self.default_ttl
        try:
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": bucket, "Key": key},
                ExpiresIn=expires,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to sign media URL: {path}, error: {e}")
            raise StorageFailureError(f"Failed to generate signed URL for {path}: {e}")


@lru_cache(maxsize=1)
def get_media_store() -> S3MediaStore:
    return S3MediaStore(build_s3_client(), settings.S3_BUCKET_NAME)
