"""Object storage for product, menu and banner images (S3)."""
import time
from typing import Optional
from urllib.parse import urlparse

import boto3
import structlog
from fastapi import HTTPException

from config import AWS_ACCESS_KEY, AWS_BUCKET_NAME, AWS_REGION, AWS_SECRET_KEY

logger = structlog.get_logger(__name__)

_client = None


def storage_enabled() -> bool:
    return bool(AWS_BUCKET_NAME and AWS_REGION)


def get_client():
    global _client
    if _client is None:
        _client = boto3.client(
            "s3",
            region_name=AWS_REGION,
            aws_access_key_id=AWS_ACCESS_KEY,
            aws_secret_access_key=AWS_SECRET_KEY,
        )
    return _client


def object_url(key: str) -> str:
    return f"https://{AWS_BUCKET_NAME}.s3.{AWS_REGION}.amazonaws.com/{key}"


def key_from_url(url: str) -> str:
    return urlparse(url).path.lstrip("/")


def upload_file(buffer: bytes, mime_type: str, folder: str) -> str:
    if not storage_enabled():
        raise HTTPException(status_code=503, detail="File storage is not configured")
    extension = (mime_type or "").split("/")[-1] or "bin"
    key = f"{folder}/{int(time.time() * 1000)}.{extension}"
    get_client().put_object(Bucket=AWS_BUCKET_NAME, Key=key, Body=buffer, ContentType=mime_type)
    logger.info("file_uploaded", key=key, size=len(buffer))
    return object_url(key)


def delete_file(url: Optional[str]) -> bool:
    if not url or not storage_enabled():
        return False
    key = key_from_url(url)
    get_client().delete_object(Bucket=AWS_BUCKET_NAME, Key=key)
    logger.info("file_deleted", key=key)
    return True
