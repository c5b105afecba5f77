# object_store.py
# S3-compatible (Cloudflare R2) storage for uploads and rendered halftones.

import re
import time
import random
import logging
from typing import Any, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from halftone_config import HalftoneSettings
from halftone_errors import ObjectNotFoundError, StorageNotConfiguredError

log = logging.getLogger(__name__)

S3_MAX_ATTEMPTS = 5
NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


def sanitize_filename(name: Optional[str]) -> str:
    return re.sub(r"[^a-zA-Z0-9._-]", "_", str(name or "file"))


def _random_id(prefix: str) -> str:
    return f"{prefix}_{int(time.time() * 1000)}_{random.randrange(1_000_000)}"


def upload_key(filename: str) -> tuple:
    image_id = _random_id("img")
    return image_id, f"uploads/{image_id}/{sanitize_filename(filename)}"


def output_key() -> str:
    return f"outputs/{_random_id('ht')}.png"


def _is_not_found(exc: ClientError) -> bool:
    return exc.response.get("Error", {}).get("Code") in NOT_FOUND_CODES


class ObjectStore:
    def __init__(self, client: Any, bucket: str, expires_seconds: int = 600):
        self.client = client
        self.bucket = bucket
        self.expires_seconds = expires_seconds

    @classmethod
    def from_settings(cls, settings: HalftoneSettings) -> "ObjectStore":
        if not settings.storage_configured:
            raise StorageNotConfiguredError(
                "Object storage is not configured; set R2_ENDPOINT, R2_BUCKET, R2_REGION and R2 credentials."
            )
        session = boto3.session.Session(
            aws_access_key_id=settings.r2_access_key_id,
            aws_secret_access_key=settings.r2_secret_access_key,
        )
        config = Config(
            region_name=settings.r2_region,
            signature_version="s3v4",
            retries={"max_attempts": S3_MAX_ATTEMPTS, "mode": "standard"},
        )
        client = session.client("s3", endpoint_url=settings.r2_endpoint, config=config)
        return cls(client, settings.r2_bucket, settings.url_expires_seconds)

    def head_size(self, key: str) -> int:
        try:
            response = self.client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if _is_not_found(exc):
                raise ObjectNotFoundError("Input object not found", {"key": key}) from exc
            raise
        return int(response.get("ContentLength", 0))

    def get_bytes(self, key: str) -> bytes:
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if _is_not_found(exc):
                raise ObjectNotFoundError("Input object not found", {"key": key}) from exc
            raise
        body = response.get("Body")
        if body is None:
            raise ObjectNotFoundError("Input object not found", {"key": key})
        try:
            return body.read()
        finally:
            body.close()

    def put_png(self, key: str, data: bytes) -> None:
        self.client.put_object(Bucket=self.bucket, Key=key, Body=data, ContentType="image/png")
        log.info("stored %s (%d bytes)", key, len(data))

    def presign_put(self, key: str, content_type: str) -> str:
        return self.client.generate_presigned_url(
            "put_object",
            Params={"Bucket": self.bucket, "Key": key, "ContentType": content_type},
            ExpiresIn=self.expires_seconds,
        )

    def presign_get(self, key: str) -> str:
        return self.client.generate_presigned_url(
            "get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=self.expires_seconds,
        )
