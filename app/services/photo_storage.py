from __future__ import annotations

import logging
from functools import lru_cache

import boto3
from botocore.exceptions import ClientError

from app.core.config import settings

_LOG = logging.getLogger("app.storage")


def build_photo_key(file_name: str) -> str:
    return f"{settings.PHOTO_KEY_PREFIX.strip('/')}/{file_name}"


class PhotoStorage:
    def __init__(self):
        self.bucket = settings.S3_BUCKET
        self.client = boto3.client(
            "s3",
            endpoint_url=settings.S3_ENDPOINT,
            aws_access_key_id=settings.S3_ACCESS_KEY,
            aws_secret_access_key=settings.S3_SECRET_KEY,
            region_name=settings.S3_REGION,
            use_ssl=settings.S3_USE_SSL,
        )
        self._bucket_checked = False

    def ensure_bucket(self) -> None:
        if self._bucket_checked:
            return
        try:
            self.client.head_bucket(Bucket=self.bucket)
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code not in {"404", "NoSuchBucket", "NotFound"}:
                raise
            kwargs: dict = {"Bucket": self.bucket}
            if settings.S3_REGION and settings.S3_REGION != "us-east-1":
                kwargs["CreateBucketConfiguration"] = {"LocationConstraint": settings.S3_REGION}
            _LOG.info("creating bucket %s", self.bucket)
            self.client.create_bucket(**kwargs)
        self._bucket_checked = True

    def save(self, key: str, content: bytes, mime_type: str) -> str:
        self.ensure_bucket()
        self.client.put_object(Bucket=self.bucket, Key=key, Body=content, ContentType=mime_type)
        _LOG.info("stored photo key=%s size=%s", key, len(content))
        return key


@lru_cache(maxsize=1)
def get_photo_storage() -> PhotoStorage:
    return PhotoStorage()
