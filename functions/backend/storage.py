"""
Object storage for generated images: Firebase Storage, Tencent COS
(S3-compatible) and an in-memory test implementation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol

import boto3
from botocore.config import Config
from firebase_admin import storage as firebase_storage

# SigV4 presigned URLs cannot outlive a week.
MAX_PRESIGN_SECONDS = 7 * 24 * 60 * 60


class StorageClient(Protocol):
    """Defines the operations the functions need from object storage."""

    def upload_bytes(self, path: str, data: bytes, content_type: str) -> None:
        ...

    def signed_read_url(self, path: str, expires_at: datetime) -> str:
        ...


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    base_url: str = "https://example.test/storage"
    stored_objects: dict = field(default_factory=dict)

    def upload_bytes(self, path: str, data: bytes, content_type: str) -> None:
        self.stored_objects[path] = (data, content_type)

    def signed_read_url(self, path: str, expires_at: datetime) -> str:
        if path not in self.stored_objects:
            raise FileNotFoundError(path)
        return f"{self.base_url}/{path}?op=get&expires={int(expires_at.timestamp())}"


@dataclass
class FirebaseStorageClient:
    """Default Firebase Storage bucket of the initialized app."""

    bucket_name: str | None = None

    def __post_init__(self):
        self._bucket = firebase_storage.bucket(self.bucket_name)

    def upload_bytes(self, path: str, data: bytes, content_type: str) -> None:
        blob = self._bucket.blob(path)
        blob.upload_from_string(data, content_type=content_type)

    def signed_read_url(self, path: str, expires_at: datetime) -> str:
        # V2 signing allows far-future expirations.
        blob = self._bucket.blob(path)
        return blob.generate_signed_url(
            expiration=expires_at, method="GET", version="v2"
        )


@dataclass
class CosStorageClient:
    """
    S3-compatible storage client for Tencent COS.
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str

    def __post_init__(self):
        # Use virtual-hosted style addressing to satisfy COS requirements.
        config = Config(
            s3={"addressing_style": "virtual"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint,
            region_name=self.region,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            config=config,
        )

    def upload_bytes(self, path: str, data: bytes, content_type: str) -> None:
        self._client.put_object(
            Bucket=self.bucket,
            Key=path,
            Body=data,
            ContentType=content_type,
        )

    def signed_read_url(self, path: str, expires_at: datetime) -> str:
        seconds = int((expires_at - datetime.now(timezone.utc)).total_seconds())
        return self._client.generate_presigned_url(
            ClientMethod="get_object",
            Params={"Bucket": self.bucket, "Key": path},
            ExpiresIn=max(1, min(seconds, MAX_PRESIGN_SECONDS)),
        )
