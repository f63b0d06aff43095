"""
Storage abstraction for S3-compatible object storage and in-memory testing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError


class StorageError(Exception):
    """Raised by storage clients when an object operation fails."""


class StorageClient(Protocol):
    """Defines the operations the photo pipeline needs from object storage."""

    def bucket_exists(self) -> bool:
        ...

    def create_bucket(self) -> None:
        ...

    def upload_bytes(
        self,
        path: str,
        data: bytes,
        content_type: str,
        *,
        cache_control: str = "max-age=3600",
        upsert: bool = False,
    ) -> str:
        ...

    def public_url(self, path: str) -> str:
        ...

    def presign_get(self, path: str, expires_in: int = 3600) -> str:
        ...

    def remove(self, path: str) -> None:
        ...

    def list_paths(self, prefix: str) -> list[str]:
        ...


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    bucket: str = "chat-photos"
    base_url: str = "https://example.test/storage"
    bucket_created: bool = False
    stored_objects: dict = field(default_factory=dict)
    content_types: dict = field(default_factory=dict)

    def bucket_exists(self) -> bool:
        return self.bucket_created

    def create_bucket(self) -> None:
        self.bucket_created = True

    def upload_bytes(
        self,
        path: str,
        data: bytes,
        content_type: str,
        *,
        cache_control: str = "max-age=3600",
        upsert: bool = False,
    ) -> str:
        if not upsert and path in self.stored_objects:
            raise StorageError(f"Object already exists: {path}")
        self.stored_objects[path] = data
        self.content_types[path] = content_type
        return path

    def public_url(self, path: str) -> str:
        return f"{self.base_url}/{self.bucket}/{path}"

    def presign_get(self, path: str, expires_in: int = 3600) -> str:
        if path not in self.stored_objects:
            raise StorageError(f"Object not found: {path}")
        return f"{self.base_url}/{self.bucket}/{path}?op=get&expires={expires_in}"

    def remove(self, path: str) -> None:
        self.stored_objects.pop(path, None)
        self.content_types.pop(path, None)

    def list_paths(self, prefix: str) -> list[str]:
        return sorted(p for p in self.stored_objects if p.startswith(prefix))


@dataclass
class S3StorageClient:
    """
    S3-compatible storage client (Supabase Storage S3 endpoint, MinIO, AWS).
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str
    public_base_url: Optional[str] = None

    def __post_init__(self):
        # Path-style addressing is what most self-hosted S3 gateways expect.
        config = Config(
            s3={"addressing_style": "path"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            config=config,
        )

    def bucket_exists(self) -> bool:
        try:
            self._client.head_bucket(Bucket=self.bucket)
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code", "")
            if code in ("404", "NoSuchBucket", "NotFound"):
                return False
            raise StorageError(str(exc)) from exc
        return True

    def create_bucket(self) -> None:
        try:
            self._client.create_bucket(Bucket=self.bucket)
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code", "")
            # Another caller created it first.
            if code in ("BucketAlreadyOwnedByYou", "BucketAlreadyExists"):
                return
            raise StorageError(str(exc)) from exc

    def upload_bytes(
        self,
        path: str,
        data: bytes,
        content_type: str,
        *,
        cache_control: str = "max-age=3600",
        upsert: bool = False,
    ) -> str:
        params = {
            "Bucket": self.bucket,
            "Key": path,
            "Body": data,
            "ContentType": content_type,
            "CacheControl": cache_control,
        }
        if not upsert:
            params["IfNoneMatch"] = "*"
        try:
            self._client.put_object(**params)
        except ClientError as exc:
            raise StorageError(str(exc)) from exc
        return path

    def public_url(self, path: str) -> str:
        base = self.public_base_url or f"{self.endpoint.rstrip('/')}/{self.bucket}"
        return f"{base.rstrip('/')}/{path}"

    def presign_get(self, path: str, expires_in: int = 3600) -> str:
        return self._client.generate_presigned_url(
            ClientMethod="get_object",
            Params={"Bucket": self.bucket, "Key": path},
            ExpiresIn=expires_in,
        )

    def remove(self, path: str) -> None:
        try:
            self._client.delete_object(Bucket=self.bucket, Key=path)
        except ClientError as exc:
            raise StorageError(str(exc)) from exc

    def list_paths(self, prefix: str) -> list[str]:
        paths: list[str] = []
        paginator = self._client.get_paginator("list_objects_v2")
        try:
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                for item in page.get("Contents", []):
                    paths.append(item["Key"])
        except ClientError as exc:
            raise StorageError(str(exc)) from exc
        return paths
