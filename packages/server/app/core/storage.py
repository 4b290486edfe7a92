"""
Blob storage for staged asset versions.

The hosted platform exposes an S3-compatible storage API, so production uses
boto3 against that endpoint; development and tests use a local directory.
boto3 is synchronous, so calls run in a worker thread.
"""

from __future__ import annotations

import asyncio
from functools import lru_cache
from pathlib import Path

import structlog

from app.core.config import get_settings

log = structlog.get_logger()


class StorageError(Exception):
    pass


class BlobNotFound(StorageError):
    pass


class BlobStorage:
    """Interface shared by the storage backends."""

    async def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> None:
        raise NotImplementedError

    async def get(self, key: str) -> bytes:
        raise NotImplementedError

    async def remove(self, keys: list[str]) -> None:
        raise NotImplementedError

    async def exists(self, key: str) -> bool:
        raise NotImplementedError


class LocalBlobStorage(BlobStorage):
    def __init__(self, root: str | Path, bucket: str):
        self._root = Path(root) / bucket

    def _path(self, key: str) -> Path:
        path = (self._root / key).resolve()
        if self._root.resolve() not in path.parents:
            raise StorageError(f"Invalid storage key: {key}")
        return path

    async def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> None:
        path = self._path(key)
        if path.exists():
            raise StorageError(f"Failed to upload file: {key} already exists")
        path.parent.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(path.write_bytes, data)

    async def get(self, key: str) -> bytes:
        path = self._path(key)
        if not path.exists():
            raise BlobNotFound(f"Blob not found: {key}")
        return await asyncio.to_thread(path.read_bytes)

    async def remove(self, keys: list[str]) -> None:
        for key in keys:
            self._path(key).unlink(missing_ok=True)

    async def exists(self, key: str) -> bool:
        return self._path(key).exists()


class S3BlobStorage(BlobStorage):
    def __init__(
        self,
        bucket: str,
        endpoint_url: str | None = None,
        region: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
    ):
        self._bucket = bucket
        self._endpoint_url = endpoint_url
        self._region = region
        self._access_key = access_key
        self._secret_key = secret_key
        self._client = None

    def _get_client(self):
        if self._client is not None:
            return self._client
        import boto3

        kwargs = {
            "service_name": "s3",
            "region_name": self._region,
            "endpoint_url": self._endpoint_url,
        }
        if self._access_key:
            kwargs["aws_access_key_id"] = self._access_key
        if self._secret_key:
            kwargs["aws_secret_access_key"] = self._secret_key
        self._client = boto3.client(**kwargs)
        return self._client

    async def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> None:
        from botocore.exceptions import BotoCoreError, ClientError

        client = self._get_client()
        try:
            await asyncio.to_thread(
                client.put_object,
                Bucket=self._bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
                IfNoneMatch="*",
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Failed to upload file: {exc}") from exc

    async def get(self, key: str) -> bytes:
        from botocore.exceptions import BotoCoreError, ClientError

        client = self._get_client()
        try:
            response = await asyncio.to_thread(client.get_object, Bucket=self._bucket, Key=key)
            return await asyncio.to_thread(response["Body"].read)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
                raise BlobNotFound(f"Blob not found: {key}") from exc
            raise StorageError(f"Failed to download file: {exc}") from exc
        except BotoCoreError as exc:
            raise StorageError(f"Failed to download file: {exc}") from exc

    async def remove(self, keys: list[str]) -> None:
        from botocore.exceptions import BotoCoreError, ClientError

        if not keys:
            return
        client = self._get_client()
        try:
            await asyncio.to_thread(
                client.delete_objects,
                Bucket=self._bucket,
                Delete={"Objects": [{"Key": key} for key in keys], "Quiet": True},
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Failed to remove files: {exc}") from exc

    async def exists(self, key: str) -> bool:
        from botocore.exceptions import ClientError

        client = self._get_client()
        try:
            await asyncio.to_thread(client.head_object, Bucket=self._bucket, Key=key)
            return True
        except ClientError:
            return False


@lru_cache
def get_storage() -> BlobStorage:
    """FastAPI dependency returning the configured storage backend."""
    settings = get_settings()
    if settings.storage_backend == "s3":
        return S3BlobStorage(
            bucket=settings.storage_bucket,
            endpoint_url=settings.storage_endpoint_url or None,
            region=settings.storage_region or None,
            access_key=settings.storage_access_key or None,
            secret_key=settings.storage_secret_key or None,
        )
    log.info("storage.local_backend", root=settings.storage_local_root)
    return LocalBlobStorage(settings.storage_local_root, settings.storage_bucket)
