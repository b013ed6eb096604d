import asyncio
import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from uploader.core.config import Settings

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})


class StorageError(Exception):
    """Raised when the object store rejects or fails an operation."""


@dataclass(frozen=True)
class ObjectInfo:
    key: str
    size: int
    content_type: str | None = None
    cache_control: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)


class ObjectWriter:
    """Write handle for a single object.

    Bytes passed to :meth:`write` stay invisible to readers until
    :meth:`close` returns. :meth:`abort` drops whatever was staged.
    """

    key: str

    async def write(self, data: bytes) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        raise NotImplementedError

    async def abort(self) -> None:
        raise NotImplementedError


class S3ObjectWriter(ObjectWriter):
    def __init__(
        self,
        client: Any,
        bucket: str,
        key: str,
        *,
        content_type: str,
        cache_control: str,
        metadata: dict[str, str],
        part_size: int,
    ) -> None:
        self.client = client
        self.bucket = bucket
        self.key = key
        self.part_size = part_size
        self._object_args = {
            "Bucket": bucket,
            "Key": key,
            "ContentType": content_type,
            "CacheControl": cache_control,
            "Metadata": dict(metadata),
        }
        self._buffer = bytearray()
        self._upload_id: str | None = None
        self._parts: list[dict[str, Any]] = []
        self._closed = False

    async def write(self, data: bytes) -> None:
        if self._closed:
            raise StorageError(f"writer for {self.key} is closed")
        self._buffer.extend(data)
        while len(self._buffer) >= self.part_size:
            chunk = bytes(self._buffer[: self.part_size])
            del self._buffer[: self.part_size]
            await self._run(self._upload_part, chunk)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._upload_id is None:
            await self._run(self._put_object, bytes(self._buffer))
        else:
            if self._buffer:
                await self._run(self._upload_part, bytes(self._buffer))
            await self._run(self._complete)
        self._buffer.clear()

    async def abort(self) -> None:
        self._closed = True
        self._buffer.clear()
        if self._upload_id is None:
            return
        upload_id, self._upload_id = self._upload_id, None
        await self._run(
            self.client.abort_multipart_upload,
            Bucket=self.bucket,
            Key=self.key,
            UploadId=upload_id,
        )

    async def _run(self, func, *args, **kwargs) -> Any:
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(str(exc)) from exc

    def _put_object(self, body: bytes) -> None:
        self.client.put_object(Body=body, **self._object_args)

    def _upload_part(self, body: bytes) -> None:
        if self._upload_id is None:
            response = self.client.create_multipart_upload(**self._object_args)
            self._upload_id = response["UploadId"]
        part_number = len(self._parts) + 1
        response = self.client.upload_part(
            Bucket=self.bucket,
            Key=self.key,
            UploadId=self._upload_id,
            PartNumber=part_number,
            Body=body,
        )
        self._parts.append({"ETag": response["ETag"], "PartNumber": part_number})

    def _complete(self) -> None:
        self.client.complete_multipart_upload(
            Bucket=self.bucket,
            Key=self.key,
            UploadId=self._upload_id,
            MultipartUpload={"Parts": self._parts},
        )
        self._upload_id = None


class StorageService:
    """Default S3-compatible storage backend."""

    def __init__(self, settings: Settings, client: Any | None = None) -> None:
        self.settings = settings
        self.bucket = settings.bucket
        if client is None:
            session = boto3.session.Session(**(settings.storage_credentials or {}))
            client = session.client(
                "s3",
                endpoint_url=settings.s3_endpoint,
                region_name=settings.s3_region,
                config=Config(signature_version="s3v4"),
            )
        self.client = client

    def open_writer(
        self,
        key: str,
        *,
        content_type: str,
        cache_control: str,
        metadata: dict[str, str],
    ) -> ObjectWriter:
        return S3ObjectWriter(
            self.client,
            self.bucket,
            key,
            content_type=content_type,
            cache_control=cache_control,
            metadata=metadata,
            part_size=self.settings.s3_part_size,
        )

    async def delete_object(self, key: str) -> None:
        def _delete() -> None:
            self.client.delete_object(Bucket=self.bucket, Key=key)

        try:
            await asyncio.to_thread(_delete)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(str(exc)) from exc

    async def head_object(self, key: str) -> ObjectInfo | None:
        def _head() -> dict[str, Any]:
            return self.client.head_object(Bucket=self.bucket, Key=key)

        try:
            response = await asyncio.to_thread(_head)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in _NOT_FOUND_CODES:
                return None
            raise StorageError(str(exc)) from exc
        except BotoCoreError as exc:
            raise StorageError(str(exc)) from exc

        return ObjectInfo(
            key=key,
            size=response.get("ContentLength", 0),
            content_type=response.get("ContentType"),
            cache_control=response.get("CacheControl"),
            metadata=response.get("Metadata", {}),
        )


class LocalObjectWriter(ObjectWriter):
    def __init__(self, target: Path, key: str, info: dict[str, Any]) -> None:
        self.key = key
        self.target = target
        self.info = info
        target.parent.mkdir(parents=True, exist_ok=True)
        self._file = tempfile.NamedTemporaryFile(
            dir=target.parent, prefix=f".{target.name}.", suffix=".part", delete=False
        )
        self._size = 0

    async def write(self, data: bytes) -> None:
        if self._file.closed:
            raise StorageError(f"writer for {self.key} is closed")
        try:
            await asyncio.to_thread(self._file.write, data)
        except OSError as exc:
            raise StorageError(str(exc)) from exc
        self._size += len(data)

    async def close(self) -> None:
        if self._file.closed:
            return

        def _commit() -> None:
            self._file.flush()
            os.fsync(self._file.fileno())
            self._file.close()
            sidecar = _sidecar_path(self.target)
            sidecar.write_text(json.dumps({**self.info, "size": self._size}), encoding="utf-8")
            os.replace(self._file.name, self.target)

        try:
            await asyncio.to_thread(_commit)
        except OSError as exc:
            raise StorageError(str(exc)) from exc

    async def abort(self) -> None:
        def _discard() -> None:
            self._file.close()
            Path(self._file.name).unlink(missing_ok=True)

        await asyncio.to_thread(_discard)


def _sidecar_path(path: Path) -> Path:
    return path.with_name(f".{path.name}.json")


class LocalStorageService(StorageService):
    """Local filesystem storage intended for development use."""

    def __init__(self, settings: Settings) -> None:  # type: ignore[override]
        self.settings = settings
        self.base_path = Path(settings.local_storage_dir).resolve()
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _key_path(self, key: str) -> Path:
        # Prevent directory traversal by resolving inside base path
        candidate = self.base_path.joinpath(*Path(key).parts).resolve()
        if not candidate.is_relative_to(self.base_path) or candidate == self.base_path:
            raise ValueError("Invalid storage key")
        return candidate

    def open_writer(  # type: ignore[override]
        self,
        key: str,
        *,
        content_type: str,
        cache_control: str,
        metadata: dict[str, str],
    ) -> ObjectWriter:
        info = {
            "content_type": content_type,
            "cache_control": cache_control,
            "metadata": dict(metadata),
        }
        return LocalObjectWriter(self._key_path(key), key, info)

    async def delete_object(self, key: str) -> None:  # type: ignore[override]
        path = self._key_path(key)

        def _delete() -> None:
            path.unlink(missing_ok=True)
            _sidecar_path(path).unlink(missing_ok=True)

        await asyncio.to_thread(_delete)

    async def head_object(self, key: str) -> ObjectInfo | None:  # type: ignore[override]
        path = self._key_path(key)
        if not path.is_file():
            return None
        sidecar = _sidecar_path(path)
        info = json.loads(sidecar.read_text(encoding="utf-8")) if sidecar.exists() else {}
        return ObjectInfo(
            key=key,
            size=path.stat().st_size,
            content_type=info.get("content_type"),
            cache_control=info.get("cache_control"),
            metadata=info.get("metadata", {}),
        )

    async def read_bytes(self, key: str) -> bytes:
        path = self._key_path(key)
        if not path.is_file():
            raise FileNotFoundError(key)
        return await asyncio.to_thread(path.read_bytes)


def create_storage_service(settings: Settings) -> StorageService:
    if settings.storage_backend == "local":
        logger.info("Using local storage at %s", settings.local_storage_dir)
        return LocalStorageService(settings)
    return StorageService(settings)
