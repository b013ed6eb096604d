import asyncio
import logging
from typing import Final

from starlette.datastructures import UploadFile

from uploader.core.config import Settings
from uploader.schemas import StoredObject
from uploader.services.naming import generate_filename, guess_extension, object_key, public_url
from uploader.services.storage import ObjectWriter, StorageError, StorageService

logger = logging.getLogger(__name__)

CACHE_CONTROL: Final[str] = "public, max-age=31536000, immutable"
DEFAULT_CONTENT_TYPE: Final[str] = "application/octet-stream"
CHUNK_SIZE: Final[int] = 1024 * 1024


class InvalidUploadError(Exception):
    """Raised when the request does not carry a usable file."""


class UploadService:
    """Streams uploaded files into the bucket under generated names."""

    def __init__(self, settings: Settings, storage: StorageService) -> None:
        self.settings = settings
        self.storage = storage

    async def store(self, upload: UploadFile) -> StoredObject:
        content_type = upload.content_type or DEFAULT_CONTENT_TYPE
        filename = generate_filename(guess_extension(upload.filename, upload.content_type))
        key = object_key(self.settings.bucket_path, filename)

        writer = self.storage.open_writer(
            key,
            content_type=content_type,
            cache_control=CACHE_CONTROL,
            metadata=self.settings.object_metadata,
        )
        try:
            size = await self._copy(upload, writer)
            await writer.close()
        except (Exception, asyncio.CancelledError) as exc:
            # The request task may already be cancelled; cleanup must still finish.
            await asyncio.shield(self._discard(writer, key))
            if isinstance(exc, (StorageError, asyncio.CancelledError)):
                raise
            raise StorageError(str(exc) or type(exc).__name__) from exc

        logger.info("uploaded: fn=%s; size=%d", filename, size)
        return StoredObject(
            key=key,
            filename=filename,
            url=public_url(self.settings.base_url, filename),
            size=size,
            content_type=content_type,
        )

    async def _copy(self, upload: UploadFile, writer: ObjectWriter) -> int:
        size = 0
        while True:
            chunk = await upload.read(CHUNK_SIZE)
            if not chunk:
                break
            await writer.write(chunk)
            size += len(chunk)
        return size

    async def _discard(self, writer: ObjectWriter, key: str) -> None:
        try:
            await writer.abort()
        except Exception:
            logger.exception("Failed to abort write of %s", key)
        try:
            await self.storage.delete_object(key)
        except Exception:
            logger.exception("Failed to delete partial object %s", key)
