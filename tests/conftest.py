from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from uploader.core.config import Settings
from uploader.main import create_app
from uploader.services import storage as storage_service
from uploader.services.storage import StorageError


def make_settings(tmp_path: Path, **overrides) -> Settings:
    values = {
        "bucket": "test-bucket",
        "bucket_path": "",
        "base_url": "https://cdn.example.com/files",
        "auth_user": None,
        "auth_password": None,
        "object_metadata": {},
        "storage_backend": "local",
        "local_storage_dir": tmp_path / "bucket",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class FailingWriter(storage_service.LocalObjectWriter):
    """Accepts the first chunk, then fails like a dropped connection."""

    fail_on: str = "write"
    abort_fails: bool = False

    async def write(self, data: bytes) -> None:  # type: ignore[override]
        await super().write(data)
        if self.fail_on == "write":
            raise StorageError("connection reset by peer")
        if self.fail_on == "response":
            raise KeyError("ETag")

    async def close(self) -> None:  # type: ignore[override]
        if self.fail_on == "close":
            raise StorageError("commit rejected")
        await super().close()

    async def abort(self) -> None:  # type: ignore[override]
        await super().abort()
        if self.abort_fails:
            raise StorageError("abort failed")


class FailingStorage(storage_service.LocalStorageService):
    def __init__(
        self, settings: Settings, fail_on: str = "write", abort_fails: bool = False
    ) -> None:
        super().__init__(settings)
        self.fail_on = fail_on
        self.abort_fails = abort_fails
        self.deleted: list[str] = []
        self.keys: list[str] = []

    def open_writer(self, key, *, content_type, cache_control, metadata):  # type: ignore[override]
        self.keys.append(key)
        info = {
            "content_type": content_type,
            "cache_control": cache_control,
            "metadata": dict(metadata),
        }
        writer = FailingWriter(self._key_path(key), key, info)
        writer.fail_on = self.fail_on
        writer.abort_fails = self.abort_fails
        return writer

    async def delete_object(self, key):  # type: ignore[override]
        self.deleted.append(key)
        await super().delete_object(key)


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture
def storage(settings):
    return storage_service.LocalStorageService(settings)


def client_for(app) -> AsyncClient:
    transport = ASGITransport(app=app)
    return AsyncClient(transport=transport, base_url="http://testserver")


@pytest_asyncio.fixture
async def client(settings, storage):
    app = create_app(settings, storage)
    async with client_for(app) as client:
        yield client
