import logging
import os
from collections.abc import AsyncIterable
from pathlib import Path

from .errors import BlobNotFoundError, ObjectExistsError
from .storage_protocols import (
    AsyncBlobHandle,
    AsyncContainerHandle,
    AsyncStorageAdapter,
)

logger = logging.getLogger(__name__)


def _ensure_within(base: Path, target: Path, strict: bool = True) -> Path:
    """
    Resolve target path and ensure it is inside base path.
    strict=True will fail if the target does not exist (good for read).
    strict=False allows non-existing targets (good for upload); symlinks in the
    existing part of the path are still followed and checked.
    """
    base_resolved = base.resolve(strict=True)
    target_resolved = target.resolve(strict=strict)
    if target_resolved == base_resolved or not target_resolved.is_relative_to(
        base_resolved
    ):
        raise ValueError(
            f"Path {target_resolved} escapes base directory {base_resolved}"
        )
    return target_resolved


class LocalFileAdapter(AsyncStorageAdapter):
    """Local filesystem adapter: buckets are directories, objects are files."""

    def __init__(self, base_path: str):
        self._base_path = Path(base_path).resolve()
        self._base_path.mkdir(parents=True, exist_ok=True)

    def get_container(self, container_name: str) -> AsyncContainerHandle:
        container_path = _ensure_within(
            self._base_path, self._base_path / container_name, strict=False
        )
        container_path.mkdir(parents=True, exist_ok=True)
        return _LocalContainerHandle(container_name, container_path)

    async def close(self) -> None:
        pass


class _LocalContainerHandle(AsyncContainerHandle):
    def __init__(self, container_name: str, container_path: Path):
        self._container_name = container_name
        self._container_path = container_path

    def get_blob(self, blob_name: str) -> AsyncBlobHandle:
        blob_path = _ensure_within(
            self._container_path, self._container_path / blob_name, strict=False
        )
        return _LocalBlobHandle(
            blob_path, self._container_path, self._container_name, blob_name
        )


class _LocalBlobHandle(AsyncBlobHandle):
    def __init__(
        self,
        file_path: Path,
        container_path: Path,
        container_name: str,
        blob_name: str,
    ):
        self._file_path = file_path
        self._container_path = container_path
        self._container_name = container_name
        self._blob_name = blob_name

    async def download(self) -> bytes:
        if not self._file_path.exists():
            raise BlobNotFoundError(f"Blob '{self._blob_name}' not found")
        _ensure_within(self._container_path, self._file_path, strict=True)
        return self._file_path.read_bytes()

    async def upload_stream(self, chunks: AsyncIterable[bytes], length: int) -> None:
        _ensure_within(self._container_path, self._file_path, strict=False)
        self._file_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            # "x" maps to O_CREAT | O_EXCL: the existence check is the create itself.
            f = self._file_path.open("xb")
        except FileExistsError:
            raise ObjectExistsError(self._container_name, self._blob_name) from None

        try:
            with f:
                async for chunk in chunks:
                    f.write(chunk)
                f.flush()
                os.fsync(f.fileno())
        except BaseException:
            logger.debug("Removing partial file %s", self._file_path)
            self._file_path.unlink(missing_ok=True)
            raise
