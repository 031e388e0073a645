import asyncio
import hashlib
import logging
import posixpath
import re
from collections.abc import AsyncIterator
from dataclasses import dataclass
from pathlib import Path

from .errors import (
    DigestMismatchError,
    InvalidArgumentError,
    ShortTransferError,
    UploadError,
    UploadIOError,
)
from .pipe import PipeReader, async_pipe
from .storage_protocols import AsyncStorageAdapter
from .write_handle import BlockingWriteHandle

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024

_MD5_HEX = re.compile(r"^[0-9a-fA-F]{32}$")


@dataclass(frozen=True)
class UploadRequest:
    bucket: str
    object_name: str
    size: int
    md5_hex: str | None = None

    @property
    def identity(self) -> str:
        return posixpath.join(self.bucket, self.object_name)

    def validate(self) -> None:
        """Check the request before any destination is touched."""
        if not self.bucket or not self.object_name:
            raise InvalidArgumentError("Bucket and object names must be non-empty")
        if self.size < 0:
            raise InvalidArgumentError(f"Size must be >= 0, got {self.size}")
        if self.md5_hex is not None and not _MD5_HEX.match(self.md5_hex):
            raise InvalidArgumentError(f"Invalid MD5 hex digest '{self.md5_hex}'")


class _ExactSource:
    """
    Async iterable over exactly `size` bytes read from the pipe.

    Ending early raises ShortTransferError; a declared digest that does not
    match raises DigestMismatchError in place of the last chunk, so the
    backend never commits the object. The first error raised is kept in `error`
    in case the backend wraps it.
    """

    def __init__(
        self,
        reader: PipeReader,
        size: int,
        chunk_size: int,
        md5_hex: str | None = None,
    ) -> None:
        self._reader = reader
        self._size = size
        self._chunk_size = chunk_size
        self._md5_hex = md5_hex.lower() if md5_hex else None
        self.received = 0
        self._md5 = hashlib.md5()
        self.error: Exception | None = None

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._chunks()

    def check_digest(self) -> None:
        if self._md5_hex is not None and self._md5.hexdigest() != self._md5_hex:
            raise DigestMismatchError(
                f"MD5 mismatch: expected {self._md5_hex}, got {self._md5.hexdigest()}"
            )

    async def _chunks(self) -> AsyncIterator[bytes]:
        # Backends may stop iterating once they hold `size` bytes, so the
        # digest is checked before the last chunk is handed out.
        try:
            while self.received < self._size:
                want = min(self._chunk_size, self._size - self.received)
                chunk = await self._reader.read(want)
                if not chunk:
                    raise ShortTransferError(self._size, self.received)
                self.received += len(chunk)
                self._md5.update(chunk)
                if self.received == self._size:
                    self.check_digest()
                yield chunk
        except Exception as e:
            self.error = e
            raise


def _cancelled_error(request: UploadRequest) -> UploadIOError:
    return UploadIOError(f"Upload of '{request.identity}' was cancelled")


def _as_upload_error(request: UploadRequest, e: Exception) -> UploadError:
    if isinstance(e, UploadError):
        return e
    wrapped: UploadError
    if isinstance(e, ValueError):
        # Raised by adapters for names escaping their bucket.
        wrapped = InvalidArgumentError(str(e))
    else:
        wrapped = UploadIOError(f"Upload of '{request.identity}' failed: {e}")
    wrapped.__cause__ = e
    return wrapped


class AsyncUploader:
    """
    Streams uploads into a storage adapter through blocking write handles.

    Each begin_upload() spawns one worker task that creates the destination
    and copies exactly the declared number of bytes from the handle into it.
    The caller sees every failure from write() or close() on the handle.
    """

    def __init__(
        self,
        adapter: AsyncStorageAdapter,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be > 0")
        self.adapter = adapter
        self.chunk_size = chunk_size
        # Strong references so running workers are not garbage collected.
        self._workers: dict[
            asyncio.Task, tuple[UploadRequest, PipeReader, BlockingWriteHandle]
        ] = {}

    async def __aenter__(self) -> "AsyncUploader":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        """
        Cancel workers still waiting on their handles, then close the adapter.
        Cancelled uploads fail with UploadIOError on their handles.
        """
        workers = list(self._workers.items())
        for task, _ in workers:
            task.cancel()
        await asyncio.gather(*(task for task, _ in workers), return_exceptions=True)
        for _, (request, reader, handle) in workers:
            if not handle.released:
                # Cancelled before its first step, so the worker body never ran.
                await self._fail(request, reader, handle, _cancelled_error(request))
        await self.adapter.close()

    async def begin_upload(
        self,
        bucket: str,
        object_name: str,
        size: int,
        md5_hex: str | None = None,
    ) -> BlockingWriteHandle:
        """
        Start an upload and return its write handle immediately.

        The request is validated by the worker; invalid requests fail on the
        handle's first write() or on close().
        """
        request = UploadRequest(bucket, object_name, size, md5_hex)
        reader, writer = async_pipe()
        handle = BlockingWriteHandle(writer)
        task = asyncio.create_task(
            self._run_worker(request, reader, handle),
            name=f"upload:{request.identity}",
        )
        self._workers[task] = (request, reader, handle)
        task.add_done_callback(self._worker_done)
        return handle

    def _worker_done(self, task: asyncio.Task) -> None:
        self._workers.pop(task, None)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            # Only programming errors such as DoubleReleaseError get here.
            task.get_loop().call_exception_handler(
                {
                    "message": f"Upload worker {task.get_name()} crashed",
                    "exception": exc,
                    "task": task,
                }
            )

    async def _fail(
        self,
        request: UploadRequest,
        reader: PipeReader,
        handle: BlockingWriteHandle,
        err: UploadError,
    ) -> None:
        logger.warning("Upload of '%s' failed: %s", request.identity, err)
        await reader.close_with_error(err)
        handle.release(err)

    async def _run_worker(
        self,
        request: UploadRequest,
        reader: PipeReader,
        handle: BlockingWriteHandle,
    ) -> None:
        # Every exit path closes the reader once and releases the handle once.
        logger.debug("Upload of '%s' (%d bytes) started", request.identity, request.size)
        try:
            await self._transfer(request, reader)
        except asyncio.CancelledError:
            await self._fail(request, reader, handle, _cancelled_error(request))
            raise
        except Exception as e:
            await self._fail(request, reader, handle, _as_upload_error(request, e))
        else:
            logger.debug("Upload of '%s' finished", request.identity)
            handle.release(None)
            await reader.close()

    async def _transfer(self, request: UploadRequest, reader: PipeReader) -> None:
        request.validate()
        container = self.adapter.get_container(request.bucket)
        blob = container.get_blob(request.object_name)
        source = _ExactSource(reader, request.size, self.chunk_size, request.md5_hex)
        if request.size == 0:
            # Nothing will be read from the source, so check the empty digest now.
            source.check_digest()
        try:
            await blob.upload_stream(source, request.size)
        except Exception as e:
            # Backends may wrap errors raised while they iterate the source.
            if source.error is not None and source.error is not e:
                raise source.error from e
            raise

    async def put_bytes(
        self,
        bucket: str,
        object_name: str,
        data: bytes,
        md5_hex: str | None = None,
    ) -> int:
        """Upload `data` as a new object and wait until it is stored."""
        handle = await self.begin_upload(bucket, object_name, len(data), md5_hex)
        async with handle:
            await handle.write(data)
        return len(data)

    async def put_file(
        self,
        bucket: str,
        object_name: str,
        path: str | Path,
        md5_hex: str | None = None,
    ) -> int:
        """Upload a local file as a new object, streaming it in chunks."""
        path = Path(path)
        size = path.stat().st_size
        handle = await self.begin_upload(bucket, object_name, size, md5_hex)
        async with handle:
            with path.open("rb") as f:
                while chunk := f.read(self.chunk_size):
                    await handle.write(chunk)
        return size
