"""
Unbuffered in-memory pipe connecting one producer coroutine to one consumer.

A write does not return until the reader has consumed every byte of it, so
the producer can never get ahead of the consumer. Either end may be closed
with an error, which the opposite end sees on its next (or pending) call.
"""

import asyncio

from .errors import PipeClosedError


class _Pipe:
    def __init__(self) -> None:
        self._cond = asyncio.Condition()
        self._write_lock = asyncio.Lock()
        # The single in-flight transfer, set by the writer and drained by reads.
        self._pending: memoryview | None = None
        self._reader_closed = False
        self._writer_closed = False
        self._reader_error: BaseException | None = None
        self._writer_error: BaseException | None = None

    def _has_pending(self) -> bool:
        return self._pending is not None and len(self._pending) > 0

    def _error_for_writer(self) -> BaseException:
        if self._reader_error is not None:
            return self._reader_error
        return PipeClosedError("write on closed pipe")

    async def write(self, data: bytes | bytearray | memoryview) -> int:
        async with self._write_lock:
            async with self._cond:
                if self._writer_closed:
                    raise PipeClosedError("write on closed pipe")
                if self._reader_closed:
                    raise self._error_for_writer()

                view = memoryview(bytes(data))
                if len(view) == 0:
                    return 0

                self._pending = view
                self._cond.notify_all()
                try:
                    await self._cond.wait_for(
                        lambda: not self._has_pending() or self._reader_closed
                    )
                    unread = len(self._pending) if self._pending is not None else 0
                finally:
                    self._pending = None

                if unread:
                    raise self._error_for_writer()
                return len(view)

    async def read(self, n: int = -1) -> bytes:
        async with self._cond:
            await self._cond.wait_for(
                lambda: self._has_pending() or self._writer_closed or self._reader_closed
            )
            if self._reader_closed:
                raise PipeClosedError("read on closed pipe")
            if self._has_pending():
                assert self._pending is not None
                size = len(self._pending) if n < 0 else min(n, len(self._pending))
                chunk = bytes(self._pending[:size])
                self._pending = self._pending[size:]
                self._cond.notify_all()
                return chunk
            if self._writer_error is not None:
                raise self._writer_error
            return b""

    async def close_reader(self, error: BaseException | None) -> None:
        async with self._cond:
            if not self._reader_closed:
                self._reader_closed = True
                self._reader_error = error
            self._cond.notify_all()

    async def close_writer(self, error: BaseException | None) -> None:
        async with self._cond:
            if not self._writer_closed:
                self._writer_closed = True
                self._writer_error = error
            self._cond.notify_all()


class PipeReader:
    """Consumer end of an async pipe."""

    def __init__(self, pipe: _Pipe) -> None:
        self._pipe = pipe

    async def read(self, n: int = -1) -> bytes:
        """
        Wait for the writer and return at most n bytes of its pending data.
        Returns b"" once the writer closed cleanly.
        """
        return await self._pipe.read(n)

    async def close(self) -> None:
        await self._pipe.close_reader(None)

    async def close_with_error(self, error: BaseException | None) -> None:
        """Close the reader; pending and future writes raise `error`."""
        await self._pipe.close_reader(error)


class PipeWriter:
    """Producer end of an async pipe."""

    def __init__(self, pipe: _Pipe) -> None:
        self._pipe = pipe

    async def write(self, data: bytes | bytearray | memoryview) -> int:
        """Wait until the reader has consumed all of `data`."""
        return await self._pipe.write(data)

    async def close(self) -> None:
        await self._pipe.close_writer(None)

    async def close_with_error(self, error: BaseException | None) -> None:
        """Close the writer; reads after the pending data raise `error`."""
        await self._pipe.close_writer(error)


def async_pipe() -> tuple[PipeReader, PipeWriter]:
    """Create a connected (reader, writer) pair."""
    pipe = _Pipe()
    return PipeReader(pipe), PipeWriter(pipe)
