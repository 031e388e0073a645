import asyncio

from .errors import DoubleReleaseError
from .pipe import PipeWriter


class BlockingWriteHandle:
    """
    Write handle whose close() waits for the upload worker to finish.

    Writes go straight to the pipe, so they return once the worker has read
    them. close() closes the pipe and then waits until the worker calls
    release(), returning only after the destination has been finalized or the
    upload has failed.

    release() must be called exactly once by the worker. A second call is a
    programming error and raises DoubleReleaseError.
    """

    def __init__(self, writer: PipeWriter) -> None:
        self._writer = writer
        # One-shot latch, resolved by release() with the worker's error (or None).
        self._done: asyncio.Future[BaseException | None] = (
            asyncio.get_running_loop().create_future()
        )

    async def __aenter__(self) -> "BlockingWriteHandle":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def released(self) -> bool:
        return self._done.done()

    async def write(self, data: bytes | bytearray | memoryview) -> int:
        return await self._writer.write(data)

    async def close(self) -> None:
        """
        Close the write side and wait for release().
        Raises the worker's error if it reported one, else any error from
        closing the pipe.
        """
        close_error: Exception | None = None
        try:
            await self._writer.close()
        except Exception as e:
            close_error = e

        # Shielded so cancelling the caller never cancels the latch itself.
        worker_error = await asyncio.shield(self._done)
        if worker_error is not None:
            raise worker_error
        if close_error is not None:
            raise close_error

    def release(self, error: BaseException | None = None) -> None:
        """Unblock close(). Only call this once."""
        if self._done.done():
            raise DoubleReleaseError("BlockingWriteHandle released more than once")
        self._done.set_result(error)
