from collections.abc import AsyncIterable
from typing import Protocol


class AsyncBlobHandle(Protocol):
    """Represents a single blob in storage."""

    async def download(self) -> bytes:
        """Download blob contents as bytes."""
        ...

    async def upload_stream(self, chunks: AsyncIterable[bytes], length: int) -> None:
        """
        Create the blob exclusively and fill it from `chunks`.

        Raises ObjectExistsError if the blob already exists; an existing blob
        is never overwritten. If `chunks` raises, no blob is left behind.
        """
        ...


class AsyncContainerHandle(Protocol):
    """Represents a container/bucket in storage."""

    def get_blob(self, blob_name: str) -> AsyncBlobHandle:
        """Return a handle to a blob."""
        ...


class AsyncStorageAdapter(Protocol):
    """Protocol for a storage backend adapter."""

    def get_container(self, container_name: str) -> AsyncContainerHandle:
        """Return a handle to a container."""
        ...

    async def close(self) -> None:
        """Close any resources/connections."""
        ...
