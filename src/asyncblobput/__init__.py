"""
asyncblobput
============

Streaming, create-only uploads into local filesystem or Azure Blob Storage,
driven through a write handle whose close() waits for the upload to finish.

Main entry points:
- AsyncUploader: starts uploads and returns BlockingWriteHandle objects
- BlockingWriteHandle: write() with backpressure, close() waits for the worker
- LocalFileAdapter, AzureBlobAdapter: storage backends
- UploadSettings, uploader_from_env: environment-driven configuration
- UploadError and subclasses: failures reported by write()/close()

Example:
    from asyncblobput import AsyncUploader, LocalFileAdapter

    async with AsyncUploader(LocalFileAdapter("./data")) as uploader:
        handle = await uploader.begin_upload("bucket", "hello.txt", 5)
        await handle.write(b"hello")
        await handle.close()
"""

from .uploader import AsyncUploader, UploadRequest
from .write_handle import BlockingWriteHandle
from .pipe import PipeReader, PipeWriter, async_pipe

from .errors import (
    BlobNotFoundError,
    DigestMismatchError,
    DoubleReleaseError,
    InvalidArgumentError,
    ObjectExistsError,
    PipeClosedError,
    ShortTransferError,
    UploadError,
    UploadIOError,
)

from .storage_protocols import (
    AsyncStorageAdapter,
    AsyncContainerHandle,
    AsyncBlobHandle,
)
from .local_file_adapter import LocalFileAdapter
from .azure_blob_adapter import AzureBlobAdapter
from .config import UploadSettings, build_adapter, uploader_from_env

import importlib.metadata

try:
    __version__ = importlib.metadata.version(__name__)
except importlib.metadata.PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = [
    "AsyncUploader",
    "UploadRequest",
    "BlockingWriteHandle",
    "PipeReader",
    "PipeWriter",
    "async_pipe",
    "BlobNotFoundError",
    "DigestMismatchError",
    "DoubleReleaseError",
    "InvalidArgumentError",
    "ObjectExistsError",
    "PipeClosedError",
    "ShortTransferError",
    "UploadError",
    "UploadIOError",
    "AsyncStorageAdapter",
    "AsyncContainerHandle",
    "AsyncBlobHandle",
    "LocalFileAdapter",
    "AzureBlobAdapter",
    "UploadSettings",
    "build_adapter",
    "uploader_from_env",
]
