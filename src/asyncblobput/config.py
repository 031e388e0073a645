import os
from dataclasses import dataclass
from typing import Literal

from dotenv import load_dotenv

from .azure_blob_adapter import AzureBlobAdapter
from .local_file_adapter import LocalFileAdapter
from .storage_protocols import AsyncStorageAdapter
from .uploader import DEFAULT_CHUNK_SIZE, AsyncUploader

Backend = Literal["local", "azure"]


@dataclass(frozen=True)
class UploadSettings:
    backend: Backend = "local"
    local_path: str = "./data"
    azure_conn_str: str | None = None
    chunk_size: int = DEFAULT_CHUNK_SIZE

    @classmethod
    def from_env(cls, dotenv_path: str | None = None) -> "UploadSettings":
        """
        Read settings from the environment, after loading a .env file if present.
        Variables already set in the environment win over the .env file.
        """
        load_dotenv(dotenv_path)

        backend = os.environ.get("ASYNCBLOBPUT_BACKEND", "local").strip().lower()
        if backend not in ("local", "azure"):
            raise ValueError(f"Unknown storage backend '{backend}'")

        raw_chunk = os.environ.get("ASYNCBLOBPUT_CHUNK_SIZE", str(DEFAULT_CHUNK_SIZE))
        try:
            chunk_size = int(raw_chunk)
        except ValueError:
            raise ValueError(f"ASYNCBLOBPUT_CHUNK_SIZE must be an integer: {raw_chunk!r}")
        if chunk_size <= 0:
            raise ValueError("ASYNCBLOBPUT_CHUNK_SIZE must be > 0")

        return cls(
            backend=backend,  # type: ignore[arg-type]
            local_path=os.environ.get("ASYNCBLOBPUT_LOCAL_PATH", "./data"),
            azure_conn_str=os.environ.get("AZURE_CONN_STR"),
            chunk_size=chunk_size,
        )


def build_adapter(settings: UploadSettings) -> AsyncStorageAdapter:
    if settings.backend == "azure":
        if not settings.azure_conn_str:
            raise ValueError("AZURE_CONN_STR is required for the azure backend")
        return AzureBlobAdapter.from_connection_string(settings.azure_conn_str)
    return LocalFileAdapter(settings.local_path)


def uploader_from_env(dotenv_path: str | None = None) -> AsyncUploader:
    settings = UploadSettings.from_env(dotenv_path)
    return AsyncUploader(build_adapter(settings), chunk_size=settings.chunk_size)
