import mimetypes
from collections.abc import AsyncIterable

from azure.core.exceptions import (
    HttpResponseError,
    ResourceExistsError,
    ResourceNotFoundError,
)
from azure.storage.blob import ContentSettings
from azure.storage.blob.aio import BlobServiceClient

from .errors import BlobNotFoundError, ObjectExistsError
from .storage_protocols import (
    AsyncBlobHandle,
    AsyncContainerHandle,
    AsyncStorageAdapter,
)


class AzureBlobAdapter(AsyncStorageAdapter):
    """Azure Blob Storage adapter: buckets are containers, objects are blobs."""

    def __init__(self, blob_service_client: BlobServiceClient):
        """
        Create an adapter from an existing BlobServiceClient.
        This allows custom authentication and configuration.
        """
        self._client = blob_service_client

    @classmethod
    def from_connection_string(cls, connection_string: str) -> "AzureBlobAdapter":
        """
        Convenience builder: create adapter from a connection string.
        """
        client = BlobServiceClient.from_connection_string(connection_string)
        return cls(client)

    def get_container(self, container_name: str) -> AsyncContainerHandle:
        return _AzureContainerHandle(self._client.get_container_client(container_name))

    async def close(self) -> None:
        await self._client.close()


class _AzureContainerHandle(AsyncContainerHandle):
    def __init__(self, container_client):
        self._container_client = container_client

    def get_blob(self, blob_name: str) -> AsyncBlobHandle:
        return _AzureBlobHandle(self._container_client.get_blob_client(blob_name))


class _AzureBlobHandle(AsyncBlobHandle):
    def __init__(self, blob_client):
        self._blob_client = blob_client

    def _exists_error(self) -> ObjectExistsError:
        return ObjectExistsError(
            self._blob_client.container_name, self._blob_client.blob_name
        )

    async def download(self) -> bytes:
        try:
            stream = await self._blob_client.download_blob()
            return await stream.readall()
        except ResourceNotFoundError:
            raise BlobNotFoundError(f"Blob '{self._blob_client.blob_name}' not found")

    async def upload_stream(
        self,
        chunks: AsyncIterable[bytes],
        length: int,
        content_type: str | None = None,
    ) -> None:
        """
        Note: Guesses content type if not provided.
        overwrite=False sends If-None-Match: *, so an existing blob is rejected
        by the service and nothing is committed if `chunks` fails.
        """

        if content_type is None:
            guessed, _ = mimetypes.guess_type(self._blob_client.blob_name)
            content_type = guessed or "application/octet-stream"

        try:
            await self._blob_client.upload_blob(
                chunks,
                length=length,
                overwrite=False,
                content_settings=ContentSettings(content_type=content_type),
            )
        except ResourceExistsError:
            raise self._exists_error() from None
        except HttpResponseError as e:
            if getattr(e, "status_code", None) == 409:
                raise self._exists_error() from None
            raise
