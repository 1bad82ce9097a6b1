"""
Azure Blob Storage repository.

Uses the asyncio ``ContainerClient`` from azure-storage-blob. When no
credential is given, ``DefaultAzureCredential`` from azure-identity is used.
"""

import logging
from collections.abc import Iterable
from typing import IO, Any

from azure.core.exceptions import ResourceExistsError, ResourceNotFoundError
from azure.identity.aio import DefaultAzureCredential
from azure.storage.blob.aio import ContainerClient

from ..constants import AZURE_DELETE_BATCH_SIZE
from ..exceptions import NullArgumentError
from ..observability import timed_operation
from .blob import BlobInfo, BlobRepository

logger = logging.getLogger(__name__)


class AzureBlobRepository(BlobRepository):
    """
    Blob repository over an Azure Storage container.

    Example:
        repo = AzureBlobRepository.from_account_url(
            "https://myaccount.blob.core.windows.net", "documents"
        )
        await repo.ensure_container()
        result = await repo.find("reports/")
    """

    def __init__(self, container: ContainerClient):
        """
        Initialize the repository.

        Args:
            container: Async container client
        """
        if container is None:
            raise NullArgumentError("container")
        super().__init__()
        self._container = container

    @classmethod
    def from_account_url(
        cls,
        account_url: str,
        container_name: str,
        credential: Any | None = None,
    ) -> "AzureBlobRepository":
        """
        Create a repository for a container in a storage account.

        Args:
            account_url: e.g. ``https://myaccount.blob.core.windows.net``
            container_name: Container holding the blobs
            credential: Any credential accepted by azure-storage-blob;
                ``DefaultAzureCredential`` when omitted
        """
        if credential is None:
            credential = DefaultAzureCredential()
        return cls(ContainerClient(account_url, container_name, credential=credential))

    @property
    def container(self) -> ContainerClient:
        return self._container

    async def ensure_container(self) -> None:
        """Create the container if it does not exist."""
        try:
            await self._container.create_container()
            logger.info(f"Created Azure container '{self._container.container_name}'")
        except ResourceExistsError:
            pass

    async def close(self) -> None:
        await self._container.close()

    @timed_operation("repository.upload")
    async def upload(self, blob: BlobInfo, stream: IO[bytes]) -> BlobInfo:
        self._require(blob, "entity")
        self._require(stream, "stream")
        blob_client = await self._container.upload_blob(blob.id, stream, overwrite=True)
        blob.uri = blob_client.url
        logger.debug(f"Uploaded blob '{blob.id}'")
        return blob

    @timed_operation("repository.download")
    async def download(self, blob: BlobInfo, stream: IO[bytes]) -> BlobInfo:
        self._require(blob, "entity")
        self._require(stream, "stream")
        downloader = await self._container.download_blob(blob.id)
        blob.size = await downloader.readinto(stream)
        return blob

    @timed_operation("repository.delete")
    async def delete(self, entity: BlobInfo) -> None:
        """Delete a blob; a missing blob is not an error."""
        self._require(entity, "entity")
        try:
            await self._container.delete_blob(entity.id)
        except ResourceNotFoundError:
            logger.debug(f"Blob '{entity.id}' already deleted")

    @timed_operation("repository.delete_many")
    async def delete_many(self, entities: Iterable[BlobInfo]) -> None:
        """Delete in batches of up to 256 blobs; missing blobs are ignored."""
        names = self._ids(self._require(entities, "entities"))
        for start in range(0, len(names), AZURE_DELETE_BATCH_SIZE):
            batch = names[start : start + AZURE_DELETE_BATCH_SIZE]
            await self._container.delete_blobs(*batch, raise_on_any_failure=False)

    @timed_operation("repository.get_by_id")
    async def get_by_id(self, id: Any) -> BlobInfo | None:
        """Blob metadata, or None when the blob does not exist."""
        name = self._blob_id(id)
        blob_client = self._container.get_blob_client(name)
        try:
            properties = await blob_client.get_blob_properties()
        except ResourceNotFoundError:
            return None
        return BlobInfo(name, properties.size, blob_client.url)

    @timed_operation("repository.find")
    async def list_blobs(self, prefix: str | None) -> list[BlobInfo]:
        blobs = []
        async for item in self._container.list_blobs(name_starts_with=prefix):
            uri = f"{self._container.url.rstrip('/')}/{item.name}"
            blobs.append(BlobInfo(item.name, item.size, uri))
        return blobs
