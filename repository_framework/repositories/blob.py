"""
Blob repositories.

A blob is addressed by its id (object key / blob name). Blob stores only
support prefix based ``find``; sorting, paging and includes are rejected.
"""

import logging
import os
from abc import abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass
from typing import IO, Any

from ..constants import UNKNOWN_BLOB_SIZE
from ..exceptions import NullArgumentError, RepositoryError
from ..query.constraints import QueryConstraints
from ..query.result import QueryResult
from .base import Repository

logger = logging.getLogger(__name__)


@dataclass
class BlobInfo:
    """
    Blob metadata.

    Attributes:
        id: Object key or blob name
        size: Size in bytes, -1 when unknown
        uri: Public URI of the blob
    """

    id: str
    size: int = UNKNOWN_BLOB_SIZE
    uri: str | None = None

    def open_upload_stream(self) -> IO[bytes] | None:
        """Source used by ``create``/``update``; plain blobs have none."""
        return None

    def open_download_stream(self) -> IO[bytes] | None:
        return None


@dataclass
class FileBlob(BlobInfo):
    """Blob uploaded from and downloaded to the local file system."""

    upload_file_path: str | None = None
    download_folder: str = "."

    @property
    def file_path(self) -> str:
        return os.path.join(self.download_folder, self.id)

    def open_upload_stream(self) -> IO[bytes]:
        return open(self.upload_file_path or self.id, "rb")

    def open_download_stream(self) -> IO[bytes]:
        directory = os.path.dirname(self.file_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        return open(self.file_path, "wb")

    def __str__(self) -> str:
        return f"{self.id}: {self.file_path}"


class BlobRepository(Repository[BlobInfo]):
    """
    Base class for blob store repositories.

    ``create`` and ``update`` upload from the blob's own upload stream
    (see ``FileBlob``); use ``upload`` to send an arbitrary stream.
    """

    def __init__(self) -> None:
        super().__init__(BlobInfo, "id")

    @abstractmethod
    async def upload(self, blob: BlobInfo, stream: IO[bytes]) -> BlobInfo:
        """Upload ``stream`` as the content of ``blob``, replacing any existing content."""

    @abstractmethod
    async def download(self, blob: BlobInfo, stream: IO[bytes]) -> BlobInfo:
        """Write the content of ``blob`` to ``stream`` and update its size."""

    async def _upload_own_stream(self, blob: BlobInfo) -> BlobInfo:
        self._require(blob, "entity")
        stream = blob.open_upload_stream()
        if stream is None:
            raise RepositoryError(
                f"{type(blob).__name__} '{blob.id}' has no upload source; use upload(blob, stream)",
                context={"blob": blob.id, "backend": type(self).__name__},
            )
        with stream:
            return await self.upload(blob, stream)

    async def create(self, entity: BlobInfo) -> BlobInfo:
        return await self._upload_own_stream(entity)

    async def update(self, entity: BlobInfo) -> BlobInfo:
        return await self._upload_own_stream(entity)

    async def download_to(self, blob: BlobInfo) -> BlobInfo:
        """Download into the blob's own download stream (see ``FileBlob``)."""
        self._require(blob, "entity")
        stream = blob.open_download_stream()
        if stream is None:
            raise RepositoryError(
                f"{type(blob).__name__} '{blob.id}' has no download target; use download(blob, stream)",
                context={"blob": blob.id, "backend": type(self).__name__},
            )
        with stream:
            return await self.download(blob, stream)

    @abstractmethod
    async def list_blobs(self, prefix: str | None) -> list[BlobInfo]:
        """All blobs whose id starts with ``prefix`` (all blobs when None)."""

    async def find(
        self,
        filter: str | None = None,
        constraints: QueryConstraints[BlobInfo] | None = None,
    ) -> QueryResult[BlobInfo]:
        """
        Find blobs by id prefix.

        Raises:
            CapabilityNotSupportedError: If constraints sort, page or include
        """
        self._check_constraints(constraints)
        if filter is not None and not isinstance(filter, str):
            raise TypeError(f"Blob filter must be a prefix string, got {type(filter).__name__}")
        blobs = await self.list_blobs(filter or None)
        return QueryResult.of(blobs, constraints=constraints)

    @staticmethod
    def _ids(entities: Iterable[BlobInfo]) -> list[str]:
        return [blob.id for blob in entities]

    def _blob_id(self, id: Any) -> str:
        if id is None:
            raise NullArgumentError("id")
        return str(id)
