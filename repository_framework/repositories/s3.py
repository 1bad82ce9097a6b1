"""
AWS S3 blob repository.

boto3 is synchronous; each call runs in a worker thread through
``asyncio.to_thread`` so the event loop is never blocked.
"""

import asyncio
import logging
from collections.abc import Iterable
from typing import IO, Any

import boto3
from botocore.exceptions import ClientError

from ..constants import (S3_DELETE_BATCH_SIZE, S3_NOT_FOUND_CODES,
                         S3_URL_TEMPLATE)
from ..exceptions import NullArgumentError
from ..observability import timed_operation
from .blob import BlobInfo, BlobRepository

logger = logging.getLogger(__name__)


def _is_not_found(error: ClientError) -> bool:
    return str(error.response.get("Error", {}).get("Code")) in S3_NOT_FOUND_CODES


class S3BlobRepository(BlobRepository):
    """
    Blob repository over an S3 bucket.

    Example:
        repo = S3BlobRepository(boto3.client("s3"), "my-bucket")
        await repo.ensure_bucket()
        with open("report.pdf", "rb") as f:
            await repo.upload(BlobInfo("reports/report.pdf"), f)
    """

    def __init__(self, client: Any, bucket_name: str, region: str | None = None):
        """
        Initialize the repository.

        Args:
            client: boto3 S3 client
            bucket_name: Bucket holding the blobs
            region: Bucket region, used for blob URIs; looked up by ``ensure_bucket``
                when omitted
        """
        if client is None:
            raise NullArgumentError("client")
        if bucket_name is None:
            raise NullArgumentError("bucket_name")
        super().__init__()
        self._client = client
        self.bucket_name = bucket_name
        self.region = region or getattr(getattr(client, "meta", None), "region_name", None)

    @classmethod
    def from_region(cls, bucket_name: str, region: str | None = None) -> "S3BlobRepository":
        """Create a repository with a default boto3 client."""
        return cls(boto3.client("s3", region_name=region), bucket_name, region)

    def blob_uri(self, key: str) -> str:
        return S3_URL_TEMPLATE.format(bucket=self.bucket_name, region=self.region, key=key)

    async def _call(self, method: str, **kwargs: Any) -> Any:
        return await asyncio.to_thread(getattr(self._client, method), **kwargs)

    async def ensure_bucket(self) -> None:
        """Create the bucket if it does not exist and resolve its region."""
        try:
            await self._call("head_bucket", Bucket=self.bucket_name)
        except ClientError as e:
            if not _is_not_found(e):
                raise
            logger.info(f"Creating S3 bucket '{self.bucket_name}'")
            kwargs: dict[str, Any] = {"Bucket": self.bucket_name}
            if self.region and self.region != "us-east-1":
                kwargs["CreateBucketConfiguration"] = {"LocationConstraint": self.region}
            await self._call("create_bucket", **kwargs)

        location = await self._call("get_bucket_location", Bucket=self.bucket_name)
        self.region = location.get("LocationConstraint") or "us-east-1"

    @timed_operation("repository.upload")
    async def upload(self, blob: BlobInfo, stream: IO[bytes]) -> BlobInfo:
        self._require(blob, "entity")
        self._require(stream, "stream")
        await asyncio.to_thread(self._client.upload_fileobj, stream, self.bucket_name, blob.id)
        blob.uri = self.blob_uri(blob.id)
        logger.debug(f"Uploaded s3://{self.bucket_name}/{blob.id}")
        return blob

    @timed_operation("repository.download")
    async def download(self, blob: BlobInfo, stream: IO[bytes]) -> BlobInfo:
        self._require(blob, "entity")
        self._require(stream, "stream")
        start = stream.tell() if stream.seekable() else 0
        await asyncio.to_thread(self._client.download_fileobj, self.bucket_name, blob.id, stream)
        if stream.seekable():
            blob.size = stream.tell() - start
        blob.uri = self.blob_uri(blob.id)
        return blob

    @timed_operation("repository.delete")
    async def delete(self, entity: BlobInfo) -> None:
        self._require(entity, "entity")
        await self._call("delete_object", Bucket=self.bucket_name, Key=entity.id)

    @timed_operation("repository.delete_many")
    async def delete_many(self, entities: Iterable[BlobInfo]) -> None:
        """Delete in batches of up to 1000 keys per request."""
        keys = self._ids(self._require(entities, "entities"))
        for start in range(0, len(keys), S3_DELETE_BATCH_SIZE):
            batch = keys[start : start + S3_DELETE_BATCH_SIZE]
            await self._call(
                "delete_objects",
                Bucket=self.bucket_name,
                Delete={"Objects": [{"Key": key} for key in batch], "Quiet": True},
            )

    @timed_operation("repository.get_by_id")
    async def get_by_id(self, id: Any) -> BlobInfo | None:
        """Blob metadata, or None when the key does not exist."""
        key = self._blob_id(id)
        try:
            response = await self._call("head_object", Bucket=self.bucket_name, Key=key)
        except ClientError as e:
            if _is_not_found(e):
                return None
            raise
        return BlobInfo(key, response.get("ContentLength", -1), self.blob_uri(key))

    def _list_keys(self, prefix: str | None) -> list[BlobInfo]:
        paginator = self._client.get_paginator("list_objects_v2")
        kwargs: dict[str, Any] = {"Bucket": self.bucket_name}
        if prefix:
            kwargs["Prefix"] = prefix
        blobs = []
        for page in paginator.paginate(**kwargs):
            for entry in page.get("Contents", []):
                blobs.append(BlobInfo(entry["Key"], entry["Size"], self.blob_uri(entry["Key"])))
        return blobs

    @timed_operation("repository.find")
    async def list_blobs(self, prefix: str | None) -> list[BlobInfo]:
        return await asyncio.to_thread(self._list_keys, prefix)
