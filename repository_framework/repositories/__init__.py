"""
Repository Pattern

Provides the abstract repository interface and its backends: in-memory,
SQLAlchemy ORM, raw SQL, stored procedures, MongoDB, S3, Azure Blob Storage
and REST APIs.

Usage:
    from repository_framework.repositories import Repository, SQLAlchemyRepository

    # In domain services
    class CategoryService:
        def __init__(self, categories: Repository[Category]):
            self._categories = categories

        async def get_category(self, id: int) -> Category | None:
            return await self._categories.get_by_id(id)

    # Grouping writes with a UnitOfWork
    async with UnitOfWork(session) as uow:
        await uow.repository(Category).create(Category(name="Tools"))
"""

from .api import ApiConfiguration, ApiRepository, AuthenticationType
from .azure_blob import AzureBlobRepository
from .base import (Capability, ParameterizedMixin, Repository,
                   require_capability)
from .blob import BlobInfo, BlobRepository, FileBlob
from .mapping import (entity_from_dict, entity_to_dict, entity_to_json,
                      populate_entity)
from .memory import InMemoryRepository
from .mongo import DocumentMapping, MongoRepository
from .orm import SQLAlchemyRepository
from .s3 import S3BlobRepository
from .sql import SqlRepository
from .stored_procedure import StoredProcedureRepository
from .sync import SyncRepository
from .unit_of_work import UnitOfWork

__all__ = [
    # Interface
    "Repository",
    "Capability",
    "ParameterizedMixin",
    "require_capability",
    "SyncRepository",
    "UnitOfWork",
    # Backends
    "InMemoryRepository",
    "SQLAlchemyRepository",
    "SqlRepository",
    "StoredProcedureRepository",
    "MongoRepository",
    "DocumentMapping",
    "BlobRepository",
    "BlobInfo",
    "FileBlob",
    "S3BlobRepository",
    "AzureBlobRepository",
    "ApiRepository",
    "ApiConfiguration",
    "AuthenticationType",
    # Mapping
    "entity_to_dict",
    "entity_from_dict",
    "entity_to_json",
    "populate_entity",
]
