"""
MongoDB Repository Implementation

Implements the Repository interface with motor. How an entity maps onto a
document (collection name, id property, field names) is described by a
``DocumentMapping`` built once at startup and passed to the repository.
"""

import json
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from bson import ObjectId
from motor.motor_asyncio import (AsyncIOMotorCollection, AsyncIOMotorCursor,
                                 AsyncIOMotorDatabase)
from pymongo import ASCENDING, DESCENDING

from ..constants import DEFAULT_COLLECTION_SUFFIX, MONGO_ID_FIELD
from ..exceptions import CapabilityNotSupportedError, NullArgumentError
from ..observability import timed_operation
from ..query.constraints import QueryConstraints, SortOrder
from ..query.introspection import element_type, find_id_property, public_properties
from ..query.property_path import validate_property_name
from ..query.query_validator import QueryValidator
from ..query.result import QueryResult
from .base import Capability, Repository
from .mapping import entity_from_dict, entity_to_dict

logger = logging.getLogger(__name__)

T = TypeVar("T")

MongoFilter = Mapping[str, Any] | str | None


@dataclass(frozen=True)
class DocumentMapping(Generic[T]):
    """
    How an entity class is stored in MongoDB.

    Attributes:
        entity_class: Entity class
        id_property: Property stored as ``_id``; discovered by convention when None
        collection_name: Collection; defaults to "{Entity}Collection"
        field_names: Property name to document field name, for renamed fields
    """

    entity_class: type[T]
    id_property: str | None = None
    collection_name: str | None = None
    field_names: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.entity_class is None:
            raise NullArgumentError("entity_class")
        if self.id_property is None:
            object.__setattr__(self, "id_property", find_id_property(self.entity_class))
        else:
            object.__setattr__(
                self, "id_property", validate_property_name(self.entity_class, self.id_property)
            )
        if self.collection_name is None:
            object.__setattr__(
                self,
                "collection_name",
                f"{self.entity_class.__name__}{DEFAULT_COLLECTION_SUFFIX}",
            )
        field_names = {
            validate_property_name(self.entity_class, name): document_field
            for name, document_field in self.field_names.items()
        }
        object.__setattr__(self, "field_names", field_names)

    def field_for(self, property_name: str) -> str:
        """Document field holding a property."""
        if property_name == self.id_property:
            return MONGO_ID_FIELD
        return self.field_names.get(property_name, property_name)

    def to_document(self, entity: T, include_id: bool = True) -> dict[str, Any]:
        """Convert an entity to a MongoDB document."""
        document: dict[str, Any] = {}
        for name, value in entity_to_dict(entity).items():
            if name == self.id_property:
                if include_id and value is not None:
                    document[MONGO_ID_FIELD] = value
                continue
            document[self.field_for(name)] = value
        return document

    def from_document(self, document: Mapping[str, Any] | None) -> T | None:
        """Convert a MongoDB document to an entity."""
        if document is None:
            return None
        properties = {self.field_for(name): name for name in public_properties(self.entity_class)}
        data = {}
        for key, value in document.items():
            name = properties.get(key)
            if name is None:
                continue
            if name == self.id_property and isinstance(value, ObjectId):
                if element_type(public_properties(self.entity_class)[name]) is str:
                    value = str(value)
            data[name] = value
        return entity_from_dict(self.entity_class, data)

    def id_value(self, id: Any) -> Any:
        """Convert string ids that are valid ObjectIds."""
        if isinstance(id, str) and ObjectId.is_valid(id):
            return ObjectId(id)
        return id


class MongoRepository(Repository[T]):
    """
    MongoDB implementation of the Repository interface.

    Filters are MongoDB filter documents, or JSON strings holding one. They
    are screened by a ``QueryValidator`` before reaching the server.

    Example:
        mapping = DocumentMapping(Category, field_names={"name": "title"})
        categories = MongoRepository(db, mapping)

        result = await categories.find(
            {"title": {"$regex": "^T"}},
            QueryConstraints(Category).sort_by("name").page(1, 20),
        )
    """

    capabilities = frozenset(
        {Capability.SORTABLE, Capability.PAGEABLE, Capability.QUERYABLE}
    )

    def __init__(
        self,
        database: AsyncIOMotorDatabase | None,
        mapping: DocumentMapping[T],
        collection: AsyncIOMotorCollection | None = None,
        validator: QueryValidator | None = None,
    ):
        """
        Initialize the MongoDB repository.

        Args:
            database: Motor database the collection is taken from
            mapping: Document mapping for the entity class
            collection: Explicit collection, overriding ``database``
            validator: Filter validator; a default one is created when omitted
        """
        if mapping is None:
            raise NullArgumentError("mapping")
        super().__init__(mapping.entity_class, mapping.id_property)
        if collection is None:
            if database is None:
                raise NullArgumentError("database")
            collection = database[mapping.collection_name]
        self._collection = collection
        self._mapping = mapping
        self._validator = validator or QueryValidator()

    @property
    def collection(self) -> AsyncIOMotorCollection:
        return self._collection

    @property
    def mapping(self) -> DocumentMapping[T]:
        return self._mapping

    def _check_constraints(self, constraints: QueryConstraints | None) -> None:
        if constraints is not None and constraints.includes:
            raise CapabilityNotSupportedError(Capability.EXPANDABLE.value, type(self).__name__)
        super()._check_constraints(constraints)

    def _parse_filter(self, filter: MongoFilter) -> dict[str, Any]:
        if filter is None:
            return {}
        if isinstance(filter, str):
            filter = json.loads(filter) if filter.strip() else {}
        filter = dict(filter)
        self._validator.validate_filter(filter)
        return filter

    def _sort_spec(self, constraints: QueryConstraints | None) -> list[tuple[str, int]] | None:
        if constraints is None or not constraints.is_sorted:
            return None
        direction = DESCENDING if constraints.sort_order is SortOrder.DESCENDING else ASCENDING
        sort = [(self._mapping.field_for(constraints.sort_property_name), direction)]
        self._validator.validate_sort(sort)
        return sort

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @timed_operation("repository.create")
    async def create(self, entity: T) -> T:
        self._require(entity, "entity")
        result = await self._collection.insert_one(self._mapping.to_document(entity))
        if self._id_property is not None and self._get_id(entity) is None:
            self._set_id(entity, self._converted_id(result.inserted_id))
        logger.debug(f"Added {self.entity_name} with id={result.inserted_id}")
        return entity

    @timed_operation("repository.create_many")
    async def create_many(self, entities: Iterable[T]) -> list[T]:
        entities = list(self._require(entities, "entities"))
        if not entities:
            return entities
        result = await self._collection.insert_many(
            [self._mapping.to_document(e) for e in entities]
        )
        if self._id_property is not None:
            for entity, inserted_id in zip(entities, result.inserted_ids, strict=False):
                if self._get_id(entity) is None:
                    self._set_id(entity, self._converted_id(inserted_id))
        logger.debug(f"Added {len(entities)} {self.entity_name} entities")
        return entities

    def _converted_id(self, inserted_id: Any) -> Any:
        annotation = public_properties(self._entity_class).get(self._id_property)
        if isinstance(inserted_id, ObjectId) and element_type(annotation) is str:
            return str(inserted_id)
        return inserted_id

    def _id_filter(self, entity: T) -> dict[str, Any]:
        return {MONGO_ID_FIELD: self._mapping.id_value(self._get_id(entity))}

    @timed_operation("repository.update")
    async def update(self, entity: T) -> T:
        self._require(entity, "entity")
        await self._collection.replace_one(
            self._id_filter(entity), self._mapping.to_document(entity, include_id=False)
        )
        return entity

    @timed_operation("repository.delete")
    async def delete(self, entity: T) -> None:
        self._require(entity, "entity")
        await self._collection.delete_one(self._id_filter(entity))

    @timed_operation("repository.delete_many")
    async def delete_many(self, entities: Iterable[T]) -> None:
        ids = [
            self._mapping.id_value(self._get_id(e)) for e in self._require(entities, "entities")
        ]
        if ids:
            await self._collection.delete_many({MONGO_ID_FIELD: {"$in": ids}})

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @timed_operation("repository.get_by_id")
    async def get_by_id(self, id: Any) -> T | None:
        document = await self._collection.find_one({MONGO_ID_FIELD: self._mapping.id_value(id)})
        return self._mapping.from_document(document)

    def query(
        self,
        filter: MongoFilter = None,
        constraints: QueryConstraints[T] | None = None,
    ) -> AsyncIOMotorCursor:
        """
        Native cursor with the filter, sort and paging applied.

        Raises:
            QueryValidationError: If the filter is rejected
        """
        self._check_constraints(constraints)
        cursor = self._collection.find(self._parse_filter(filter))
        sort = self._sort_spec(constraints)
        if sort:
            cursor = cursor.sort(sort)
        if constraints is not None and constraints.is_paged:
            cursor = cursor.skip(constraints.start_record).limit(constraints.page_size)
        return cursor

    @timed_operation("repository.find")
    async def find(
        self,
        filter: MongoFilter = None,
        constraints: QueryConstraints[T] | None = None,
    ) -> QueryResult[T]:
        """
        Find entities.

        Args:
            filter: Filter document or JSON string; field names are document fields
            constraints: Sort and page constraints

        Raises:
            QueryValidationError: If the filter is rejected
            CapabilityNotSupportedError: If constraints include related data
        """
        parsed = self._parse_filter(filter)
        cursor = self.query(parsed, constraints)
        documents = await cursor.to_list(length=None)
        items = [self._mapping.from_document(doc) for doc in documents]

        total = len(items)
        if constraints is not None and constraints.is_paged:
            total = await self._collection.count_documents(parsed)
        return QueryResult.of(items, total, constraints)
