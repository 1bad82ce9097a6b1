"""
In-memory repository.

List backed reference implementation of the repository contract, useful for
unit tests without database dependencies.
"""

import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any, TypeVar

from ..observability import timed_operation
from ..query.constraints import QueryConstraints, paginate
from ..query.introspection import element_type, public_properties
from ..query.result import QueryResult
from ..query.selectors import Selector
from .base import Capability, Repository

logger = logging.getLogger(__name__)

T = TypeVar("T")

Filter = Callable[[Any], bool] | Mapping[str, Any] | None


class InMemoryRepository(Repository[T]):
    """
    In-memory repository implementation.

    Entities are kept by reference in insertion order. When an entity is
    created without an id and the id property is declared as ``int`` (or
    ``str``) a sequential id is assigned.

    Includes are validated but otherwise a no-op: related objects are
    already materialised.

    Example:
        repo = InMemoryRepository(Category)
        await repo.create(Category(name="Tools"))
        result = await repo.find(lambda c: c.name.startswith("T"))
    """

    capabilities = frozenset(
        {
            Capability.SORTABLE,
            Capability.PAGEABLE,
            Capability.EXPANDABLE,
            Capability.QUERYABLE,
        }
    )

    def __init__(
        self,
        entity_class: type[T],
        id_property: str | Selector | None = None,
        items: Iterable[T] | None = None,
    ):
        super().__init__(entity_class, id_property)
        self._items: list[T] = list(items or [])
        self._counter = 0

    def _next_id(self) -> Any:
        self._counter += 1
        annotation = public_properties(self._entity_class).get(self._id_property)
        if element_type(annotation) is str:
            return str(self._counter)
        return self._counter

    def _index_of(self, id: Any) -> int | None:
        for index, item in enumerate(self._items):
            if self._get_id(item) == id:
                return index
        return None

    @staticmethod
    def _matches(item: Any, filter: Filter) -> bool:
        if filter is None:
            return True
        if callable(filter):
            return bool(filter(item))
        for key, value in filter.items():
            if getattr(item, key, None) != value:
                return False
        return True

    @timed_operation("repository.create")
    async def create(self, entity: T) -> T:
        self._require(entity, "entity")
        if self._id_property is not None and self._get_id(entity) is None:
            self._set_id(entity, self._next_id())
        self._items.append(entity)
        logger.debug(f"Added {self.entity_name} to memory store")
        return entity

    @timed_operation("repository.update")
    async def update(self, entity: T) -> T:
        self._require(entity, "entity")
        index = self._index_of(self._get_id(entity))
        if index is None:
            logger.debug(f"{self.entity_name} id={self._get_id(entity)} not found, nothing updated")
        else:
            self._items[index] = entity
        return entity

    @timed_operation("repository.delete")
    async def delete(self, entity: T) -> None:
        self._require(entity, "entity")
        index = self._index_of(self._get_id(entity))
        if index is not None:
            del self._items[index]

    @timed_operation("repository.get_by_id")
    async def get_by_id(self, id: Any) -> T | None:
        index = self._index_of(id)
        return None if index is None else self._items[index]

    @timed_operation("repository.find")
    async def find(
        self,
        filter: Filter = None,
        constraints: QueryConstraints[T] | None = None,
    ) -> QueryResult[T]:
        """
        Find entities.

        Args:
            filter: Predicate, or mapping of property name to required value
            constraints: Sort, page and include constraints
        """
        self._check_constraints(constraints)
        matching = [item for item in self._items if self._matches(item, filter)]
        return paginate(constraints, matching)

    def query(self) -> list[T]:
        """Snapshot of all stored entities in insertion order."""
        return list(self._items)

    def clear(self) -> None:
        """Clear all entities (useful for test setup)."""
        self._items.clear()
        self._counter = 0
