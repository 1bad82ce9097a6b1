"""
Abstract Repository Pattern

Defines the repository interface that abstracts data access operations.
Calling code is written against ``Repository[T]`` and can be retargeted to
another backend without changes.

Sorting, paging and eager loading are not repository state: they travel with
each ``find`` call as a ``QueryConstraints`` value. A backend declares which
of them it can honour through ``capabilities``; asking for an unsupported one
raises ``CapabilityNotSupportedError`` instead of being silently ignored.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from enum import Enum
from typing import Any, ClassVar, Generic, TypeVar

from ..exceptions import (CapabilityNotSupportedError, NullArgumentError,
                          RepositoryError)
from ..query.constraints import QueryConstraints
from ..query.introspection import find_id_property
from ..query.property_path import validate_property_name
from ..query.result import QueryResult
from ..query.selectors import Selector, property_name_of

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Capability(str, Enum):
    """Optional repository capabilities."""

    SORTABLE = "sortable"
    PAGEABLE = "pageable"
    EXPANDABLE = "expandable"
    PARAMETERIZED = "parameterized"
    QUERYABLE = "queryable"


class Repository(ABC, Generic[T]):
    """
    Abstract repository interface for data access.

    Every operation is a coroutine. Use ``SyncRepository`` to call a
    repository from synchronous code.

    Example:
        class CategoryService:
            def __init__(self, categories: Repository[Category]):
                self._categories = categories

            async def first_page(self) -> QueryResult[Category]:
                constraints = QueryConstraints(Category).sort_by("name").page(1, 20)
                return await self._categories.find(constraints=constraints)
    """

    capabilities: ClassVar[frozenset[Capability]] = frozenset()

    def __init__(self, entity_class: type[T], id_property: str | Selector | None = None):
        """
        Initialize the repository.

        Args:
            entity_class: Entity class stored by this repository
            id_property: Id property name or selector. When omitted the id is
                discovered by convention ("{Entity}Id", then "Id").
        """
        if entity_class is None:
            raise NullArgumentError("entity_class")
        self._entity_class = entity_class
        if id_property is None:
            self._id_property = find_id_property(entity_class)
        elif callable(id_property):
            self._id_property = property_name_of(entity_class, id_property)
        else:
            self._id_property = validate_property_name(entity_class, id_property)

    @property
    def entity_class(self) -> type[T]:
        return self._entity_class

    @property
    def entity_name(self) -> str:
        return self._entity_class.__name__

    @property
    def id_property(self) -> str | None:
        """Name of the id property, or None when it could not be discovered."""
        return self._id_property

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities

    # ------------------------------------------------------------------
    # Helpers for implementations
    # ------------------------------------------------------------------

    def _require_id_property(self) -> str:
        if self._id_property is None:
            raise RepositoryError(
                f"No id property found on {self.entity_name}; "
                f"pass id_property to {type(self).__name__}",
                context={"entity": self.entity_name, "backend": type(self).__name__},
            )
        return self._id_property

    def _get_id(self, entity: T) -> Any:
        return getattr(entity, self._require_id_property(), None)

    def _set_id(self, entity: T, value: Any) -> None:
        setattr(entity, self._require_id_property(), value)

    @staticmethod
    def _require(value: Any, argument: str) -> Any:
        if value is None:
            raise NullArgumentError(argument)
        return value

    def _check_constraints(self, constraints: QueryConstraints | None) -> None:
        """
        Reject constraints this backend cannot apply.

        Raises:
            CapabilityNotSupportedError: For sort, page or include without the capability
        """
        if constraints is None:
            return
        backend = type(self).__name__
        if constraints.is_sorted and Capability.SORTABLE not in self.capabilities:
            raise CapabilityNotSupportedError(Capability.SORTABLE.value, backend)
        if constraints.is_paged and Capability.PAGEABLE not in self.capabilities:
            raise CapabilityNotSupportedError(Capability.PAGEABLE.value, backend)
        if constraints.includes and Capability.EXPANDABLE not in self.capabilities:
            raise CapabilityNotSupportedError(Capability.EXPANDABLE.value, backend)

    # ------------------------------------------------------------------
    # Repository interface
    # ------------------------------------------------------------------

    @abstractmethod
    async def create(self, entity: T) -> T:
        """
        Create a new entity.

        Args:
            entity: Entity to create; its id is populated when the backend
                generates one

        Returns:
            The created entity
        """

    async def create_many(self, entities: Iterable[T]) -> list[T]:
        """
        Create several entities.

        Backends with a bulk insert override this.
        """
        self._require(entities, "entities")
        return [await self.create(entity) for entity in entities]

    @abstractmethod
    async def update(self, entity: T) -> T:
        """
        Update an existing entity, located by its id.

        Returns:
            The updated entity
        """

    @abstractmethod
    async def delete(self, entity: T) -> None:
        """Delete an existing entity, located by its id."""

    async def delete_many(self, entities: Iterable[T]) -> None:
        """Delete several entities."""
        self._require(entities, "entities")
        for entity in entities:
            await self.delete(entity)

    @abstractmethod
    async def get_by_id(self, id: Any) -> T | None:
        """
        Get a single entity by id.

        Returns:
            The entity, or None when it does not exist
        """

    @abstractmethod
    async def find(
        self,
        filter: Any = None,
        constraints: QueryConstraints[T] | None = None,
    ) -> QueryResult[T]:
        """
        Find entities.

        Args:
            filter: Backend specific filter (predicate, clause, raw SQL, dict,
                prefix ...); None matches everything
            constraints: Sort, page and include constraints

        Returns:
            Items on the requested page and the unpaged total
        """


def require_capability(repository: Repository[T], capability: Capability) -> Repository[T]:
    """
    Assert that a repository supports a capability.

    Returns:
        The repository, for chaining

    Raises:
        CapabilityNotSupportedError: If it does not
    """
    if not repository.supports(capability):
        raise CapabilityNotSupportedError(capability.value, type(repository).__name__)
    return repository


class ParameterizedMixin:
    """
    Named parameters sent with every call (stored procedures, REST paths).

    Parameters are repository state: a parameterized repository instance
    should not be shared between callers that need different values.
    """

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self._parameters: dict[str, Any] = {}

    @property
    def parameters(self) -> dict[str, Any]:
        """Copy of the current parameters."""
        return dict(self._parameters)

    def set_parameter(self, name: str, value: Any):
        """Add or replace a parameter. Returns the repository for chaining."""
        if name is None:
            raise NullArgumentError("name")
        self._parameters[name] = value
        return self

    def get_parameter(self, name: str) -> Any:
        """
        Get a parameter value.

        Raises:
            KeyError: If the parameter was never set
        """
        return self._parameters[name]

    def clear_parameters(self):
        self._parameters.clear()
        return self
