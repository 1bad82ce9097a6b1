"""
Query constraints: sorting, paging and eager loading.

A ``QueryConstraints`` value is built fluently and then handed to a
repository's ``find``. It is immutable: every builder call returns a new
instance, so one value can be shared between concurrent queries and a
repository never carries sort or page state of its own.

Constraints compose in a fixed order: sort, then page. Includes are
independent of both; they never change the order or number of items.

Example:
    constraints = (
        QueryConstraints(Category)
        .include("products.parts")
        .sort_by_descending(lambda c: c.name)
        .page(2, 40)
    )
    result = await repository.find(constraints=constraints)
"""

import dataclasses
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

from ..constants import (DEFAULT_PAGE_NUMBER, DEFAULT_PAGE_SIZE,
                         INCLUDE_LIST_SEPARATOR, MAX_PAGE_NUMBER,
                         MAX_PAGE_SIZE, MIN_PAGE_NUMBER)
from ..exceptions import NullArgumentError, PagingRangeError
from .property_path import (validate_property_path,
                            validate_sort_property)
from .result import QueryResult, start_index
from .selectors import Selector, property_name_of, property_path_of

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SortOrder(str, Enum):
    """Direction of a sort."""

    UNSPECIFIED = "unspecified"
    ASCENDING = "ascending"
    DESCENDING = "descending"


def _split_include_paths(paths: str | Iterable[str]) -> list[str]:
    if isinstance(paths, str):
        paths = paths.split(INCLUDE_LIST_SEPARATOR)
    return [p.strip() for p in paths if p is not None and p.strip()]


@dataclass(frozen=True)
class QueryConstraints(Generic[T]):
    """
    Immutable sort, page and include settings for one entity class.

    Attributes:
        entity_class: Entity class the property names are validated against
        page_number: One based page number, in [1, 1000]
        page_size: Items per page, in [0, 1000]; 0 disables paging
        sort_property_name: Declared name of the sort property, or None
        sort_order: Sort direction; UNSPECIFIED exactly when no sort property
        includes: Validated property paths to eager load, without duplicates
    """

    entity_class: type[T]
    page_number: int = DEFAULT_PAGE_NUMBER
    page_size: int = DEFAULT_PAGE_SIZE
    sort_property_name: str | None = None
    sort_order: SortOrder = SortOrder.UNSPECIFIED
    includes: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.entity_class is None:
            raise NullArgumentError("entity_class")

        if not MIN_PAGE_NUMBER <= self.page_number <= MAX_PAGE_NUMBER:
            raise PagingRangeError(
                f"Page number must be between {MIN_PAGE_NUMBER} and {MAX_PAGE_NUMBER}.",
                argument="page_number",
                value=self.page_number,
            )
        if not 0 <= self.page_size <= MAX_PAGE_SIZE:
            raise PagingRangeError(
                f"Page size must be between 0 and {MAX_PAGE_SIZE}.",
                argument="page_size",
                value=self.page_size,
            )

        if (self.sort_property_name is None) != (self.sort_order is SortOrder.UNSPECIFIED):
            raise ValueError(
                "sort_property_name and sort_order must be set together "
                f"(got {self.sort_property_name!r}, {self.sort_order})"
            )
        if self.sort_property_name is not None:
            object.__setattr__(
                self,
                "sort_property_name",
                validate_sort_property(self.entity_class, self.sort_property_name),
            )

        includes: list[str] = []
        for path in self.includes:
            validated = validate_property_path(self.entity_class, path)
            if validated not in includes:
                includes.append(validated)
        object.__setattr__(self, "includes", tuple(includes))

    # ------------------------------------------------------------------
    # Paging
    # ------------------------------------------------------------------

    def page(self, page_number: int, page_size: int) -> "QueryConstraints[T]":
        """
        Use paging.

        Args:
            page_number: Page to get (one based)
            page_size: Number of items per page; 0 returns everything

        Raises:
            PagingRangeError: If either value is out of range
        """
        return dataclasses.replace(self, page_number=page_number, page_size=page_size)

    def clear_paging(self) -> "QueryConstraints[T]":
        return dataclasses.replace(
            self, page_number=DEFAULT_PAGE_NUMBER, page_size=DEFAULT_PAGE_SIZE
        )

    # ------------------------------------------------------------------
    # Sorting
    # ------------------------------------------------------------------

    def _sort(self, prop: str | Selector | None, order: SortOrder) -> "QueryConstraints[T]":
        if prop is None:
            raise NullArgumentError("property_name")
        if callable(prop):
            name = property_name_of(self.entity_class, prop)
        else:
            name = validate_sort_property(self.entity_class, prop)
        return dataclasses.replace(self, sort_property_name=name, sort_order=order)

    def sort_by(self, prop: str | Selector | None) -> "QueryConstraints[T]":
        """
        Sort ascending by a property name or selector.

        Raises:
            NullArgumentError: If prop is None
            InvalidPropertyError: If the property does not exist
        """
        return self._sort(prop, SortOrder.ASCENDING)

    def sort_by_descending(self, prop: str | Selector | None) -> "QueryConstraints[T]":
        """Sort descending by a property name or selector."""
        return self._sort(prop, SortOrder.DESCENDING)

    def clear_sorting(self) -> "QueryConstraints[T]":
        return dataclasses.replace(
            self, sort_property_name=None, sort_order=SortOrder.UNSPECIFIED
        )

    # ------------------------------------------------------------------
    # Includes
    # ------------------------------------------------------------------

    def include(self, paths: str | Iterable[str] | Selector) -> "QueryConstraints[T]":
        """
        Eager load one or more related properties.

        Args:
            paths: A property path, a comma separated list of paths, a list
                of paths, or a selector such as ``lambda c: c.products.parts``

        Raises:
            InvalidPropertyError: If a path does not resolve
        """
        if paths is None:
            raise NullArgumentError("paths")
        if callable(paths):
            new_paths = [property_path_of(self.entity_class, paths)]
        else:
            new_paths = _split_include_paths(paths)
        return dataclasses.replace(self, includes=self.includes + tuple(new_paths))

    def clear_includes(self) -> "QueryConstraints[T]":
        return dataclasses.replace(self, includes=())

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def is_paged(self) -> bool:
        return self.page_size > 0

    @property
    def is_sorted(self) -> bool:
        return self.sort_order is not SortOrder.UNSPECIFIED

    @property
    def start_record(self) -> int:
        """Zero based offset of the first item on the requested page."""
        if self.page_number <= 1:
            return 0
        return (self.page_number - 1) * self.page_size

    @property
    def start_index(self) -> int:
        return start_index(self.page_number, self.page_size)


def _sort_value(item: Any, name: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name, None)


def sort_items(constraints: QueryConstraints, items: Iterable[T]) -> list[T]:
    """
    Sort items by the constraint's sort property.

    The sort is stable. None values come first when ascending and last when
    descending. Without a sort the input order is kept.
    """
    items = list(items)
    if not constraints.is_sorted or not constraints.sort_property_name:
        return items

    name = constraints.sort_property_name

    def key(item: Any) -> tuple[bool, Any]:
        value = _sort_value(item, name)
        return (value is not None, value)

    return sorted(items, key=key, reverse=constraints.sort_order is SortOrder.DESCENDING)


def page_items(constraints: QueryConstraints, items: Iterable[T]) -> list[T]:
    """Skip ``(page_number - 1) * page_size`` items and take ``page_size``."""
    items = list(items)
    if not constraints.is_paged:
        return items
    start = constraints.start_record
    return items[start : start + constraints.page_size]


def apply_constraints(constraints: QueryConstraints | None, items: Iterable[T]) -> list[T]:
    """Apply sort then page to an in-memory sequence."""
    if constraints is None:
        return list(items)
    return page_items(constraints, sort_items(constraints, items))


def paginate(constraints: QueryConstraints | None, items: Iterable[T]) -> QueryResult[T]:
    """Apply constraints and wrap the page with the unpaged total."""
    items = list(items)
    return QueryResult.of(apply_constraints(constraints, items), len(items), constraints)
