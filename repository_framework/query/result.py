"""
Query results.

``total_count`` is always the number of items matching the filter before
paging, not ``len(items)``.
"""

from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

from ..constants import DEFAULT_PAGE_NUMBER, DEFAULT_PAGE_SIZE

if TYPE_CHECKING:
    from .constraints import QueryConstraints

T = TypeVar("T")


def total_pages(total_items: int, page_size: int) -> int:
    """
    Number of pages for ``total_items`` at ``page_size`` items per page.

    Always adds one page to the integer division, so an evenly divisible
    total reports a trailing empty page. A page size of 0 is a single page.
    """
    if page_size == 0:
        return 1
    return total_items // page_size + 1


def start_index(page_number: int, page_size: int) -> int:
    """One based index of the first item on a page."""
    if page_number < 2:
        return 1
    return (page_number - 1) * page_size + 1


@dataclass(frozen=True)
class QueryResult(Generic[T]):
    """
    Read-only result of a find operation.

    Attributes:
        items: Items on the requested page
        total_count: Items matching the filter, ignoring paging
        page_number: Page that was requested
        page_size: Page size that was requested (0 = no paging)
    """

    items: tuple[T, ...]
    total_count: int
    page_number: int = DEFAULT_PAGE_NUMBER
    page_size: int = DEFAULT_PAGE_SIZE

    @classmethod
    def of(
        cls,
        items: Sequence[T],
        total_count: int | None = None,
        constraints: "QueryConstraints | None" = None,
    ) -> "QueryResult[T]":
        """
        Build a result, taking the paging values from ``constraints``.

        When ``total_count`` is omitted the number of items is used.
        """
        items = tuple(items)
        if total_count is None:
            total_count = len(items)
        if constraints is None:
            return cls(items, total_count)
        return cls(items, total_count, constraints.page_number, constraints.page_size)

    @property
    def total_items(self) -> int:
        return self.total_count

    @property
    def total_pages(self) -> int:
        return total_pages(self.total_count, self.page_size)

    @property
    def start_index(self) -> int:
        return start_index(self.page_number, self.page_size)

    def __iter__(self) -> Iterator[T]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)
