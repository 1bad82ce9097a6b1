"""
Blocking facade over an async repository.

For scripts and other synchronous callers. Each call runs the coroutine on a
private event loop owned by the facade.
"""

import asyncio
import logging
from collections.abc import Coroutine, Iterable
from typing import Any, Generic, TypeVar

from ..exceptions import NullArgumentError
from ..query.constraints import QueryConstraints
from ..query.result import QueryResult
from .base import Capability, Repository

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class SyncRepository(Generic[T]):
    """
    Synchronous wrapper around any ``Repository``.

    The wrapped repository's clients (motor, httpx, SQLAlchemy async engine)
    become bound to the facade's loop, so create them lazily or use them only
    through the facade.

    Example:
        with SyncRepository(InMemoryRepository(Category)) as categories:
            categories.create(Category(name="Tools"))
            result = categories.find(constraints=QueryConstraints(Category).page(1, 10))
    """

    def __init__(self, repository: Repository[T]):
        if repository is None:
            raise NullArgumentError("repository")
        self._repository = repository
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def repository(self) -> Repository[T]:
        return self._repository

    def supports(self, capability: Capability) -> bool:
        return self._repository.supports(capability)

    def _run(self, coroutine: Coroutine[Any, Any, R]) -> R:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            pass
        else:
            coroutine.close()
            raise RuntimeError(
                "SyncRepository cannot be used from a running event loop; "
                "await the repository directly"
            )
        if self._loop is None or self._loop.is_closed():
            self._loop = asyncio.new_event_loop()
        return self._loop.run_until_complete(coroutine)

    def create(self, entity: T) -> T:
        return self._run(self._repository.create(entity))

    def create_many(self, entities: Iterable[T]) -> list[T]:
        return self._run(self._repository.create_many(entities))

    def update(self, entity: T) -> T:
        return self._run(self._repository.update(entity))

    def delete(self, entity: T) -> None:
        self._run(self._repository.delete(entity))

    def delete_many(self, entities: Iterable[T]) -> None:
        self._run(self._repository.delete_many(entities))

    def get_by_id(self, id: Any) -> T | None:
        return self._run(self._repository.get_by_id(id))

    def find(
        self,
        filter: Any = None,
        constraints: QueryConstraints[T] | None = None,
        **kwargs: Any,
    ) -> QueryResult[T]:
        """Run ``find``; keyword arguments such as ``parameters`` are passed through."""
        return self._run(self._repository.find(filter, constraints, **kwargs))

    def find_sql(self, sql: str, *args: Any, **kwargs: Any) -> QueryResult[T]:
        """Run ``find_sql`` on SQL backends (``SqlRepository``, ``SQLAlchemyRepository``)."""
        return self._run(self._repository.find_sql(sql, *args, **kwargs))

    def close(self) -> None:
        """Close the private event loop."""
        if self._loop is not None and not self._loop.is_closed():
            self._loop.run_until_complete(self._loop.shutdown_asyncgens())
            self._loop.close()
            logger.debug("SyncRepository loop closed")
        self._loop = None

    def __enter__(self) -> "SyncRepository[T]":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
