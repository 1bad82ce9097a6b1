"""
Unit of Work Pattern

Groups the SQLAlchemy repositories that share one session so their changes
are committed or rolled back together.
"""

import logging
from typing import Any, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import NullArgumentError
from .orm import SQLAlchemyRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")


class UnitOfWork:
    """
    Unit of Work over a single ``AsyncSession``.

    Repositories are created lazily, one per entity class, with
    ``auto_commit=False``; nothing is committed until ``commit()`` is called
    or the ``async with`` block exits without an exception.

    Usage:
        async with session_factory() as session:
            async with UnitOfWork(session) as uow:
                category = await uow.repository(Category).create(Category(name="Tools"))
                await uow.repository(Product).create(Product(name="Saw", category=category))
            # committed here, or rolled back if the block raised
    """

    def __init__(self, session: AsyncSession, **repository_options: Any):
        """
        Initialize the Unit of Work.

        Args:
            session: Session shared by every repository
            **repository_options: Passed to each ``SQLAlchemyRepository``
                (e.g. ``calculate_total_items``)
        """
        if session is None:
            raise NullArgumentError("session")
        self._session = session
        self._repository_options = repository_options
        self._repositories: dict[type, SQLAlchemyRepository] = {}

    def repository(self, entity_class: type[T]) -> SQLAlchemyRepository[T]:
        """
        Get or create the repository for an entity class.

        Args:
            entity_class: SQLAlchemy mapped class

        Returns:
            Repository bound to this unit of work's session
        """
        if entity_class is None:
            raise NullArgumentError("entity_class")
        if entity_class in self._repositories:
            return self._repositories[entity_class]

        repo = SQLAlchemyRepository(
            self._session, entity_class, auto_commit=False, **self._repository_options
        )
        self._repositories[entity_class] = repo

        logger.debug(f"Created repository for {entity_class.__name__}")
        return repo

    @property
    def session(self) -> AsyncSession:
        """
        Direct access to the underlying session.

        Use this for statements not covered by the Repository interface.
        """
        return self._session

    async def commit(self) -> None:
        await self._session.commit()
        logger.debug("UnitOfWork committed")

    async def rollback(self) -> None:
        await self._session.rollback()
        logger.debug("UnitOfWork rolled back")

    def detach_all(self) -> None:
        """Detach every loaded entity from the session."""
        self._session.expunge_all()

    def dispose(self) -> None:
        """Clear cached repositories."""
        self._repositories.clear()
        logger.debug("UnitOfWork disposed")

    async def __aenter__(self) -> "UnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        try:
            if exc_type is None:
                await self.commit()
            else:
                await self.rollback()
        finally:
            self.dispose()
