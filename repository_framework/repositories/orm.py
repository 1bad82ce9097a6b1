"""
SQLAlchemy ORM Repository Implementation

Implements the Repository interface on an ``AsyncSession``. Sorting and
paging become ``ORDER BY`` / ``OFFSET`` / ``LIMIT``; include paths become
``selectinload`` chains so related collections are loaded eagerly.

Sessions should be created with ``expire_on_commit=False``: attributes of
expired instances cannot be refreshed implicitly under asyncio.
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Any, TypeVar

from sqlalchemy import ColumnElement, Select, func, select, text
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import RelationshipProperty, aliased, selectinload
from sqlalchemy.orm.strategy_options import Load

from ..config import RepositoryConfig
from ..constants import PROPERTY_PATH_SEPARATOR
from ..exceptions import InvalidPropertyError, NullArgumentError
from ..observability import timed_operation
from ..query.constraints import QueryConstraints, SortOrder
from ..query.parameters import bind_parameters
from ..query.result import QueryResult
from ..query.selectors import Selector
from .base import Capability, Repository

logger = logging.getLogger(__name__)

T = TypeVar("T")

WhereClause = ColumnElement[bool] | Iterable[ColumnElement[bool]] | None


class SQLAlchemyRepository(Repository[T]):
    """
    Repository over a SQLAlchemy ``AsyncSession``.

    Example:
        async with session_factory() as session:
            categories = SQLAlchemyRepository(session, Category)
            result = await categories.find(
                Category.name.like("T%"),
                QueryConstraints(Category).include("products.parts").page(1, 10),
            )
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
        session: AsyncSession,
        entity_class: type[T],
        id_property: str | Selector | None = None,
        auto_commit: bool = True,
        calculate_total_items: bool = True,
        parameter_pattern: str | None = None,
        config: RepositoryConfig | None = None,
    ):
        """
        Initialize the repository.

        Args:
            session: Async session used for every operation
            entity_class: SQLAlchemy mapped class
            id_property: Id property; defaults to convention, then the primary key
            auto_commit: Commit after each write. Disable when a unit of work
                commits for several repositories.
            calculate_total_items: Run a COUNT query for paged finds. When
                disabled ``total_count`` is the number of returned items.
            parameter_pattern: Placeholder pattern for ``find_sql``
            config: Supplies the placeholder pattern when none is given
        """
        if session is None:
            raise NullArgumentError("session")
        super().__init__(entity_class, id_property)
        self._session = session
        self._mapper = sa_inspect(entity_class)
        if self._id_property is None and self._mapper.primary_key:
            self._id_property = self._mapper.get_property_by_column(
                self._mapper.primary_key[0]
            ).key
        self.auto_commit = auto_commit
        self.calculate_total_items = calculate_total_items
        if parameter_pattern is None and config is not None:
            parameter_pattern = config.parameter_pattern
        self.parameter_pattern = parameter_pattern

    @property
    def session(self) -> AsyncSession:
        return self._session

    async def _save(self) -> None:
        await self._session.flush()
        if self.auto_commit:
            await self._session.commit()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @timed_operation("repository.create")
    async def create(self, entity: T) -> T:
        self._require(entity, "entity")
        self._session.add(entity)
        await self._save()
        logger.debug(f"Added {self.entity_name} with id={self._get_id(entity)}")
        return entity

    @timed_operation("repository.create_many")
    async def create_many(self, entities: Iterable[T]) -> list[T]:
        entities = list(self._require(entities, "entities"))
        self._session.add_all(entities)
        await self._save()
        logger.debug(f"Added {len(entities)} {self.entity_name} entities")
        return entities

    @timed_operation("repository.update")
    async def update(self, entity: T) -> T:
        self._require(entity, "entity")
        if entity not in self._session:
            entity = await self._session.merge(entity)
        await self._save()
        return entity

    async def _delete_one(self, entity: T) -> None:
        if entity not in self._session:
            entity = await self._session.merge(entity)
        await self._session.delete(entity)

    @timed_operation("repository.delete")
    async def delete(self, entity: T) -> None:
        self._require(entity, "entity")
        await self._delete_one(entity)
        await self._save()

    @timed_operation("repository.delete_many")
    async def delete_many(self, entities: Iterable[T]) -> None:
        for entity in self._require(entities, "entities"):
            await self._delete_one(entity)
        await self._save()

    async def save_changes(self) -> None:
        """Commit pending changes (used when ``auto_commit`` is off)."""
        await self._session.commit()

    def detach_all(self) -> None:
        """Detach every instance from the session so later finds reload them."""
        self._session.expunge_all()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _include_options(self, root: Any, includes: Iterable[str]) -> list[Load]:
        options = []
        for path in includes:
            current_class = self._entity_class
            current = root
            option = None
            for segment in path.split(PROPERTY_PATH_SEPARATOR):
                attribute = getattr(current, segment)
                prop = sa_inspect(current_class).attrs[segment]
                if not isinstance(prop, RelationshipProperty):
                    raise InvalidPropertyError(
                        f"'{path}' is not a relationship path of '{self.entity_name}'.",
                        property_path=path,
                        entity_name=self.entity_name,
                    )
                option = selectinload(attribute) if option is None else option.selectinload(attribute)
                current_class = prop.mapper.class_
                current = current_class
            options.append(option)
        return options

    def _apply(self, statement: Select, root: Any, constraints: QueryConstraints | None) -> Select:
        if constraints is None:
            return statement
        if constraints.includes:
            statement = statement.options(*self._include_options(root, constraints.includes))
        if constraints.is_sorted:
            column = getattr(root, constraints.sort_property_name)
            if constraints.sort_order is SortOrder.DESCENDING:
                column = column.desc()
            statement = statement.order_by(column)
        if constraints.is_paged:
            statement = statement.offset(constraints.start_record).limit(constraints.page_size)
        return statement

    @staticmethod
    def _where(statement: Select, where: WhereClause) -> Select:
        if where is None:
            return statement
        if isinstance(where, ColumnElement):
            return statement.where(where)
        return statement.where(*where)

    def query(self, where: WhereClause = None, constraints: QueryConstraints[T] | None = None) -> Select:
        """
        Build the select statement ``find`` would run.

        Callers may refine it further and execute it on ``session``.
        """
        self._check_constraints(constraints)
        statement = self._where(select(self._entity_class), where)
        return self._apply(statement, self._entity_class, constraints)

    async def _count(self, statement: Select) -> int:
        count_statement = select(func.count()).select_from(statement.order_by(None).subquery())
        return (await self._session.execute(count_statement)).scalar_one()

    async def _run(self, base: Select, root: Any, constraints: QueryConstraints | None) -> QueryResult[T]:
        statement = self._apply(base, root, constraints)
        items = list((await self._session.execute(statement)).scalars().all())

        total = len(items)
        if constraints is not None and constraints.is_paged and self.calculate_total_items:
            total = await self._count(base)
        return QueryResult.of(items, total, constraints)

    @timed_operation("repository.find")
    async def find(
        self,
        filter: WhereClause = None,
        constraints: QueryConstraints[T] | None = None,
    ) -> QueryResult[T]:
        """
        Find entities.

        Args:
            filter: SQLAlchemy boolean clause, or several to AND together
            constraints: Sort, page and include constraints
        """
        self._check_constraints(constraints)
        base = self._where(select(self._entity_class), filter)
        return await self._run(base, self._entity_class, constraints)

    @timed_operation("repository.find_sql")
    async def find_sql(
        self,
        sql: str,
        parameters: Mapping[str, Any] | None = None,
        constraints: QueryConstraints[T] | None = None,
        parameter_pattern: str | None = None,
    ) -> QueryResult[T]:
        """
        Find entities with a raw SQL statement.

        The statement must select the entity's columns. Sorting, paging and
        includes are applied around it.

        Args:
            sql: Statement with named placeholders, e.g. ``WHERE id > @id``
            parameters: Placeholder values
            constraints: Sort, page and include constraints
            parameter_pattern: Overrides the repository's placeholder pattern

        Raises:
            MissingParameterError: Before execution, if a placeholder has no value
        """
        if sql is None:
            raise NullArgumentError("sql")
        self._check_constraints(constraints)
        bound = bind_parameters(sql, parameters, parameter_pattern or self.parameter_pattern)

        raw = (
            text(bound.sql)
            .bindparams(**bound.parameters)
            .columns(*self._mapper.local_table.columns)
            .subquery("raw_sql")
        )
        root = aliased(self._entity_class, raw)
        return await self._run(select(root), root, constraints)

    @timed_operation("repository.get_by_id")
    async def get_by_id(self, id: Any, constraints: QueryConstraints[T] | None = None) -> T | None:
        """
        Get an entity by id.

        Args:
            id: Id value
            constraints: Only its includes are used
        """
        if constraints is None or not constraints.includes:
            return await self._session.get(self._entity_class, id)

        id_column = getattr(self._entity_class, self._require_id_property())
        statement = select(self._entity_class).where(id_column == id)
        statement = statement.options(*self._include_options(self._entity_class, constraints.includes))
        return (await self._session.execute(statement)).scalars().first()
