"""
Raw SQL Repository Implementation

Writes INSERT/UPDATE/DELETE statements from the entity's column properties
and runs them as SQLAlchemy ``text()`` on an ``AsyncEngine``. Sorting and
paging are rendered into the statement (``ORDER BY`` and a configurable
limit/offset clause); related objects are never loaded.
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Any, TypeVar

from sqlalchemy import bindparam, text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from ..config import RepositoryConfig
from ..constants import DEFAULT_LIMIT_OFFSET_PATTERN
from ..exceptions import NullArgumentError
from ..observability import timed_operation
from ..query.constraints import QueryConstraints, SortOrder
from ..query.introspection import entity_columns
from ..query.parameters import bind_parameters
from ..query.result import QueryResult
from ..query.selectors import Selector
from .base import Capability, Repository
from .mapping import entity_from_dict

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SqlRepository(Repository[T]):
    """
    Repository issuing hand-written SQL through an ``AsyncEngine``.

    Example:
        engine = create_async_engine("sqlite+aiosqlite:///app.db")
        categories = SqlRepository(engine, Category)
        result = await categories.find(
            "name <> @name",
            QueryConstraints(Category).sort_by("id").page(2, 40),
            parameters={"name": "XXX"},
        )
    """

    capabilities = frozenset({Capability.SORTABLE, Capability.PAGEABLE})

    def __init__(
        self,
        engine: AsyncEngine,
        entity_class: type[T],
        id_property: str | Selector | None = None,
        table_name: str | None = None,
        limit_offset_pattern: str = DEFAULT_LIMIT_OFFSET_PATTERN,
        last_row_id_command: str | None = None,
        parameter_pattern: str | None = None,
        config: RepositoryConfig | None = None,
        calculate_total_items: bool = True,
    ):
        """
        Initialize the repository.

        Args:
            engine: Async engine
            entity_class: Entity class; its scalar properties are the columns
            id_property: Id property; defaults to convention
            table_name: Table name; defaults to the entity class name
            limit_offset_pattern: Paging clause with ``{PageNumber}`` and
                ``{PageSize}`` placeholders
            last_row_id_command: Statement returning the id generated by an
                INSERT (e.g. ``SELECT @@IDENTITY``). When omitted the
                driver's ``lastrowid`` is used.
            parameter_pattern: Placeholder pattern for filters and raw SQL
            config: Supplies the placeholder pattern when none is given
            calculate_total_items: Run a COUNT query for paged finds
        """
        if engine is None:
            raise NullArgumentError("engine")
        super().__init__(entity_class, id_property)
        self._engine = engine
        self.table_name = table_name or self.entity_name
        self.limit_offset_pattern = limit_offset_pattern
        self.last_row_id_command = last_row_id_command
        if parameter_pattern is None and config is not None:
            parameter_pattern = config.parameter_pattern
        self.parameter_pattern = parameter_pattern
        self.calculate_total_items = calculate_total_items

    @property
    def _columns(self) -> list[str]:
        return [c for c in entity_columns(self._entity_class) if c != self._id_property]

    def _values(self, entity: T, include_id: bool = False) -> dict[str, Any]:
        values = {column: getattr(entity, column, None) for column in self._columns}
        if include_id:
            values[self._require_id_property()] = self._get_id(entity)
        return values

    def _insert_statement(self) -> str:
        columns = self._columns
        return (
            f"INSERT INTO {self.table_name} ({','.join(columns)}) "
            f"VALUES ({','.join(':' + c for c in columns)})"
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @timed_operation("repository.create")
    async def create(self, entity: T) -> T:
        self._require(entity, "entity")
        async with self._engine.begin() as conn:
            result = await conn.execute(text(self._insert_statement()), self._values(entity))
            if self._id_property is not None:
                if self.last_row_id_command:
                    new_id = (await conn.execute(text(self.last_row_id_command))).scalar()
                else:
                    new_id = result.lastrowid
                self._set_id(entity, new_id)
        logger.debug(f"Inserted {self.entity_name} into {self.table_name}")
        return entity

    @timed_operation("repository.create_many")
    async def create_many(self, entities: Iterable[T]) -> list[T]:
        """Insert in one executemany call. Generated ids are not read back."""
        entities = list(self._require(entities, "entities"))
        if not entities:
            return entities
        async with self._engine.begin() as conn:
            await conn.execute(
                text(self._insert_statement()), [self._values(e) for e in entities]
            )
        logger.debug(f"Inserted {len(entities)} {self.entity_name} rows into {self.table_name}")
        return entities

    @timed_operation("repository.update")
    async def update(self, entity: T) -> T:
        self._require(entity, "entity")
        id_column = self._require_id_property()
        assignments = ",".join(f"{c}=:{c}" for c in self._columns)
        statement = f"UPDATE {self.table_name} SET {assignments} WHERE {id_column}=:{id_column}"
        async with self._engine.begin() as conn:
            await conn.execute(text(statement), self._values(entity, include_id=True))
        return entity

    @timed_operation("repository.delete")
    async def delete(self, entity: T) -> None:
        self._require(entity, "entity")
        id_column = self._require_id_property()
        async with self._engine.begin() as conn:
            await conn.execute(
                text(f"DELETE FROM {self.table_name} WHERE {id_column}=:id"),
                {"id": self._get_id(entity)},
            )

    @timed_operation("repository.delete_many")
    async def delete_many(self, entities: Iterable[T]) -> None:
        ids = [self._get_id(e) for e in self._require(entities, "entities")]
        if not ids:
            return
        id_column = self._require_id_property()
        statement = text(f"DELETE FROM {self.table_name} WHERE {id_column} IN :ids").bindparams(
            bindparam("ids", expanding=True)
        )
        async with self._engine.begin() as conn:
            await conn.execute(statement, {"ids": ids})

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @timed_operation("repository.get_by_id")
    async def get_by_id(self, id: Any) -> T | None:
        id_column = self._require_id_property()
        async with self._engine.connect() as conn:
            result = await conn.execute(
                text(f"SELECT * FROM {self.table_name} WHERE {id_column}=:id"), {"id": id}
            )
            row = result.mappings().first()
        return entity_from_dict(self._entity_class, row)

    def order_by_clause(self, constraints: QueryConstraints | None) -> str:
        if constraints is None or not constraints.is_sorted:
            return ""
        order = " DESC" if constraints.sort_order is SortOrder.DESCENDING else ""
        return f"ORDER BY {constraints.sort_property_name}{order}"

    def limit_offset_clause(self, constraints: QueryConstraints | None) -> str:
        if constraints is None or not constraints.is_paged:
            return ""
        return self.limit_offset_pattern.replace(
            "{PageNumber}", str(constraints.page_number)
        ).replace("{PageSize}", str(constraints.page_size))

    def build_query(self, source: str, constraints: QueryConstraints | None = None) -> str:
        """Append ORDER BY and paging clauses to a SELECT."""
        parts = [source, self.order_by_clause(constraints), self.limit_offset_clause(constraints)]
        return " ".join(part for part in parts if part)

    async def _run(
        self,
        conn: AsyncConnection,
        source: str,
        count_source: str,
        parameters: dict[str, Any],
        constraints: QueryConstraints | None,
    ) -> QueryResult[T]:
        statement = self.build_query(source, constraints)
        logger.debug(f"Executing: {statement}")
        rows = (await conn.execute(text(statement), parameters)).mappings().all()
        items = [entity_from_dict(self._entity_class, row) for row in rows]

        total = len(items)
        if constraints is not None and constraints.is_paged and self.calculate_total_items:
            total = (await conn.execute(text(count_source), parameters)).scalar_one()
        return QueryResult.of(items, total, constraints)

    @timed_operation("repository.find")
    async def find(
        self,
        filter: str | None = None,
        constraints: QueryConstraints[T] | None = None,
        parameters: Mapping[str, Any] | None = None,
    ) -> QueryResult[T]:
        """
        Find rows of the entity's table.

        Args:
            filter: WHERE condition, with or without the WHERE keyword
            constraints: Sort and page constraints
            parameters: Values for the placeholders in ``filter``

        Raises:
            MissingParameterError: Before execution, if a placeholder has no value
        """
        self._check_constraints(constraints)
        where = ""
        bound_parameters: dict[str, Any] = {}
        if filter and filter.strip():
            bound = bind_parameters(filter.strip(), parameters, self.parameter_pattern)
            condition = bound.sql
            if condition[:6].upper() == "WHERE ":
                condition = condition[6:]
            where = f" WHERE {condition}"
            bound_parameters = bound.parameters

        async with self._engine.connect() as conn:
            return await self._run(
                conn,
                f"SELECT * FROM {self.table_name}{where}",
                f"SELECT COUNT(*) FROM {self.table_name}{where}",
                bound_parameters,
                constraints,
            )

    @timed_operation("repository.find_sql")
    async def find_sql(
        self,
        sql: str,
        parameters: Mapping[str, Any] | None = None,
        constraints: QueryConstraints[T] | None = None,
        parameter_pattern: str | None = None,
    ) -> QueryResult[T]:
        """
        Find entities with a complete SELECT statement.

        Sorting and paging are applied around the statement, so
        ``find_sql("SELECT * FROM Category WHERE id > @id", {"id": 50},
        QueryConstraints(Category).page(2, 40))`` pages through the filtered rows.

        Raises:
            MissingParameterError: Before execution, if a placeholder has no value
        """
        if sql is None:
            raise NullArgumentError("sql")
        self._check_constraints(constraints)
        bound = bind_parameters(sql, parameters, parameter_pattern or self.parameter_pattern)
        async with self._engine.connect() as conn:
            return await self._run(
                conn,
                f"SELECT * FROM ({bound.sql}) AS raw_sql",
                f"SELECT COUNT(*) FROM ({bound.sql}) AS raw_sql",
                bound.parameters,
                constraints,
            )
