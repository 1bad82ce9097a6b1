"""
Stored procedure repository.

Every operation calls a procedure named after the entity:
``Create{Entity}``, ``Update{Entity}``, ``Delete{Entity}``, ``Get{Entity}``
and ``Find{Entity}``. Repository parameters are passed to ``Find{Entity}``.
"""

import logging
from collections.abc import Iterable
from typing import Any, TypeVar

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from ..constants import DEFAULT_PROCEDURE_CALL_TEMPLATE
from ..exceptions import CapabilityNotSupportedError, NullArgumentError
from ..observability import timed_operation
from ..query.constraints import QueryConstraints
from ..query.introspection import entity_columns
from ..query.result import QueryResult
from ..query.selectors import Selector
from .base import Capability, ParameterizedMixin, Repository
from .mapping import entity_from_dict

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StoredProcedureRepository(ParameterizedMixin, Repository[T]):
    """
    Repository backed by stored procedures.

    Example:
        products = StoredProcedureRepository(engine, Product)
        result = await products.set_parameter("category_id", 3).find()
        # EXEC FindProduct @category_id=:category_id
    """

    capabilities = frozenset({Capability.PARAMETERIZED})

    def __init__(
        self,
        engine: AsyncEngine,
        entity_class: type[T],
        id_property: str | Selector | None = None,
        call_template: str = DEFAULT_PROCEDURE_CALL_TEMPLATE,
        argument_template: str = "@{name}=:{name}",
    ):
        """
        Initialize the repository.

        Args:
            engine: Async engine
            entity_class: Entity class; its scalar properties are the arguments
            id_property: Id property; defaults to convention
            call_template: Procedure call with ``{procedure}`` and ``{arguments}``
            argument_template: One named argument, with ``{name}``
        """
        if engine is None:
            raise NullArgumentError("engine")
        super().__init__(entity_class, id_property)
        self._engine = engine
        self.call_template = call_template
        self.argument_template = argument_template

    def procedure_call(self, action: str, names: Iterable[str]) -> str:
        """Render the call for ``{action}{Entity}`` with the given argument names."""
        arguments = ",".join(self.argument_template.format(name=name) for name in names)
        return self.call_template.format(
            procedure=f"{action}{self.entity_name}", arguments=arguments
        ).strip()

    @property
    def _columns(self) -> list[str]:
        return [c for c in entity_columns(self._entity_class) if c != self._id_property]

    def _values(self, entity: T, names: Iterable[str]) -> dict[str, Any]:
        return {name: getattr(entity, name, None) for name in names}

    @timed_operation("repository.create")
    async def create(self, entity: T) -> T:
        """Call ``Create{Entity}``; the first column of its result is the new id."""
        self._require(entity, "entity")
        columns = self._columns
        async with self._engine.begin() as conn:
            result = await conn.execute(
                text(self.procedure_call("Create", columns)), self._values(entity, columns)
            )
            if self._id_property is not None and result.returns_rows:
                self._set_id(entity, result.scalar())
        return entity

    @timed_operation("repository.create_many")
    async def create_many(self, entities: Iterable[T]) -> list[T]:
        entities = list(self._require(entities, "entities"))
        if not entities:
            return entities
        columns = self._columns
        async with self._engine.begin() as conn:
            await conn.execute(
                text(self.procedure_call("Create", columns)),
                [self._values(e, columns) for e in entities],
            )
        return entities

    @timed_operation("repository.update")
    async def update(self, entity: T) -> T:
        self._require(entity, "entity")
        columns = list(entity_columns(self._entity_class))
        async with self._engine.begin() as conn:
            await conn.execute(
                text(self.procedure_call("Update", columns)), self._values(entity, columns)
            )
        return entity

    @timed_operation("repository.delete")
    async def delete(self, entity: T) -> None:
        self._require(entity, "entity")
        await self._delete([entity])

    @timed_operation("repository.delete_many")
    async def delete_many(self, entities: Iterable[T]) -> None:
        await self._delete(self._require(entities, "entities"))

    async def _delete(self, entities: Iterable[T]) -> None:
        id_column = self._require_id_property()
        values = [{id_column: self._get_id(e)} for e in entities]
        if not values:
            return
        async with self._engine.begin() as conn:
            await conn.execute(text(self.procedure_call("Delete", [id_column])), values)

    @timed_operation("repository.get_by_id")
    async def get_by_id(self, id: Any) -> T | None:
        id_column = self._require_id_property()
        async with self._engine.connect() as conn:
            result = await conn.execute(
                text(self.procedure_call("Get", [id_column])), {id_column: id}
            )
            row = result.mappings().first()
        return entity_from_dict(self._entity_class, row)

    @timed_operation("repository.find")
    async def find(
        self,
        filter: Any = None,
        constraints: QueryConstraints[T] | None = None,
    ) -> QueryResult[T]:
        """
        Call ``Find{Entity}`` with the repository parameters.

        Args:
            filter: Not supported; pass values with ``set_parameter``
            constraints: Must not sort, page or include
        """
        self._check_constraints(constraints)
        if filter is not None:
            raise CapabilityNotSupportedError(Capability.QUERYABLE.value, type(self).__name__)
        parameters = self.parameters
        statement = self.procedure_call("Find", parameters.keys())
        logger.debug(f"Executing: {statement}")
        async with self._engine.connect() as conn:
            rows = (await conn.execute(text(statement), parameters)).mappings().all()
        items = [entity_from_dict(self._entity_class, row) for row in rows]
        return QueryResult.of(items, constraints=constraints)
