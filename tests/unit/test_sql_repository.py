"""
Unit tests for SqlRepository (hand-written SQL) against an in-memory SQLite database.
"""

from dataclasses import dataclass
from typing import Optional
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from sqlalchemy import text

from repository_framework.exceptions import (CapabilityNotSupportedError,
                                             MissingParameterError,
                                             NullArgumentError)
from repository_framework.query import QueryConstraints
from repository_framework.repositories import SqlRepository


@dataclass
class Category:
    id: Optional[int] = None
    name: str = ""
    description: Optional[str] = None


@pytest_asyncio.fixture
async def engine(sqlite_engine):
    async with sqlite_engine.begin() as conn:
        await conn.execute(
            text(
                "CREATE TABLE Category ("
                "id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT, description TEXT)"
            )
        )
    return sqlite_engine


async def seeded(engine, count: int = 100) -> SqlRepository[Category]:
    repo = SqlRepository(engine, Category)
    await repo.create_many(Category(name=f"Category {i:03d}") for i in range(1, count + 1))
    return repo


@pytest.mark.unit
class TestSqlWrites:
    """Test generated INSERT, UPDATE and DELETE statements."""

    @pytest.mark.asyncio
    async def test_create_reads_generated_id(self, engine):
        repo = SqlRepository(engine, Category)
        first = await repo.create(Category(name="Tools"))
        second = await repo.create(Category(name="Garden"))
        assert (first.id, second.id) == (1, 2)

    @pytest.mark.asyncio
    async def test_last_row_id_command(self, engine):
        repo = SqlRepository(engine, Category, last_row_id_command="SELECT last_insert_rowid()")
        category = await repo.create(Category(name="Tools"))
        assert category.id == 1

    @pytest.mark.asyncio
    async def test_get_by_id(self, engine):
        repo = SqlRepository(engine, Category)
        await repo.create(Category(name="Tools", description="Hand tools"))
        loaded = await repo.get_by_id(1)
        assert loaded == Category(id=1, name="Tools", description="Hand tools")
        assert await repo.get_by_id(99) is None

    @pytest.mark.asyncio
    async def test_update(self, engine):
        repo = SqlRepository(engine, Category)
        category = await repo.create(Category(name="Tools"))
        category.name = "Renamed"
        await repo.update(category)
        assert (await repo.get_by_id(category.id)).name == "Renamed"

    @pytest.mark.asyncio
    async def test_delete_and_delete_many(self, engine):
        repo = await seeded(engine, 5)
        await repo.delete(Category(id=1))
        await repo.delete_many([Category(id=2), Category(id=3)])
        result = await repo.find()
        assert [c.id for c in result.items] == [4, 5]

    @pytest.mark.asyncio
    async def test_table_name_override(self, engine):
        async with engine.begin() as conn:
            await conn.execute(text("CREATE TABLE categories (id INTEGER PRIMARY KEY, name TEXT, description TEXT)"))
        repo = SqlRepository(engine, Category, table_name="categories")
        await repo.create(Category(name="Tools"))
        assert (await repo.find()).total_count == 1
        assert (await SqlRepository(engine, Category).find()).total_count == 0

    def test_engine_required(self):
        with pytest.raises(NullArgumentError):
            SqlRepository(None, Category)


@pytest.mark.unit
class TestSqlFind:
    """Test filters, raw SQL and constraints rendered into SQL."""

    @pytest.mark.asyncio
    async def test_second_page_of_100(self, engine):
        repo = await seeded(engine)
        result = await repo.find(constraints=QueryConstraints(Category).page(2, 40))
        assert len(result.items) == 40
        assert result.items[0].id == 41
        assert result.total_count == 100

    @pytest.mark.asyncio
    async def test_fourth_page_of_100_is_empty(self, engine):
        repo = await seeded(engine)
        result = await repo.find(constraints=QueryConstraints(Category).page(4, 40))
        assert len(result.items) == 0
        assert result.total_count == 100

    @pytest.mark.asyncio
    async def test_filter_with_parameters(self, engine):
        repo = await seeded(engine)
        constraints = QueryConstraints(Category).sort_by_descending("NAME").page(1, 2)
        result = await repo.find("WHERE id <= @max", constraints, parameters={"max": 10})
        assert [c.id for c in result.items] == [10, 9]
        assert result.total_count == 10

    @pytest.mark.asyncio
    async def test_filter_missing_parameter(self, engine):
        repo = SqlRepository(engine, Category)
        with pytest.raises(MissingParameterError):
            await repo.find("id <= @max")

    @pytest.mark.asyncio
    async def test_clear_sorting_restores_unsorted_order(self, engine):
        async with engine.begin() as conn:
            for id, name in [(3, "Garden"), (1, "Tools"), (2, "Appliances")]:
                await conn.execute(
                    text("INSERT INTO Category (id, name) VALUES (:id, :name)"),
                    {"id": id, "name": name},
                )
        repo = SqlRepository(engine, Category)

        sorted_result = await repo.find(constraints=QueryConstraints(Category).sort_by("name"))
        cleared = QueryConstraints(Category).sort_by("name").clear_sorting()
        cleared_result = await repo.find(constraints=cleared)
        unsorted_result = await repo.find()

        assert [c.id for c in sorted_result.items] == [2, 3, 1]
        assert [c.id for c in cleared_result.items] == [c.id for c in unsorted_result.items]
        assert [c.id for c in cleared_result.items] != [2, 3, 1]
        assert repo.order_by_clause(cleared) == ""

    @pytest.mark.asyncio
    async def test_find_sql_pages_around_statement(self, engine):
        repo = await seeded(engine)
        result = await repo.find_sql(
            "SELECT * FROM Category WHERE id > @id",
            {"id": 50},
            QueryConstraints(Category).page(2, 40),
        )
        assert len(result.items) == 10
        assert result.total_count == 50

    @pytest.mark.asyncio
    async def test_find_sql_missing_parameter(self, engine):
        repo = SqlRepository(engine, Category)
        with pytest.raises(MissingParameterError) as exc_info:
            await repo.find_sql("SELECT * FROM Category WHERE id > @id AND name = @name", {"id": 1})
        assert exc_info.value.parameter == "name"

    @pytest.mark.asyncio
    async def test_includes_are_not_supported(self, engine):
        repo = SqlRepository(engine, Category)
        with pytest.raises(CapabilityNotSupportedError):
            await repo.find(constraints=QueryConstraints(Category).include("name"))

    def test_clauses(self):
        repo = SqlRepository(
            MagicMock(),
            Category,
            limit_offset_pattern="OFFSET ({PageNumber}-1)*{PageSize} ROWS FETCH NEXT {PageSize} ROWS ONLY",
        )
        constraints = QueryConstraints(Category).sort_by_descending("name").page(3, 20)
        assert repo.order_by_clause(constraints) == "ORDER BY name DESC"
        assert repo.build_query("SELECT * FROM Category", constraints) == (
            "SELECT * FROM Category ORDER BY name DESC "
            "OFFSET (3-1)*20 ROWS FETCH NEXT 20 ROWS ONLY"
        )
        assert repo.build_query("SELECT * FROM Category") == "SELECT * FROM Category"
