"""
Pytest configuration and shared fixtures for REPOSITORY_FRAMEWORK tests.

This module provides:
- Marker registration
- A clean global metrics collector per test
- In-memory SQLite engines (aiosqlite) for the SQL backends
- Mock motor collections for the MongoDB backend
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from motor.motor_asyncio import AsyncIOMotorCollection
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from repository_framework.observability import (clear_correlation_id,
                                                 clear_repository_context,
                                                 get_metrics_collector)


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without external services")


# ============================================================================
# OBSERVABILITY FIXTURES
# ============================================================================


@pytest.fixture(autouse=True)
def reset_observability():
    """Start every test with empty metrics and no logging context."""
    get_metrics_collector().reset()
    clear_correlation_id()
    clear_repository_context()
    yield
    get_metrics_collector().reset()


# ============================================================================
# SQL FIXTURES
# ============================================================================


@pytest_asyncio.fixture
async def sqlite_engine():
    """Async engine over a private in-memory SQLite database."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    yield engine
    await engine.dispose()


# ============================================================================
# MOCK MONGODB FIXTURES
# ============================================================================


def _make_cursor(documents: list) -> MagicMock:
    """Mock motor cursor whose chained sort/skip/limit return itself."""
    cursor = MagicMock()
    cursor.sort.return_value = cursor
    cursor.skip.return_value = cursor
    cursor.limit.return_value = cursor
    cursor.to_list = AsyncMock(return_value=documents)
    return cursor


@pytest.fixture
def cursor_factory():
    """Factory for mock cursors returning the given documents."""
    return _make_cursor


@pytest.fixture
def mock_mongo_collection() -> MagicMock:
    """Create a mock MongoDB collection."""
    collection = MagicMock(spec=AsyncIOMotorCollection)
    collection.name = "CategoryCollection"
    collection.find = MagicMock(return_value=_make_cursor([]))
    collection.find_one = AsyncMock(return_value=None)
    collection.insert_one = AsyncMock(return_value=MagicMock(inserted_id="test_id"))
    collection.insert_many = AsyncMock(return_value=MagicMock(inserted_ids=["id1", "id2"]))
    collection.replace_one = AsyncMock(return_value=MagicMock(modified_count=1))
    collection.delete_one = AsyncMock(return_value=MagicMock(deleted_count=1))
    collection.delete_many = AsyncMock(return_value=MagicMock(deleted_count=2))
    collection.count_documents = AsyncMock(return_value=0)
    return collection


@pytest.fixture
def mock_mongo_database(mock_mongo_collection: MagicMock) -> MagicMock:
    """Create a mock MongoDB database returning the mock collection."""
    db = MagicMock()
    db.name = "test_db"
    db.__getitem__.return_value = mock_mongo_collection
    return db
