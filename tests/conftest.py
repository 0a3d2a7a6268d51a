# tests/conftest.py
import pytest
import pytest_asyncio
from unittest.mock import MagicMock

from duckdb_async import Database
from .mock_engine import MockEngine


@pytest.fixture
def engine():
    """A mock engine replying synchronously."""
    return MockEngine()


@pytest.fixture
def mock_logger():
    return MagicMock()


@pytest_asyncio.fixture
async def database(engine, mock_logger):
    """A ready Database wrapping the mock engine."""
    return await Database.create(":memory:", engine=engine, logger=mock_logger)


@pytest_asyncio.fixture
async def connection(database):
    return await database.connect()
