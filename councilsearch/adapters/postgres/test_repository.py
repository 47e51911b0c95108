"""Tests for Postgres Repository."""

from unittest.mock import AsyncMock

import asyncpg
import pytest

from councilsearch.config.errors import StorageError, TransientInfraError

from .repository import PostgresRepository


@pytest.fixture
def pool() -> AsyncMock:
    """Create a mock connection pool."""
    return AsyncMock()


@pytest.fixture
def repo(pool: AsyncMock) -> PostgresRepository:
    repo = PostgresRepository("postgresql://test@localhost/test")
    repo._pool = pool
    return repo


async def test_count_wraps_query(repo: PostgresRepository, pool: AsyncMock):
    """Test the query is counted as a subquery with its parameters."""
    pool.fetchval.return_value = 42

    count = await repo.count('SELECT s.* FROM "Subject" s WHERE s.id = $1', "s1", timeout=5.0)

    assert count == 42
    query, param = pool.fetchval.await_args.args
    assert query.startswith("SELECT COUNT(*) AS count FROM (SELECT s.*")
    assert query.endswith(") AS validation_query")
    assert param == "s1"
    assert pool.fetchval.await_args.kwargs == {"timeout": 5.0}


async def test_count_null_is_zero(repo: PostgresRepository, pool: AsyncMock):
    pool.fetchval.return_value = None
    assert await repo.count("SELECT 1 WHERE false") == 0


async def test_connection_loss_is_transient(repo: PostgresRepository, pool: AsyncMock):
    pool.fetchval.side_effect = ConnectionResetError("connection reset by peer")

    with pytest.raises(TransientInfraError):
        await repo.count("SELECT 1")


async def test_schema_errors_propagate_from_count(repo: PostgresRepository, pool: AsyncMock):
    """Test raw server errors reach the validator, which classifies them."""
    pool.fetchval.side_effect = asyncpg.exceptions.UndefinedColumnError(
        'column s."missing" does not exist'
    )

    with pytest.raises(asyncpg.exceptions.UndefinedColumnError):
        await repo.count('SELECT s."missing" FROM "Subject" s')


async def test_fetch_decodes_json_columns(repo: PostgresRepository, pool: AsyncMock):
    pool.fetch.return_value = [
        {
            "id": "s1",
            "speaker_segments": '[{"segment_id": "seg-1"}]',
            "name": "{not json",
        }
    ]

    rows = await repo.fetch("SELECT ...")

    assert rows == [
        {"id": "s1", "speaker_segments": [{"segment_id": "seg-1"}], "name": "{not json"}
    ]


async def test_find_existing_city_ids(repo: PostgresRepository, pool: AsyncMock):
    pool.fetch.return_value = [{"id": "athens"}]

    existing = await repo.find_existing_city_ids(["athens", "atlantis"])

    assert existing == {"athens"}
    assert pool.fetch.await_args.args[1] == ["athens", "atlantis"]


async def test_find_existing_city_ids_empty(repo: PostgresRepository, pool: AsyncMock):
    assert await repo.find_existing_city_ids([]) == set()
    pool.fetch.assert_not_awaited()


async def test_catalog_failure_is_storage_error(repo: PostgresRepository, pool: AsyncMock):
    pool.fetch.side_effect = asyncpg.exceptions.UndefinedTableError(
        'relation "City" does not exist'
    )

    with pytest.raises(StorageError):
        await repo.list_cities()


async def test_missing_pool_is_storage_error(monkeypatch: pytest.MonkeyPatch):
    """Test a pool that failed to come up is reported, not asserted."""
    repo = PostgresRepository("postgresql://test@localhost/test")
    monkeypatch.setattr(repo, "initialize", AsyncMock())

    with pytest.raises(StorageError):
        await repo.count("SELECT 1")
