"""Unit tests for PostgresAssetStore with a mocked asyncpg pool."""

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import asyncpg
import pytest

from charlib.api.database.asset_store import PostgresAssetStore
from charlib.core.errors import AssetStoreError
from charlib.core.types import AssetKind, Attempt, AttemptStatus, NewReferenceAsset


class _Acquire:
    """Async context manager standing in for pool.acquire()."""

    def __init__(self, conn):
        self.conn = conn

    async def __aenter__(self):
        return self.conn

    async def __aexit__(self, exc_type, exc, tb):
        return False


class _Transaction:
    def __init__(self):
        self.committed = False
        self.rolled_back = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if exc_type is None:
            self.committed = True
        else:
            self.rolled_back = True
        return False


@pytest.fixture
def mock_conn():
    conn = AsyncMock()
    conn.transaction = MagicMock(return_value=_Transaction())
    return conn


@pytest.fixture
def pg_store(mock_conn):
    pool = MagicMock()
    pool.acquire.return_value = _Acquire(mock_conn)
    return PostgresAssetStore(pool)


def _metadata() -> NewReferenceAsset:
    return NewReferenceAsset(
        asset_id="cand-1",
        quality_score=91,
        consistency_score=86,
        prompt="close-up portrait",
        style="character_production",
        source_reference_id="master-1",
        request_id="req-1",
        shot_type="close-up",
        keywords=frozenset({"portrait", "close-up"}),
        tags=("winter",),
    )


class TestCreateReferenceAsset:
    @pytest.mark.asyncio
    async def test_inserts_asset_and_metadata_in_one_transaction(self, pg_store, mock_conn):
        asset_id = await pg_store.create_reference_asset("hero", _metadata())

        assert asset_id == "cand-1"
        assert mock_conn.execute.await_count == 2
        assert mock_conn.transaction.return_value.committed is True

        asset_sql, *asset_args = mock_conn.execute.await_args_list[0].args
        assert "INSERT INTO reference_assets" in asset_sql
        assert asset_args[:3] == ["cand-1", "hero", "generated"]
        assert json.loads(asset_args[7]) == ["close-up", "portrait"]

        metadata_sql, *metadata_args = mock_conn.execute.await_args_list[1].args
        assert "INSERT INTO generation_metadata" in metadata_sql
        assert metadata_args[1] == "req-1"
        assert json.loads(metadata_args[-1]) == ["winter"]

    @pytest.mark.asyncio
    async def test_failed_metadata_insert_rolls_back(self, pg_store, mock_conn):
        mock_conn.execute.side_effect = [None, asyncpg.PostgresError("boom")]

        with pytest.raises(AssetStoreError, match="failed to persist"):
            await pg_store.create_reference_asset("hero", _metadata())

        assert mock_conn.transaction.return_value.rolled_back is True

    @pytest.mark.asyncio
    async def test_unique_violation_is_reported_as_conflict(self, pg_store, mock_conn):
        mock_conn.execute.side_effect = asyncpg.UniqueViolationError("duplicate key")

        with pytest.raises(AssetStoreError, match="conflicts"):
            await pg_store.create_reference_asset("hero", _metadata())


class TestListReferenceAssets:
    @pytest.mark.asyncio
    async def test_maps_rows_to_assets(self, pg_store, mock_conn):
        created = datetime(2024, 1, 1, tzinfo=timezone.utc)
        mock_conn.fetch.return_value = [{
            "id": "master-1",
            "kind": "master",
            "quality_score": 90.0,
            "consistency_score": 95.0,
            "shot_type": "close-up",
            "angle": None,
            "keywords_json": '["hero"]',
            "media_url": None,
            "created_at": created,
        }]

        pool = await pg_store.list_reference_assets("hero")

        assert len(pool) == 1
        assert pool[0].kind is AssetKind.MASTER
        assert pool[0].keywords == frozenset({"hero"})
        assert pool[0].created_at == created
        assert mock_conn.fetch.await_args.args[1] == "hero"

    @pytest.mark.asyncio
    async def test_connection_failure_raises_store_error(self, pg_store, mock_conn):
        mock_conn.fetch.side_effect = OSError("connection refused")

        with pytest.raises(AssetStoreError):
            await pg_store.list_reference_assets("hero")


class TestAttemptAudit:
    @pytest.mark.asyncio
    async def test_append_writes_attempt_row(self, pg_store, mock_conn):
        attempt = Attempt(
            attempt_number=2,
            reference_id="core-1",
            reference_kind=AssetKind.CORE_SET,
            status=AttemptStatus.REJECTED,
            elapsed_ms=1500,
            quality_score=60.0,
            consistency_score=70.0,
            reject_reason="quality 60/70 (short by 10)",
        )

        await pg_store.append_attempt_audit("req-1", attempt)

        sql, *args = mock_conn.execute.await_args.args
        assert "INSERT INTO generation_attempts" in sql
        assert args[:6] == ["req-1", 2, "core-1", "core_set", "rejected", 1500]

    @pytest.mark.asyncio
    async def test_list_maps_rows_in_order(self, pg_store, mock_conn):
        mock_conn.fetch.return_value = [
            {
                "attempt_number": 1,
                "reference_id": "master-1",
                "reference_kind": "master",
                "status": "accepted",
                "elapsed_ms": 900,
                "quality_score": 88.0,
                "consistency_score": 91.0,
                "reject_reason": None,
                "candidate_asset_id": "cand-1",
                "same_subject": True,
            }
        ]

        audit = await pg_store.list_attempt_audit("req-1")

        assert audit[0].status is AttemptStatus.ACCEPTED
        assert audit[0].reference_used == "master:master-1"
        assert "ORDER BY attempt_number" in mock_conn.fetch.await_args.args[0]
