"""Tests for SmartGenerationService."""

import logging

import pytest
from arq.jobs import JobStatus as ArqJobStatus
from unittest.mock import AsyncMock, MagicMock, patch

from charlib.api.models.enums import JobStatus
from charlib.api.services.smart_generation import SMART_GENERATION_TASK, SmartGenerationService
from charlib.core.errors import AssetStoreError
from charlib.core.types import GenerationStyle, ResultStatus
from tests.unit.fakes import core, master

SERVICE_MODULE = "charlib.api.services.smart_generation"
POOL_MODULE = "charlib.api.arq_pool"


@pytest.fixture
def service(make_orchestrator, store):
    store.seed("hero", [
        master(),
        core("core-close", shot_type="close-up"),
        core("core-wide", shot_type="wide"),
    ])
    return SmartGenerationService(store, make_orchestrator())


class TestGenerate:
    @pytest.mark.asyncio
    async def test_runs_against_stored_pool(self, service, store):
        result = await service.generate("hero", "close-up of the hero", request_id="req-1")

        assert result.status is ResultStatus.ACCEPTED
        assert result.request_id == "req-1"
        assert [a.attempt_number for a in await store.list_attempt_audit("req-1")] == [1]

    @pytest.mark.asyncio
    async def test_generates_request_id_when_omitted(self, service):
        result = await service.generate("hero", "portrait")

        assert result.request_id

    @pytest.mark.asyncio
    async def test_unknown_character_aborts_with_no_reference(self, service):
        result = await service.generate("nobody", "portrait")

        assert result.status is ResultStatus.ABORTED
        assert result.attempts == ()

    @pytest.mark.asyncio
    async def test_invalid_fields_raise_before_any_work(self, service):
        with pytest.raises(ValueError, match="max_attempts"):
            await service.generate("hero", "portrait", max_attempts=6)

    @pytest.mark.asyncio
    async def test_store_outage_is_logged_and_raised(self, make_orchestrator, caplog):
        store = MagicMock()
        store.list_reference_assets = AsyncMock(side_effect=AssetStoreError("connection refused"))
        service = SmartGenerationService(store, make_orchestrator(asset_store=store))

        with caplog.at_level(logging.ERROR, logger="smart_generation"):
            with pytest.raises(AssetStoreError):
                await service.generate("hero", "portrait", request_id="req-1")

        record = caplog.records[-1]
        assert record.stage == "load_references"
        assert record.error_type == "AssetStoreError"


class TestFindReferences:
    @pytest.mark.asyncio
    async def test_ranks_matching_shot_first(self, service):
        profile, ranked, total = await service.find_references("hero", "close-up of the hero")

        assert profile.shot_type == "close-up"
        assert ranked[0].asset.id == "core-close"
        assert total == 3

    @pytest.mark.asyncio
    async def test_limit_truncates(self, service):
        _, ranked, total = await service.find_references("hero", "portrait", limit=1)

        assert len(ranked) == 1
        assert total == 3

    @pytest.mark.asyncio
    async def test_blank_prompt_is_rejected(self, service):
        with pytest.raises(ValueError):
            await service.find_references("hero", "  ")


class TestEnqueue:
    @pytest.mark.asyncio
    async def test_enqueues_with_filled_defaults(self, service):
        arq_pool = MagicMock()
        arq_pool.enqueue_job = AsyncMock()

        with patch(f"{POOL_MODULE}.get_pool", return_value=arq_pool):
            job_id = await service.enqueue("hero", "portrait", tags=("winter",))

        args, kwargs = arq_pool.enqueue_job.call_args
        assert args == (SMART_GENERATION_TASK,)
        assert kwargs["_job_id"] == job_id
        assert kwargs["request_id"] == job_id
        assert kwargs["style"] == GenerationStyle.CHARACTER_PRODUCTION.value
        assert kwargs["max_attempts"] == 3
        assert kwargs["quality_threshold"] == 70
        assert kwargs["consistency_threshold"] == 80
        assert kwargs["tags"] == ["winter"]

    @pytest.mark.asyncio
    async def test_invalid_request_is_not_enqueued(self, service):
        arq_pool = MagicMock()
        arq_pool.enqueue_job = AsyncMock()

        with patch(f"{POOL_MODULE}.get_pool", return_value=arq_pool):
            with pytest.raises(ValueError):
                await service.enqueue("hero", "portrait", quality_threshold=101)

        arq_pool.enqueue_job.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_queue_raises_runtime_error(self, service):
        with patch(f"{POOL_MODULE}.get_pool", side_effect=RuntimeError("Background jobs are disabled")):
            with pytest.raises(RuntimeError):
                await service.enqueue("hero", "portrait")

    @pytest.mark.asyncio
    async def test_duplicate_job_id_raises_runtime_error(self, service):
        arq_pool = MagicMock()
        arq_pool.enqueue_job = AsyncMock(return_value=None)

        with patch(f"{POOL_MODULE}.get_pool", return_value=arq_pool):
            with pytest.raises(RuntimeError, match="already exists"):
                await service.enqueue("hero", "portrait")


class TestGetJob:
    def _patch_job(self, status, info=None):
        job = MagicMock()
        job.status = AsyncMock(return_value=status)
        job.result_info = AsyncMock(return_value=info)
        return patch(f"{SERVICE_MODULE}.get_arq_job", return_value=job)

    @pytest.mark.asyncio
    async def test_unknown_job_returns_none(self, service):
        with self._patch_job(ArqJobStatus.not_found):
            assert await service.get_job("missing") is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("arq_status,expected", [
        (ArqJobStatus.deferred, JobStatus.PENDING),
        (ArqJobStatus.queued, JobStatus.PENDING),
        (ArqJobStatus.in_progress, JobStatus.RUNNING),
    ])
    async def test_maps_unfinished_states(self, service, arq_status, expected):
        with self._patch_job(arq_status):
            assert await service.get_job("req-1") == (expected, None, None)

    @pytest.mark.asyncio
    async def test_completed_job_returns_result(self, service):
        info = MagicMock(success=True, result={"request_id": "req-1"})

        with self._patch_job(ArqJobStatus.complete, info):
            assert await service.get_job("req-1") == (JobStatus.COMPLETED, {"request_id": "req-1"}, None)

    @pytest.mark.asyncio
    async def test_failed_job_returns_error(self, service):
        info = MagicMock(success=False, result=RuntimeError("worker crashed"))

        with self._patch_job(ArqJobStatus.complete, info):
            assert await service.get_job("req-1") == (JobStatus.FAILED, None, "worker crashed")
