"""Smart generation service: runs the orchestrator against stored pools."""

import logging
import uuid
from contextlib import AsyncExitStack
from typing import Optional

import asyncpg
from arq.jobs import JobStatus as ArqJobStatus

from ...config import OrchestratorConfig, get_analysis_client, get_generation_client
from ...core.asset_store import AssetStore, InMemoryAssetStore
from ...core.errors import AssetStoreError
from ...core.modules.prompt_analyzer import PromptAnalyzer
from ...core.modules.reference_ranker import RankedReference, ReferenceRanker
from ...core.modules.retry_orchestrator import RetryOrchestrator
from ...core.types import Attempt, GenerationRequest, GenerationResult, GenerationStyle, PromptProfile
from ..arq_pool import enqueue_job, get_job as get_arq_job
from ..config import DEFAULT_REFERENCE_LIMIT, get_database_dsn
from ..logging import generation_logger
from ..models.enums import JobStatus

logger = logging.getLogger(__name__)

SMART_GENERATION_TASK = "smart_generation_task"

_JOB_STATUS_MAP = {
    ArqJobStatus.deferred: JobStatus.PENDING,
    ArqJobStatus.queued: JobStatus.PENDING,
    ArqJobStatus.in_progress: JobStatus.RUNNING,
}


class SmartGenerationService:
    """Service for running and enqueueing smart generation requests."""

    def __init__(
        self,
        asset_store: AssetStore,
        orchestrator: RetryOrchestrator,
        config: Optional[OrchestratorConfig] = None,
    ):
        self.asset_store = asset_store
        self.orchestrator = orchestrator
        self.config = config or orchestrator.config
        self.prompt_analyzer = orchestrator.prompt_analyzer
        self.ranker = orchestrator.ranker

    def build_request(
        self,
        character_id: str,
        prompt: str,
        style: Optional[GenerationStyle] = None,
        max_attempts: Optional[int] = None,
        quality_threshold: Optional[float] = None,
        consistency_threshold: Optional[float] = None,
        tags: Optional[tuple[str, ...]] = None,
    ) -> GenerationRequest:
        """Validate inputs and fill omitted fields. Raises ValueError."""
        return GenerationRequest.with_defaults(
            self.config,
            character_id=character_id,
            prompt=prompt,
            style=style,
            max_attempts=max_attempts,
            quality_threshold=quality_threshold,
            consistency_threshold=consistency_threshold,
            tags=tags,
        )

    async def generate(
        self,
        character_id: str,
        prompt: str,
        request_id: Optional[str] = None,
        source: str = "api",
        **options,
    ) -> GenerationResult:
        """
        Run one smart generation request to completion.

        Args:
            character_id: Character whose reference pool is used
            prompt: Free-text prompt
            request_id: Audit trail key (generated if omitted)
            source: Where the request came from, for logging
            **options: style, max_attempts, thresholds, tags (None = default)

        Returns:
            GenerationResult for every orchestration outcome

        Raises:
            ValueError: invalid request fields
            AssetStoreError: the reference pool could not be loaded
        """
        request = self.build_request(character_id, prompt, **options)
        request_id = request_id or str(uuid.uuid4())

        generation_logger.generation_started(request_id, character_id, source)
        try:
            pool = await self.asset_store.list_reference_assets(character_id)
        except AssetStoreError as e:
            generation_logger.generation_failed(request_id, character_id, e, stage="load_references")
            raise
        result = await self.orchestrator.run(request, pool, request_id=request_id)

        generation_logger.attempts_logged(result, character_id)
        generation_logger.generation_finished(result, character_id)
        return result

    async def find_references(
        self,
        character_id: str,
        prompt: str,
        limit: Optional[int] = None,
    ) -> tuple[PromptProfile, list[RankedReference], int]:
        """
        Rank a character's references for a prompt without generating.

        Returns:
            Tuple of (prompt profile, top `limit` ranked references, pool size)
        """
        if not prompt or not prompt.strip():
            raise ValueError("prompt is required")
        profile = self.prompt_analyzer.analyze(prompt)
        pool = await self.asset_store.list_reference_assets(character_id)
        ranked = self.ranker.rank_with_scores(pool, profile)
        return profile, ranked[: limit or DEFAULT_REFERENCE_LIMIT], len(pool)

    async def enqueue(self, character_id: str, prompt: str, **options) -> str:
        """
        Validate a request and enqueue it for the arq worker.

        The job id doubles as the request id, so the audit trail of a job
        is available under the same key.

        Raises:
            ValueError: invalid request fields
            RuntimeError: job queue not configured
        """
        request = self.build_request(character_id, prompt, **options)
        request_id = str(uuid.uuid4())

        await enqueue_job(
            SMART_GENERATION_TASK,
            request_id,
            request_id=request_id,
            character_id=request.character_id,
            prompt=request.prompt,
            style=request.style.value,
            max_attempts=request.max_attempts,
            quality_threshold=request.quality_threshold,
            consistency_threshold=request.consistency_threshold,
            tags=list(request.tags),
        )
        logger.info(f"Enqueued smart generation job {request_id} for character {character_id}")
        return request_id

    async def get_job(self, job_id: str) -> Optional[tuple[JobStatus, Optional[dict], Optional[str]]]:
        """
        Look up a background job.

        Returns:
            (status, result dict, error) or None if the job is unknown
        """
        job = get_arq_job(job_id)
        arq_status = await job.status()
        if arq_status == ArqJobStatus.not_found:
            return None
        if arq_status != ArqJobStatus.complete:
            return _JOB_STATUS_MAP[arq_status], None, None

        info = await job.result_info()
        if info is None:
            return JobStatus.RUNNING, None, None
        if not info.success:
            return JobStatus.FAILED, None, str(info.result)
        return JobStatus.COMPLETED, info.result, None

    async def get_attempts(self, request_id: str) -> list[Attempt]:
        return await self.asset_store.list_attempt_audit(request_id)


async def build_generation_service(stack: AsyncExitStack) -> Optional[SmartGenerationService]:
    """
    Build the service and its resources from the environment.

    Clients and the database pool are registered on `stack` for cleanup.
    Returns None when the external services are not configured.
    """
    try:
        generation_client = get_generation_client()
        analysis_client = get_analysis_client()
    except ValueError as e:
        logger.warning(f"Smart generation disabled: {e}")
        return None
    stack.push_async_callback(generation_client.aclose)
    stack.push_async_callback(analysis_client.aclose)

    dsn = get_database_dsn()
    if dsn:
        from ..database.asset_store import PostgresAssetStore
        from ..database.db import init_db

        await init_db()
        db_pool = await asyncpg.create_pool(dsn)
        stack.push_async_callback(db_pool.close)
        asset_store: AssetStore = PostgresAssetStore(db_pool)
        logger.info("Database initialized")
    else:
        logger.warning("DATABASE_URL not set - using in-memory asset store")
        asset_store = InMemoryAssetStore()

    config = OrchestratorConfig()
    orchestrator = RetryOrchestrator(
        generation_client,
        analysis_client,
        asset_store,
        config=config,
        prompt_analyzer=PromptAnalyzer(),
        ranker=ReferenceRanker(config.ranking_weights),
    )
    return SmartGenerationService(asset_store, orchestrator, config)
