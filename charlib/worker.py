"""
ARQ worker for background smart generation.

Run with: arq charlib.worker.WorkerSettings
"""

import logging
from contextlib import AsyncExitStack
from typing import Any, Optional

from arq.connections import RedisSettings
from dotenv import load_dotenv

# Load environment variables before importing app modules
load_dotenv()

from charlib.api.config import (  # noqa: E402
    JOB_RESULT_TTL_S,
    LOG_FORMAT,
    LOG_LEVEL,
    WORKER_JOB_TIMEOUT_S,
    WORKER_MAX_JOBS,
    get_redis_settings,
)
from charlib.api.logging import configure_logging  # noqa: E402
from charlib.api.services.smart_generation import build_generation_service  # noqa: E402
from charlib.core.types import GenerationStyle  # noqa: E402

logger = logging.getLogger(__name__)


async def smart_generation_task(
    ctx: dict[str, Any],
    request_id: str,
    character_id: str,
    prompt: str,
    style: str = GenerationStyle.CHARACTER_PRODUCTION.value,
    max_attempts: Optional[int] = None,
    quality_threshold: Optional[float] = None,
    consistency_threshold: Optional[float] = None,
    tags: Optional[list[str]] = None,
) -> dict[str, Any]:
    """
    ARQ task for one smart generation request.

    This is a thin wrapper around SmartGenerationService.generate.

    Args:
        ctx: ARQ context (contains job_id, the generation service, etc.)
        request_id: Request id (also the arq job id)
        character_id: Character whose reference pool is used
        prompt: Free-text prompt
        style: GenerationStyle value
        max_attempts, quality_threshold, consistency_threshold, tags:
            Request options (None = configured default)

    Returns:
        GenerationResult as a dict
    """
    job_id = ctx.get("job_id", "unknown")
    service = ctx.get("generation_service")
    if service is None:
        raise RuntimeError("Smart generation is not configured on this worker")

    logger.info(f"Starting smart generation job {job_id} for character {character_id}")
    try:
        result = await service.generate(
            character_id,
            prompt,
            request_id=request_id,
            source="worker",
            style=GenerationStyle(style),
            max_attempts=max_attempts,
            quality_threshold=quality_threshold,
            consistency_threshold=consistency_threshold,
            tags=tuple(tags) if tags else None,
        )
    except Exception as e:
        logger.error(f"Failed smart generation job {job_id} for character {character_id}: {e}")
        # Re-raise so ARQ marks the job as failed
        raise

    logger.info(f"Completed smart generation job {job_id}: {result.status.value}")
    return result.to_dict()


async def startup(ctx: dict[str, Any]) -> None:
    """Called when worker starts up."""
    configure_logging(json_format=LOG_FORMAT == "json", level=getattr(logging, LOG_LEVEL, logging.INFO))
    logger.info("ARQ worker starting up")

    stack = AsyncExitStack()
    ctx["exit_stack"] = stack
    ctx["generation_service"] = await build_generation_service(stack)
    if ctx["generation_service"] is None:
        logger.warning("Smart generation not configured, jobs will fail until the worker is restarted")


async def shutdown(ctx: dict[str, Any]) -> None:
    """Called when worker shuts down."""
    logger.info("ARQ worker shutting down")
    stack = ctx.get("exit_stack")
    if stack is not None:
        await stack.aclose()


class WorkerSettings:
    """ARQ worker configuration."""

    # Task functions to register
    functions = [smart_generation_task]

    # Lifecycle hooks
    on_startup = startup
    on_shutdown = shutdown

    # Redis connection settings
    redis_settings = get_redis_settings() or RedisSettings()

    # Job settings
    max_jobs = WORKER_MAX_JOBS
    job_timeout = WORKER_JOB_TIMEOUT_S
    keep_result = JOB_RESULT_TTL_S

    # Orchestration already retries transient service errors; a failed job
    # here means a bug or a store outage, so don't re-run the attempts
    max_tries = 1

    # Health check
    health_check_interval = 30
