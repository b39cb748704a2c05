"""Job queue connection for background smart generation.

The API process opens one arq pool at startup (when REDIS_URL is set) and
every enqueue or job lookup goes through it. The worker process does not
use this module; arq gives it its own connection.
"""

import logging
from typing import Any, Optional

from arq import ArqRedis, create_pool
from arq.connections import RedisSettings
from arq.jobs import Job

logger = logging.getLogger(__name__)

# Set by open_pool during API startup
_pool: Optional[ArqRedis] = None


async def open_pool(settings: RedisSettings) -> ArqRedis:
    """Connect to Redis and make the pool available to get_pool."""
    global _pool
    _pool = await create_pool(settings)
    logger.info(f"Job queue connected to {settings.host}:{settings.port}")
    return _pool


def get_pool() -> ArqRedis:
    """Get the queue pool. Raises RuntimeError when REDIS_URL was not configured."""
    if _pool is None:
        raise RuntimeError("Background jobs are disabled: set REDIS_URL to enable the job queue")
    return _pool


async def enqueue_job(function: str, job_id: str, **kwargs: Any) -> Job:
    """
    Enqueue a task under a caller-chosen job id.

    Raises:
        RuntimeError: queue not configured, or a job with this id already exists
    """
    job = await get_pool().enqueue_job(function, _job_id=job_id, **kwargs)
    if job is None:
        # arq returns None when the id is already queued, running or kept as a result
        raise RuntimeError(f"Job {job_id} already exists")
    return job


def get_job(job_id: str) -> Job:
    return Job(job_id, redis=get_pool())


async def close_pool() -> None:
    """Close the queue pool. Called during API shutdown."""
    global _pool
    if _pool is not None:
        await _pool.aclose()
        _pool = None
