"""
External service configuration for the character library.

Two services sit behind the orchestrator:
- generation service: text/image-to-image model (prompt + reference -> image)
- analysis service: feature extraction, quality and consistency scoring

Includes:
- Per-service timeouts and concurrency caps (independent rate limits)
- Retry with exponential backoff for transient service errors
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..core.errors import ServiceTransientError
from .generation import RetryPolicy

# Load environment variables from .env file
load_dotenv()

# Logging for retry attempts
logger = logging.getLogger(__name__)

SERVICE_CONSTANTS = {
    "generation_timeout_s": 60.0,
    "analysis_timeout_s": 30.0,
    "generation_max_concurrent": 4,
    "analysis_max_concurrent": 8,
    "analysis_poll_interval_s": 2.0,
    "analysis_poll_timeout_s": 30.0,
}

# Service errors that should trigger an internal retry
RETRYABLE_EXCEPTIONS = (ServiceTransientError,)


@dataclass(frozen=True)
class ServiceSettings:
    """Connection settings for one external service."""

    base_url: str
    api_key: str = ""
    timeout_s: float = 30.0
    max_concurrent: int = 4


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value else default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value else default


def get_generation_settings() -> ServiceSettings:
    """
    Get generation service settings from the environment.

    Uses GENERATION_SERVICE_URL and GENERATION_API_KEY.
    """
    base_url = os.getenv("GENERATION_SERVICE_URL")
    if not base_url:
        raise ValueError("GENERATION_SERVICE_URL not found in environment. Set it in .env file.")

    return ServiceSettings(
        base_url=base_url.rstrip("/"),
        api_key=os.getenv("GENERATION_API_KEY", ""),
        timeout_s=_env_float("GENERATION_TIMEOUT_S", SERVICE_CONSTANTS["generation_timeout_s"]),
        max_concurrent=_env_int("GENERATION_MAX_CONCURRENT", SERVICE_CONSTANTS["generation_max_concurrent"]),
    )


def get_analysis_settings() -> ServiceSettings:
    """
    Get analysis service settings from the environment.

    Uses ANALYSIS_SERVICE_URL and ANALYSIS_API_KEY.
    """
    base_url = os.getenv("ANALYSIS_SERVICE_URL")
    if not base_url:
        raise ValueError("ANALYSIS_SERVICE_URL not found in environment. Set it in .env file.")

    api_key = os.getenv("ANALYSIS_API_KEY", "")
    if not api_key:
        logger.warning("ANALYSIS_API_KEY not set - analysis service calls will likely be rejected")

    return ServiceSettings(
        base_url=base_url.rstrip("/"),
        api_key=api_key,
        timeout_s=_env_float("ANALYSIS_TIMEOUT_S", SERVICE_CONSTANTS["analysis_timeout_s"]),
        max_concurrent=_env_int("ANALYSIS_MAX_CONCURRENT", SERVICE_CONSTANTS["analysis_max_concurrent"]),
    )


def get_generation_client(settings: Optional[ServiceSettings] = None):
    """Build a GenerationClient from settings (environment by default)."""
    from ..core.clients.generation_client import GenerationClient

    return GenerationClient(settings or get_generation_settings())


def get_analysis_client(settings: Optional[ServiceSettings] = None):
    """Build an AssetAnalysisClient from settings (environment by default)."""
    from ..core.clients.analysis_client import AssetAnalysisClient

    return AssetAnalysisClient(
        settings or get_analysis_settings(),
        poll_interval_s=_env_float("ANALYSIS_POLL_INTERVAL_S", SERVICE_CONSTANTS["analysis_poll_interval_s"]),
        poll_timeout_s=_env_float("ANALYSIS_POLL_TIMEOUT_S", SERVICE_CONSTANTS["analysis_poll_timeout_s"]),
    )


def build_service_retry(policy: Optional[RetryPolicy] = None) -> AsyncRetrying:
    """
    Build the async retry controller for external service calls.

    Only ServiceTransientError is retried; permanent errors propagate on the
    first call. The last error is re-raised once retries are exhausted.
    """
    policy = policy or RetryPolicy()
    return AsyncRetrying(
        stop=stop_after_attempt(policy.max_retries + 1),
        wait=wait_exponential(
            multiplier=policy.initial_backoff_s,
            min=policy.initial_backoff_s,
            max=policy.max_backoff_s,
        ),
        retry=retry_if_exception_type(RETRYABLE_EXCEPTIONS),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
