"""
Configuration module for the character library.

Re-exports all configuration for convenient access.
"""

from .generation import (
    GENERATION_CONSTANTS,
    ConsistencyAnchor,
    OrchestratorConfig,
    RankingWeights,
    RetryPolicy,
)
from .services import (
    SERVICE_CONSTANTS,
    RETRYABLE_EXCEPTIONS,
    ServiceSettings,
    build_service_retry,
    get_analysis_client,
    get_analysis_settings,
    get_generation_client,
    get_generation_settings,
)

__all__ = [
    # Generation policy
    "GENERATION_CONSTANTS",
    "ConsistencyAnchor",
    "OrchestratorConfig",
    "RankingWeights",
    "RetryPolicy",
    # Services
    "SERVICE_CONSTANTS",
    "RETRYABLE_EXCEPTIONS",
    "ServiceSettings",
    "build_service_retry",
    "get_analysis_client",
    "get_analysis_settings",
    "get_generation_client",
    "get_generation_settings",
]
