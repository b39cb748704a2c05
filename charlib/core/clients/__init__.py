"""Async adapters for the external generation and analysis services."""

from .analysis_client import AssetAnalysisClient
from .generation_client import GenerationClient

__all__ = ["AssetAnalysisClient", "GenerationClient"]
