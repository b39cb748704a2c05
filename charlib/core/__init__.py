# Character Library - Core Domain

# Re-export types for convenient access
from .types import (
    AssetKind,
    ReferenceAsset,
    NewReferenceAsset,
    PromptProfile,
    GenerationStyle,
    Thresholds,
    GenerationRequest,
    Attempt,
    AttemptStatus,
    GenerationResult,
    ResultStatus,
)

__all__ = [
    "AssetKind",
    "ReferenceAsset",
    "NewReferenceAsset",
    "PromptProfile",
    "GenerationStyle",
    "Thresholds",
    "GenerationRequest",
    "Attempt",
    "AttemptStatus",
    "GenerationResult",
    "ResultStatus",
]
