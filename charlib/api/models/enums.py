"""Shared enums for API models."""

from enum import Enum


class GenerationStyleName(str, Enum):
    """Generation style accepted by the smart generation endpoints."""

    CHARACTER_TURNAROUND = "character_turnaround"
    CHARACTER_PRODUCTION = "character_production"
    CUSTOM = "custom"


class JobStatus(str, Enum):
    """Status of a background smart generation job."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
