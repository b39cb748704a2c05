"""Pydantic models for API requests."""

from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from ...core.types import GenerationStyle
from .enums import GenerationStyleName


class SmartGenerateImageRequest(BaseModel):
    """Request body for generating a consistency-validated character image.

    Omitted fields take the configured defaults. Provided values are
    validated as-is and rejected when out of range.
    """

    prompt: str = Field(
        ...,
        min_length=1,
        max_length=2000,
        description="What the character should be doing in the image",
        examples=["close-up portrait of the hero smiling, outdoor park"],
    )
    style: Optional[GenerationStyleName] = Field(
        default=None,
        description="Generation style (default: character_production)",
    )
    max_attempts: Optional[int] = Field(
        default=None,
        ge=1,
        le=5,
        description="Maximum generation attempts (default: 3)",
    )
    quality_threshold: Optional[float] = Field(
        default=None,
        ge=0,
        le=100,
        description="Minimum quality score to accept, 0-100 (default: 70)",
    )
    consistency_threshold: Optional[float] = Field(
        default=None,
        ge=0,
        le=100,
        description="Minimum consistency score to accept, 0-100 (default: 80)",
    )
    tags: Optional[list[str]] = Field(
        default=None,
        max_length=20,
        description="Labels stored with the accepted asset",
    )

    @field_validator("prompt")
    @classmethod
    def prompt_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("prompt must not be blank")
        return value

    def to_generation_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for SmartGenerationService.generate/enqueue."""
        return {
            "prompt": self.prompt,
            "style": GenerationStyle(self.style.value) if self.style is not None else None,
            "max_attempts": self.max_attempts,
            "quality_threshold": self.quality_threshold,
            "consistency_threshold": self.consistency_threshold,
            "tags": tuple(self.tags) if self.tags else None,
        }


class FindReferenceImageRequest(BaseModel):
    """Request body for ranking a character's references against a prompt."""

    prompt: str = Field(..., min_length=1, max_length=2000)
    limit: Optional[int] = Field(
        default=None,
        ge=1,
        le=50,
        description="Maximum references to return (default: 5)",
    )
