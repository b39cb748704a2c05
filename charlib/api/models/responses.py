"""Pydantic models for API responses."""

from typing import Optional

from pydantic import BaseModel

from ...core.modules.reference_ranker import RankedReference
from ...core.types import Attempt, GenerationResult, PromptProfile
from .enums import JobStatus


class AttemptResponse(BaseModel):
    """One generate -> analyze -> gate attempt."""

    attempt_number: int
    reference_used: str  # "<kind>:<id>"
    reference_id: str
    reference_kind: str
    status: str  # accepted, rejected, failed, aborted
    accepted: bool
    quality_score: Optional[float] = None
    consistency_score: Optional[float] = None
    reject_reason: Optional[str] = None
    candidate_asset_id: Optional[str] = None
    same_subject: Optional[bool] = None
    elapsed_ms: int

    @classmethod
    def from_attempt(cls, attempt: Attempt) -> "AttemptResponse":
        return cls.model_validate(attempt.to_dict())


class GenerationResultResponse(BaseModel):
    """Outcome of a smart generation request.

    Returned with HTTP 200 for every orchestration outcome; check
    `success` and `status` (accepted, exhausted, aborted).
    """

    request_id: str
    status: str
    success: bool
    accepted_asset_id: Optional[str] = None
    selected_reference_id: Optional[str] = None
    quality_score: Optional[float] = None
    consistency_score: Optional[float] = None
    media_url: Optional[str] = None
    attempts: list[AttemptResponse] = []
    total_elapsed_ms: int
    failure_reasons: list[str] = []
    warnings: list[str] = []

    @classmethod
    def from_result(cls, result: GenerationResult) -> "GenerationResultResponse":
        return cls.model_validate(result.to_dict())


class PromptProfileResponse(BaseModel):
    shot_type: Optional[str] = None
    angle: Optional[str] = None
    mood: str
    setting: str
    keywords: list[str]

    @classmethod
    def from_profile(cls, profile: PromptProfile) -> "PromptProfileResponse":
        return cls.model_validate(profile.to_dict())


class RankedReferenceResponse(BaseModel):
    """A reference asset with its relevance score for a prompt."""

    id: str
    kind: str
    score: int
    quality_score: float
    consistency_score: float
    shot_type: Optional[str] = None
    angle: Optional[str] = None
    media_url: Optional[str] = None

    @classmethod
    def from_ranked(cls, ranked: RankedReference) -> "RankedReferenceResponse":
        asset = ranked.asset
        return cls(
            id=asset.id,
            kind=asset.kind.value,
            score=ranked.score,
            quality_score=asset.quality_score,
            consistency_score=asset.consistency_score,
            shot_type=asset.shot_type,
            angle=asset.angle,
            media_url=asset.media_url,
        )


class FindReferenceImageResponse(BaseModel):
    """Best references for a prompt, best first."""

    character_id: str
    profile: PromptProfileResponse
    references: list[RankedReferenceResponse]
    total_references: int


class CreateJobResponse(BaseModel):
    """Response when a background generation job is enqueued."""

    job_id: str
    status: JobStatus


class JobResponse(BaseModel):
    """Status of a background generation job, with its result once finished."""

    job_id: str
    status: JobStatus
    result: Optional[GenerationResultResponse] = None
    error: Optional[str] = None


class AttemptAuditResponse(BaseModel):
    """Audit trail of a generation request."""

    request_id: str
    attempts: list[AttemptResponse]
