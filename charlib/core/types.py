"""
Centralized domain types for the character library.

All dataclasses that are used across multiple modules are defined here
to make data flow explicit and avoid circular imports.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, TYPE_CHECKING

from ..config.generation import GENERATION_CONSTANTS

if TYPE_CHECKING:
    from ..config.generation import OrchestratorConfig


# =============================================================================
# Reference Types
# =============================================================================


class AssetKind(Enum):
    """Kinds of reference asset a character can own."""

    MASTER = "master"
    CORE_SET = "core_set"
    GENERATED = "generated"

    @property
    def priority(self) -> int:
        """Lower is better: master ranks ahead of core set ahead of generated."""
        return _KIND_PRIORITY[self]


_KIND_PRIORITY = {
    AssetKind.MASTER: 0,
    AssetKind.CORE_SET: 1,
    AssetKind.GENERATED: 2,
}


@dataclass(frozen=True)
class ReferenceAsset:
    """A reference image in a character's pool. Immutable once created."""

    id: str
    kind: AssetKind
    quality_score: float = 0.0       # 0-100
    consistency_score: float = 0.0   # 0-100
    shot_type: Optional[str] = None  # close-up, medium, full-body, wide
    angle: Optional[str] = None      # front, side, back, three-quarter
    keywords: frozenset[str] = field(default_factory=frozenset)
    created_at: datetime = field(default_factory=datetime.now)
    media_url: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "quality_score": self.quality_score,
            "consistency_score": self.consistency_score,
            "shot_type": self.shot_type,
            "angle": self.angle,
            "keywords": sorted(self.keywords),
            "created_at": self.created_at.isoformat(),
            "media_url": self.media_url,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ReferenceAsset":
        """Build from a JSON-style dict (as written by to_dict)."""
        created_at = data.get("created_at")
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)
        return cls(
            id=str(data["id"]),
            kind=AssetKind(data["kind"]),
            quality_score=float(data.get("quality_score") or 0.0),
            consistency_score=float(data.get("consistency_score") or 0.0),
            shot_type=data.get("shot_type"),
            angle=data.get("angle"),
            keywords=frozenset(k.lower() for k in data.get("keywords") or ()),
            created_at=created_at or datetime.now(),
            media_url=data.get("media_url"),
        )


@dataclass(frozen=True)
class NewReferenceAsset:
    """Metadata for a generated asset accepted into a character's pool."""

    asset_id: str                 # Candidate id assigned by the analysis service
    quality_score: float
    consistency_score: float
    prompt: str
    style: str
    source_reference_id: str
    request_id: str
    shot_type: Optional[str] = None
    angle: Optional[str] = None
    keywords: frozenset[str] = field(default_factory=frozenset)
    tags: tuple[str, ...] = ()
    media_url: Optional[str] = None
    kind: AssetKind = AssetKind.GENERATED

    def to_reference_asset(self, created_at: Optional[datetime] = None) -> ReferenceAsset:
        return ReferenceAsset(
            id=self.asset_id,
            kind=self.kind,
            quality_score=self.quality_score,
            consistency_score=self.consistency_score,
            shot_type=self.shot_type,
            angle=self.angle,
            keywords=self.keywords,
            created_at=created_at or datetime.now(),
            media_url=self.media_url,
        )


# =============================================================================
# Prompt Types
# =============================================================================


@dataclass(frozen=True)
class PromptProfile:
    """Coarse attributes extracted from a free-text prompt. Never persisted."""

    shot_type: Optional[str] = None
    angle: Optional[str] = None
    mood: str = "neutral"
    setting: str = "neutral"
    keywords: frozenset[str] = field(default_factory=frozenset)

    def to_dict(self) -> dict[str, Any]:
        return {
            "shot_type": self.shot_type,
            "angle": self.angle,
            "mood": self.mood,
            "setting": self.setting,
            "keywords": sorted(self.keywords),
        }


class GenerationStyle(Enum):
    """Named generation styles understood by the generation service."""

    CHARACTER_TURNAROUND = "character_turnaround"
    CHARACTER_PRODUCTION = "character_production"
    CUSTOM = "custom"


@dataclass(frozen=True)
class StyleDefinition:
    """Prompt decoration and default output size for a generation style."""

    name: str
    prompt_suffix: str
    width: int
    height: int

    def apply_to_prompt(self, prompt: str) -> str:
        """Append this style's direction to a prompt."""
        return f"{prompt.rstrip().rstrip('.')}. {self.prompt_suffix}"


@dataclass(frozen=True)
class ImageDimensions:
    width: int
    height: int


# =============================================================================
# Request Types
# =============================================================================


@dataclass(frozen=True)
class Thresholds:
    """Minimum acceptable scores, as percentages."""

    quality: float
    consistency: float

    def __post_init__(self):
        for name, value in (("quality", self.quality), ("consistency", self.consistency)):
            if not 0 <= value <= 100:
                raise ValueError(f"{name} threshold must be within [0, 100], got {value}")


@dataclass(frozen=True)
class GenerationRequest:
    """A request to generate one accepted image for a character."""

    character_id: str
    prompt: str
    style: GenerationStyle = GenerationStyle.CHARACTER_PRODUCTION
    max_attempts: int = GENERATION_CONSTANTS["default_max_attempts"]
    quality_threshold: float = GENERATION_CONSTANTS["default_quality_threshold"]
    consistency_threshold: float = GENERATION_CONSTANTS["default_consistency_threshold"]
    tags: tuple[str, ...] = ()

    def __post_init__(self):
        if not self.character_id:
            raise ValueError("character_id is required")
        if not self.prompt or not self.prompt.strip():
            raise ValueError("prompt is required")
        limit = GENERATION_CONSTANTS["max_attempts_limit"]
        if not 1 <= self.max_attempts <= limit:
            raise ValueError(f"max_attempts must be within [1, {limit}], got {self.max_attempts}")
        Thresholds(quality=self.quality_threshold, consistency=self.consistency_threshold)

    @property
    def thresholds(self) -> Thresholds:
        return Thresholds(quality=self.quality_threshold, consistency=self.consistency_threshold)

    @classmethod
    def with_defaults(
        cls,
        config: "OrchestratorConfig",
        character_id: str,
        prompt: str,
        style: Optional[GenerationStyle] = None,
        max_attempts: Optional[int] = None,
        quality_threshold: Optional[float] = None,
        consistency_threshold: Optional[float] = None,
        tags: Optional[tuple[str, ...]] = None,
    ) -> "GenerationRequest":
        """
        Build a request, filling fields that were not provided from config.

        None means "not provided". Any provided value is validated as-is, so
        an out-of-range value raises ValueError instead of being clamped.
        """
        if max_attempts is not None and max_attempts > config.max_attempts_limit:
            raise ValueError(
                f"max_attempts must be within [1, {config.max_attempts_limit}], got {max_attempts}"
            )
        return cls(
            character_id=character_id,
            prompt=prompt,
            style=style if style is not None else GenerationStyle.CHARACTER_PRODUCTION,
            max_attempts=max_attempts if max_attempts is not None else config.default_max_attempts,
            quality_threshold=(
                quality_threshold if quality_threshold is not None else config.default_quality_threshold
            ),
            consistency_threshold=(
                consistency_threshold if consistency_threshold is not None
                else config.default_consistency_threshold
            ),
            tags=tuple(tags) if tags else (),
        )


# =============================================================================
# Service Result Types
# =============================================================================


@dataclass(frozen=True)
class GeneratedImage:
    """Raw output of the generation service."""

    image_bytes: bytes
    generation_time_ms: int


@dataclass(frozen=True)
class ExtractedAsset:
    """A candidate uploaded to the analysis service, with extracted features."""

    asset_id: str
    media_url: Optional[str] = None
    features: tuple[float, ...] = ()
    quality_score: Optional[float] = None


@dataclass(frozen=True)
class ConsistencyScore:
    """Same-subject similarity between a candidate and a reference."""

    score: float
    same_subject: bool
    confidence: Optional[float] = None


@dataclass(frozen=True)
class GateDecision:
    """Accept/reject verdict from the consistency gate."""

    accepted: bool
    reason: Optional[str] = None


# =============================================================================
# Attempt / Result Types
# =============================================================================


class AttemptStatus(Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"   # Failed the consistency gate
    FAILED = "failed"       # Service error during generation or analysis
    ABORTED = "aborted"     # Cancelled or out of time; not a failure


class ResultStatus(Enum):
    """Terminal states of a generation run."""

    ACCEPTED = "accepted"
    EXHAUSTED = "exhausted"
    ABORTED = "aborted"


@dataclass(frozen=True)
class Attempt:
    """One generate -> analyze -> gate cycle. Never mutated after creation."""

    attempt_number: int
    reference_id: str
    reference_kind: AssetKind
    status: AttemptStatus
    elapsed_ms: int
    quality_score: Optional[float] = None
    consistency_score: Optional[float] = None
    reject_reason: Optional[str] = None
    candidate_asset_id: Optional[str] = None
    same_subject: Optional[bool] = None

    @property
    def accepted(self) -> bool:
        return self.status is AttemptStatus.ACCEPTED

    @property
    def reference_used(self) -> str:
        return f"{self.reference_kind.value}:{self.reference_id}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "attempt_number": self.attempt_number,
            "reference_used": self.reference_used,
            "reference_id": self.reference_id,
            "reference_kind": self.reference_kind.value,
            "status": self.status.value,
            "accepted": self.accepted,
            "quality_score": self.quality_score,
            "consistency_score": self.consistency_score,
            "reject_reason": self.reject_reason,
            "candidate_asset_id": self.candidate_asset_id,
            "same_subject": self.same_subject,
            "elapsed_ms": self.elapsed_ms,
        }


@dataclass
class GenerationResult:
    """Outcome of one orchestration run, with the full attempt trail."""

    request_id: str
    status: ResultStatus
    attempts: tuple[Attempt, ...] = ()
    total_elapsed_ms: int = 0
    accepted_asset_id: Optional[str] = None
    selected_reference_id: Optional[str] = None
    quality_score: Optional[float] = None
    consistency_score: Optional[float] = None
    media_url: Optional[str] = None
    failure_reasons: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.status is ResultStatus.ACCEPTED and self.accepted_asset_id is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "request_id": self.request_id,
            "status": self.status.value,
            "success": self.success,
            "accepted_asset_id": self.accepted_asset_id,
            "selected_reference_id": self.selected_reference_id,
            "quality_score": self.quality_score,
            "consistency_score": self.consistency_score,
            "media_url": self.media_url,
            "attempts": [a.to_dict() for a in self.attempts],
            "total_elapsed_ms": self.total_elapsed_ms,
            "failure_reasons": list(self.failure_reasons),
            "warnings": list(self.warnings),
        }
