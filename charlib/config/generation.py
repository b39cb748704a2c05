"""
Generation policy configuration for the character library.

Holds the defaults a smart generation request falls back to, the ranking
weights used to order a character's reference pool, and the keyword
dictionaries the prompt analyzer classifies prompts with.

Everything here is plain data. An OrchestratorConfig is built once and
passed into RetryOrchestrator, so requests with different thresholds can
run side by side without touching shared state.
"""

from dataclasses import dataclass, field
from enum import Enum


# Request defaults and limits
GENERATION_CONSTANTS = {
    "default_max_attempts": 3,
    "max_attempts_limit": 5,
    "default_quality_threshold": 70.0,
    "default_consistency_threshold": 80.0,
    "per_attempt_budget_s": 180.0,
}


class ConsistencyAnchor(Enum):
    """Which reference a candidate's consistency is scored against."""

    SELECTED = "selected"  # The reference the candidate was generated from
    MASTER = "master"      # Always the character's master (falls back to selected)


@dataclass(frozen=True)
class RankingWeights:
    """Additive weights for reference ranking.

    Defaults are a reasonable policy, not a fixed contract.
    """

    master_base: int = 10
    core_set_base: int = 8
    generated_base: int = 5
    quality_bonus: int = 5
    quality_bonus_min: float = 80.0
    consistency_bonus: int = 5
    consistency_bonus_min: float = 85.0
    axis_match: int = 3
    keyword_match: int = 1
    keyword_cap: int = 5


@dataclass(frozen=True)
class RetryPolicy:
    """Internal retry policy for transient service errors.

    max_retries counts retries after the first call, so the default makes
    at most three calls: 0.5s then 1s of backoff in between.
    """

    max_retries: int = 2
    initial_backoff_s: float = 0.5
    max_backoff_s: float = 8.0


@dataclass(frozen=True)
class OrchestratorConfig:
    """Construction-time configuration for RetryOrchestrator."""

    default_max_attempts: int = GENERATION_CONSTANTS["default_max_attempts"]
    max_attempts_limit: int = GENERATION_CONSTANTS["max_attempts_limit"]
    default_quality_threshold: float = GENERATION_CONSTANTS["default_quality_threshold"]
    default_consistency_threshold: float = GENERATION_CONSTANTS["default_consistency_threshold"]
    per_attempt_budget_s: float = GENERATION_CONSTANTS["per_attempt_budget_s"]
    consistency_anchor: ConsistencyAnchor = ConsistencyAnchor.SELECTED
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    ranking_weights: RankingWeights = field(default_factory=RankingWeights)


# =============================================================================
# Prompt analysis dictionaries
# =============================================================================
# Each axis is an ordered tuple of (category, terms). The first category with
# a matching term wins, so order is priority.

SHOT_TYPE_TERMS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("close-up", ("close-up", "closeup", "close up", "portrait", "headshot", "face", "extreme close")),
    ("full-body", ("full body", "full-body", "full length", "whole body", "head to toe", "standing")),
    ("wide", ("wide shot", "wide", "establishing", "environment", "landscape", "scene")),
    ("medium", ("medium shot", "medium", "mid shot", "waist up", "half body", "upper body")),
)

ANGLE_TERMS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("three-quarter", ("three-quarter", "three quarter", "3/4", "45 degree", "45-degree")),
    ("side", ("side view", "side", "profile", "sideways")),
    ("back", ("back view", "from behind", "behind", "rear", "back")),
    ("front", ("front view", "front", "frontal", "facing camera", "facing forward")),
)

MOOD_TERMS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("action", ("action", "fighting", "fight", "running", "jumping", "dynamic", "battle", "leaping")),
    ("calm", ("calm", "peaceful", "serene", "relaxed", "resting", "quiet", "gentle")),
    ("dramatic", ("dramatic", "intense", "serious", "moody", "menacing", "stormy")),
)

SETTING_TERMS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("studio", ("studio", "plain background", "white background", "backdrop", "neutral background")),
    ("outdoor", ("outdoor", "outdoors", "outside", "forest", "mountain", "field", "nature", "beach", "street", "park")),
    ("indoor", ("indoor", "indoors", "inside", "room", "house", "building", "kitchen", "office", "castle hall")),
)

NEUTRAL_MOOD = "neutral"
NEUTRAL_SETTING = "neutral"

STOP_WORDS = frozenset({
    "a", "an", "the", "and", "or", "but", "of", "in", "on", "at", "to", "for",
    "with", "without", "by", "from", "as", "is", "are", "was", "be", "been",
    "it", "its", "this", "that", "these", "those", "his", "her", "their",
    "he", "she", "they", "them", "him", "into", "onto", "over", "under",
    "while", "very", "some", "any", "who", "which", "what", "where", "has",
    "have", "having", "image", "picture", "photo", "shot", "show", "showing",
})
