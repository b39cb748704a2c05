"""
Reference ranking for a character's image pool.

Scores each reference against a prompt profile with an additive formula
(kind base, quality and consistency bonuses, axis and keyword matches) and
returns them in a deterministic total order.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from ...config.generation import RankingWeights
from ..types import AssetKind, PromptProfile, ReferenceAsset


@dataclass(frozen=True)
class RankedReference:
    """A reference with the score it was ranked by."""

    asset: ReferenceAsset
    score: int


class ReferenceRanker:
    """
    Order reference assets by relevance to a prompt profile.

    Ties break on kind priority (master, core set, generated), then the most
    recent created_at, then id, so equal inputs always give equal output.
    The pool is never mutated.
    """

    def __init__(self, weights: Optional[RankingWeights] = None):
        self.weights = weights or RankingWeights()

    def score(self, asset: ReferenceAsset, profile: PromptProfile) -> int:
        w = self.weights
        total = {
            AssetKind.MASTER: w.master_base,
            AssetKind.CORE_SET: w.core_set_base,
            AssetKind.GENERATED: w.generated_base,
        }[asset.kind]

        if asset.quality_score >= w.quality_bonus_min:
            total += w.quality_bonus
        if asset.consistency_score >= w.consistency_bonus_min:
            total += w.consistency_bonus

        if profile.shot_type is not None and asset.shot_type == profile.shot_type:
            total += w.axis_match
        if profile.angle is not None and asset.angle == profile.angle:
            total += w.axis_match

        overlap = len(asset.keywords & profile.keywords)
        total += min(overlap * w.keyword_match, w.keyword_cap)
        return total

    def rank_with_scores(
        self,
        pool: Sequence[ReferenceAsset],
        profile: PromptProfile,
        excluded: Iterable[str] = (),
    ) -> list[RankedReference]:
        excluded_ids = set(excluded)
        ranked = [
            RankedReference(asset=asset, score=self.score(asset, profile))
            for asset in pool
            if asset.id not in excluded_ids
        ]
        ranked.sort(key=lambda r: (
            -r.score,
            r.asset.kind.priority,
            -r.asset.created_at.timestamp(),
            r.asset.id,
        ))
        return ranked

    def rank(
        self,
        pool: Sequence[ReferenceAsset],
        profile: PromptProfile,
        excluded: Iterable[str] = (),
    ) -> list[ReferenceAsset]:
        """
        Rank the pool for a profile, omitting excluded ids.

        Returns:
            References best-first. Empty when nothing is left after exclusion.
        """
        return [r.asset for r in self.rank_with_scores(pool, profile, excluded)]
