"""
Consistency gate for generated candidates.

Accepts a candidate only when both its quality score and its consistency
score against the reference meet the request's thresholds.
"""

from enum import Enum

from ..types import GateDecision, Thresholds


class GateVerdict(Enum):
    """Possible gate verdicts for a candidate."""

    PASS = "pass"
    FAIL_QUALITY = "fail_quality"               # Below the quality threshold
    FAIL_CONSISTENCY = "fail_consistency"       # Does not match the reference closely enough
    FAIL_BOTH = "fail_both"


def _fmt(value: float) -> str:
    return f"{value:g}"


class ConsistencyGate:
    """
    Deterministic accept/reject decision for a scored candidate.

    Has no state; the same scores and thresholds always give the same
    decision and the same reason string.
    """

    def verdict(self, quality_score: float, consistency_score: float, thresholds: Thresholds) -> GateVerdict:
        quality_ok = quality_score >= thresholds.quality
        consistency_ok = consistency_score >= thresholds.consistency
        if quality_ok and consistency_ok:
            return GateVerdict.PASS
        if not quality_ok and not consistency_ok:
            return GateVerdict.FAIL_BOTH
        return GateVerdict.FAIL_QUALITY if not quality_ok else GateVerdict.FAIL_CONSISTENCY

    def evaluate(self, quality_score: float, consistency_score: float, thresholds: Thresholds) -> GateDecision:
        """
        Apply thresholds to a candidate's scores.

        Returns:
            GateDecision(accepted=True) on pass, otherwise a rejection whose
            reason names each failing threshold and the shortfall, e.g.
            "quality 65/70 (short by 5)".
        """
        verdict = self.verdict(quality_score, consistency_score, thresholds)
        if verdict is GateVerdict.PASS:
            return GateDecision(accepted=True)

        failures = []
        if verdict in (GateVerdict.FAIL_QUALITY, GateVerdict.FAIL_BOTH):
            failures.append(
                f"quality {_fmt(quality_score)}/{_fmt(thresholds.quality)} "
                f"(short by {_fmt(thresholds.quality - quality_score)})"
            )
        if verdict in (GateVerdict.FAIL_CONSISTENCY, GateVerdict.FAIL_BOTH):
            failures.append(
                f"consistency {_fmt(consistency_score)}/{_fmt(thresholds.consistency)} "
                f"(short by {_fmt(thresholds.consistency - consistency_score)})"
            )
        return GateDecision(accepted=False, reason=", ".join(failures))
