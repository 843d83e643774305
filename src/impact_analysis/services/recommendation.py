"""The asymmetric acceptance rule.

A proposal is acceptable as-is only when the summed positive category
scores are at least ``ratio`` times the magnitude of the summed negative
ones.  With no negative scores the rule holds vacuously.
"""

from __future__ import annotations

from collections.abc import Mapping

from impact_analysis.domain.values import Recommendation

DEFAULT_ACCEPTANCE_RATIO = 10.0


def is_acceptable(
    positive_total: float,
    negative_total: float,
    ratio: float = DEFAULT_ACCEPTANCE_RATIO,
) -> bool:
    """``True`` iff ``positive_total >= ratio * negative_total``.

    *negative_total* is read as a magnitude, so a signed sum of negative
    scores gives the same answer as its absolute value.
    """
    negative_total = abs(negative_total)
    if negative_total == 0:
        return True
    return positive_total >= ratio * negative_total


def assess(
    scores: Mapping[str, float],
    ratio: float = DEFAULT_ACCEPTANCE_RATIO,
) -> Recommendation:
    """Apply the acceptance rule to per-category scores."""
    positive = sum(v for v in scores.values() if v > 0)
    negative = abs(sum(v for v in scores.values() if v < 0))
    return Recommendation(
        acceptable=is_acceptable(positive, negative, ratio),
        positive_total=positive,
        negative_total=negative,
        ratio=ratio,
    )
