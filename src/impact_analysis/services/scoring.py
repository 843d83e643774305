"""Vote-based impact scoring.

Pure functions over vote counts.  The score is a Laplace-style smoothed
ratio ``(U + 0.5) / (U + D + 1)``: always strictly between 0 and 1, exactly
0.5 with no votes, and monotone in each argument.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Union

from impact_analysis.domain.values import ImpactBand, ImpactScore, VoteTrend


# Votes needed before a score is considered reliable.
MIN_VOTES_FOR_RELIABILITY = 3

# Votes saturate confidence at this many.
CONFIDENCE_SATURATION = 10

# Trend looks at this many of the most recent votes.
TREND_WINDOW = 5

VALID_VOTE_TYPES = frozenset({1, -1, 0})

Timestamp = Union[datetime, float]


def score(upvotes: int, downvotes: int) -> ImpactScore:
    """Compute the confidence-weighted score for a vote tally.

    Negative counts are treated as zero.

    Parameters
    ----------
    upvotes:
        Number of up votes (U).
    downvotes:
        Number of down votes (D).

    Returns
    -------
    ImpactScore
        ``raw = (U + 0.5) / (U + D + 1)``, ``normalized = (raw - 0.5) * 2``,
        ``percentage = raw * 100`` and ``confidence = min(1, (U + D) / 10)``.
    """
    u = max(0, upvotes)
    d = max(0, downvotes)
    total = u + d
    raw = (u + 0.5) / (total + 1)
    return ImpactScore(
        raw=raw,
        normalized=(raw - 0.5) * 2,
        percentage=raw * 100,
        confidence=min(1.0, total / CONFIDENCE_SATURATION),
    )


_BANDS: tuple[tuple[float, ImpactBand], ...] = (
    (0.7, ImpactBand("High Positive Impact", "Strong positive impact expected", "green")),
    (0.3, ImpactBand("Moderate Positive Impact", "Some positive impact expected", "blue")),
    (-0.3, ImpactBand("Neutral Impact", "Minimal or unclear impact", "gray")),
    (-0.7, ImpactBand("Moderate Negative Impact", "Some negative impact expected", "orange")),
)
_LOWEST_BAND = ImpactBand("High Negative Impact", "Strong negative impact expected", "red")


def impact_band(impact: ImpactScore | float) -> ImpactBand:
    """Classify a score (or a bare normalized value) into one of five bands."""
    normalized = impact.normalized if isinstance(impact, ImpactScore) else float(impact)
    for threshold, band in _BANDS:
        if normalized >= threshold:
            return band
    return _LOWEST_BAND


def _ts(value: Timestamp) -> float:
    return value.timestamp() if isinstance(value, datetime) else float(value)


def calculate_trend(votes: Iterable[tuple[int, Timestamp]]) -> VoteTrend:
    """Direction of the most recent votes.

    *votes* is an iterable of ``(vote_type, timestamp)`` pairs.  Fewer than
    ``MIN_VOTES_FOR_RELIABILITY`` votes is always ``stable``; otherwise the
    newest ``TREND_WINDOW`` votes decide, with strength the net share.
    """
    ordered = sorted(votes, key=lambda v: _ts(v[1]), reverse=True)
    if len(ordered) < MIN_VOTES_FOR_RELIABILITY:
        return VoteTrend("stable")

    recent = ordered[:TREND_WINDOW]
    ups = sum(1 for vote_type, _ in recent if vote_type == 1)
    downs = sum(1 for vote_type, _ in recent if vote_type == -1)
    if ups > downs:
        return VoteTrend("up", (ups - downs) / len(recent))
    if downs > ups:
        return VoteTrend("down", (downs - ups) / len(recent))
    return VoteTrend("stable")


def validate_vote(vote_type: int) -> bool:
    """``True`` for an up (1), down (-1) or cleared (0) vote."""
    return vote_type in VALID_VOTE_TYPES


def is_reliable(upvotes: int, downvotes: int) -> bool:
    return max(0, upvotes) + max(0, downvotes) >= MIN_VOTES_FOR_RELIABILITY
