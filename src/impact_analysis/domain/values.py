"""Value objects for the impact analysis pipeline.

All types here are frozen dataclasses -- immutable, compared by value.
They represent inputs, scores, verdicts and usage measurements that have no
identity beyond their content.
"""

from __future__ import annotations

import math
import time
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any

# ---------------------------------------------------------------------------
# Proposal
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Proposal:
    """The user's idea, as submitted.  Immutable once a run starts."""

    text: str
    title: str = ""

    def __post_init__(self) -> None:
        if not self.text or not self.text.strip():
            raise ValueError("proposal text must not be empty")

    @classmethod
    def coerce(cls, value: str | Mapping[str, Any] | Proposal) -> Proposal:
        """Build a ``Proposal`` from a plain string or a ``{title, text}`` mapping.

        Mappings without ``text`` fall back to ``description``, then to the
        title itself, matching what the submission form sends.
        """
        if isinstance(value, Proposal):
            return value
        if isinstance(value, str):
            return cls(text=value)
        if isinstance(value, Mapping):
            title = str(value.get("title") or "")
            text = str(value.get("text") or value.get("description") or title)
            return cls(text=text, title=title)
        raise TypeError(
            f"proposal must be a str, mapping or Proposal, got {type(value).__name__}"
        )

    def as_prompt(self) -> str:
        """Text handed to the models: the title (if any) followed by the body."""
        if self.title and self.title.strip() != self.text.strip():
            return f"{self.title}\n\n{self.text}"
        return self.text


# ---------------------------------------------------------------------------
# Vote-based scoring
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ImpactScore:
    """Confidence-weighted score derived from up/down votes on a statement.

    ``raw`` is in (0, 1) with 0.5 neutral; ``normalized`` rescales it to
    (-1, 1); ``confidence`` saturates at 10 total votes.
    """

    raw: float
    normalized: float
    percentage: float
    confidence: float


@dataclass(frozen=True)
class ImpactBand:
    """Human-readable band for a normalized score."""

    label: str
    description: str
    color: str


@dataclass(frozen=True)
class VoteTrend:
    """Direction of the most recent votes: ``up``, ``down`` or ``stable``."""

    direction: str
    strength: float = 0.0


# ---------------------------------------------------------------------------
# Category evaluation & recommendation
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CategoryEvaluation:
    """Research summary and score assigned to one impact category."""

    research_summary: str
    score: float

    def __post_init__(self) -> None:
        if not math.isfinite(self.score):
            raise ValueError(f"score must be finite, got {self.score}")

    def clamped(self) -> CategoryEvaluation:
        """Return a copy with ``score`` clamped to [-1, 1]."""
        bounded = max(-1.0, min(1.0, self.score))
        if bounded == self.score:
            return self
        return replace(self, score=bounded)


@dataclass(frozen=True)
class Recommendation:
    """Outcome of the asymmetry rule: positives must outweigh negatives ``ratio`` times."""

    acceptable: bool
    positive_total: float
    negative_total: float
    ratio: float = 10.0

    @property
    def margin(self) -> float:
        """How far the positive total clears (or misses) the threshold."""
        return self.positive_total - self.ratio * self.negative_total

    @property
    def verdict(self) -> str:
        return "proceed" if self.acceptable else "do not proceed as-is"


# ---------------------------------------------------------------------------
# Usage & cost
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class UsageRecord:
    """Token usage and cost of a single model invocation."""

    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    cost: float = 0.0
    success: bool = True
    error_message: str | None = None
    user_id: str = ""
    analysis_id: str = ""
    timestamp: float = field(default_factory=time.time)
    record_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def for_run(self, user_id: str, analysis_id: str) -> UsageRecord:
        """Return a copy tagged with the owning user and analysis."""
        return replace(self, user_id=user_id, analysis_id=analysis_id)


@dataclass(frozen=True)
class ModelPricing:
    """Provider rates in USD per million tokens."""

    model_name: str
    input_price_per_million: float
    output_price_per_million: float
    provider: str


@dataclass(frozen=True)
class CostCalculation:
    input_tokens: int
    output_tokens: int
    total_tokens: int
    cost: float
    provider: str
    model: str


@dataclass(frozen=True)
class ModelUsage:
    """Aggregated usage for one model within an analysis."""

    model_name: str
    calls: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    cost: float = 0.0


@dataclass(frozen=True)
class AnalysisUsageSummary:
    """Roll-up of every ``UsageRecord`` emitted by one analysis."""

    analysis_id: str
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_cost: float = 0.0
    total_calls: int = 0
    failed_calls: int = 0
    model_usages: tuple[ModelUsage, ...] = ()


@dataclass(frozen=True)
class BalanceTransaction:
    """A single debit or credit applied to a user's balance."""

    user_id: str
    amount: float
    balance_before: float
    balance_after: float
    transaction_type: str
    description: str = ""
    reference_id: str | None = None
    timestamp: float = field(default_factory=time.time)
