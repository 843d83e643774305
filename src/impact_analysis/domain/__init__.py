"""Domain layer for the impact analysis pipeline.

Re-exports all public domain types so that consumers can write::

    from impact_analysis.domain import Proposal, UsageRecord, ExhaustedRetries
"""

# -- Value Objects ------------------------------------------------------------
from .values import (
    AnalysisUsageSummary,
    BalanceTransaction,
    CategoryEvaluation,
    CostCalculation,
    ImpactBand,
    ImpactScore,
    ModelPricing,
    ModelUsage,
    Proposal,
    Recommendation,
    UsageRecord,
    VoteTrend,
)

# -- Per-item results ---------------------------------------------------------
from .results import Failure, ItemResult, Success, capture, partition

# -- Domain Events ------------------------------------------------------------
from .events import (
    DomainEvent,
    ModelCallFailed,
    ModelCallSucceeded,
    PIPELINE_EVENTS,
    ModelEscalated,
    RetriesExhausted,
    StageCompleted,
    UsageRecorded,
)

# -- Exceptions ---------------------------------------------------------------
from .exceptions import (
    ExhaustedRetries,
    FatalConfigError,
    ImpactAnalysisError,
    InsufficientBalance,
    SchemaViolation,
    TransientProviderError,
    is_retryable,
)

__all__ = [
    # Values
    "AnalysisUsageSummary",
    "BalanceTransaction",
    "CategoryEvaluation",
    "CostCalculation",
    "ImpactBand",
    "ImpactScore",
    "ModelPricing",
    "ModelUsage",
    "Proposal",
    "Recommendation",
    "UsageRecord",
    "VoteTrend",
    # Results
    "Failure",
    "ItemResult",
    "Success",
    "capture",
    "partition",
    # Events
    "DomainEvent",
    "ModelCallFailed",
    "ModelCallSucceeded",
    "ModelEscalated",
    "PIPELINE_EVENTS",
    "RetriesExhausted",
    "StageCompleted",
    "UsageRecorded",
    # Exceptions
    "ExhaustedRetries",
    "FatalConfigError",
    "ImpactAnalysisError",
    "InsufficientBalance",
    "SchemaViolation",
    "TransientProviderError",
    "is_retryable",
]
