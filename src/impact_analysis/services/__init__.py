"""Service layer: model calls, retries, pipeline stages and the cost gate.

Re-exports the public API surface for convenience::

    from impact_analysis.services import (
        ModelInvoker, RetryingCaller,
        StatementExtractor, DownstreamExpander, ImpactCategorizer,
        CategoryEvaluator, FindingsSummarizer,
        CostGate, AnalysisService, score, assess,
    )
"""

from impact_analysis.services.analysis_service import AnalysisOutcome, AnalysisService
from impact_analysis.services.categorization import ImpactCategorizer
from impact_analysis.services.cost_gate import CostGate, Reservation
from impact_analysis.services.evaluation import CategoryEvaluator
from impact_analysis.services.expansion import DownstreamExpander
from impact_analysis.services.extraction import StatementExtractor
from impact_analysis.services.invoker import InvocationResult, ModelInvoker, render_prompt
from impact_analysis.services.observers import (
    CallObserver,
    CompositeObserver,
    EventBusObserver,
    LoggingObserver,
)
from impact_analysis.services.recommendation import assess, is_acceptable
from impact_analysis.services.retry import RetryingCaller
from impact_analysis.services.scoring import (
    MIN_VOTES_FOR_RELIABILITY,
    calculate_trend,
    impact_band,
    score,
    validate_vote,
)
from impact_analysis.services.stages import PipelineStage, StageReport
from impact_analysis.services.summary import FindingsSummarizer
from impact_analysis.services.usage import UsageLedger, summarize_usage, total_cost

__all__ = [
    # Calls
    "InvocationResult",
    "ModelInvoker",
    "RetryingCaller",
    "render_prompt",
    # Observers
    "CallObserver",
    "CompositeObserver",
    "EventBusObserver",
    "LoggingObserver",
    # Stages
    "CategoryEvaluator",
    "DownstreamExpander",
    "FindingsSummarizer",
    "ImpactCategorizer",
    "PipelineStage",
    "StageReport",
    "StatementExtractor",
    # Scoring & recommendation
    "MIN_VOTES_FOR_RELIABILITY",
    "assess",
    "calculate_trend",
    "impact_band",
    "is_acceptable",
    "score",
    "validate_vote",
    # Cost
    "AnalysisOutcome",
    "AnalysisService",
    "CostGate",
    "Reservation",
    "UsageLedger",
    "summarize_usage",
    "total_cost",
]
