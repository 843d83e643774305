"""impact-analysis.

LangGraph pipeline that turns a free-text proposal into atomic impact
statements, downstream consequences, scored sustainability categories and
a recommendation, behind a retry/model-escalation contract and a
per-user balance gate.
"""

__version__ = "0.1.0"

from impact_analysis.graph import (
    AnalysisBuilder,
    AnalysisOrchestrator,
    AnalysisState,
    build_analysis_graph,
)
from impact_analysis.infrastructure.config import PipelineConfig, load_config
from impact_analysis.services.recommendation import assess, is_acceptable
from impact_analysis.services.scoring import score

__all__ = [
    "AnalysisBuilder",
    "AnalysisOrchestrator",
    "AnalysisState",
    "PipelineConfig",
    "assess",
    "build_analysis_graph",
    "is_acceptable",
    "load_config",
    "score",
]
