"""LangGraph wiring for the analysis pipeline.

Re-exports the public API surface for convenience::

    from impact_analysis.graph import (
        AnalysisState, AnalysisBuilder, AnalysisOrchestrator,
        build_analysis_graph,
    )
"""

from impact_analysis.graph.builder import AnalysisBuilder
from impact_analysis.graph.graph import STAGE_ORDER, build_analysis_graph
from impact_analysis.graph.nodes import make_stage_node
from impact_analysis.graph.orchestrator import AnalysisOrchestrator
from impact_analysis.graph.state import AnalysisState, initial_state

__all__ = [
    "AnalysisBuilder",
    "AnalysisOrchestrator",
    "AnalysisState",
    "STAGE_ORDER",
    "build_analysis_graph",
    "initial_state",
    "make_stage_node",
]
