"""LangGraph state definition for the analysis pipeline.

Defines ``AnalysisState``, a ``TypedDict`` that flows through the LangGraph
``StateGraph``.  Each stage writes only its own fields; ``events`` is an
append-only channel (``Annotated[list, operator.add]``) collecting one
``StageCompleted`` per stage.

Note: We intentionally do NOT use ``from __future__ import annotations`` because
LangGraph needs to resolve type hints at runtime via ``get_type_hints()``.
"""

import operator
from typing import Annotated, Any, Optional, TypedDict

from impact_analysis.domain.values import Proposal, Recommendation


class AnalysisState(TypedDict, total=False):
    """State threaded through one analysis run.

    Fields are populated strictly in stage order:

    - ``extracted_statements`` by extract
    - ``downstream_impacts`` by expand
    - ``grouped_categories`` by categorize
    - ``research_findings`` and ``evaluated_scores`` by evaluate
    - ``final_summary`` and ``recommendation`` by summarize
    """

    proposal: Proposal
    analysis_id: str
    user_id: str
    extracted_statements: list[str]
    downstream_impacts: list[str]
    grouped_categories: dict[str, list[str]]
    research_findings: dict[str, str]
    evaluated_scores: dict[str, float]
    final_summary: str
    recommendation: Optional[Recommendation]
    events: Annotated[list, operator.add]


def initial_state(proposal: Proposal, analysis_id: str, user_id: str = "") -> dict[str, Any]:
    """Fresh state for one run: the proposal plus empty collections."""
    return {
        "proposal": proposal,
        "analysis_id": analysis_id,
        "user_id": user_id,
        "extracted_statements": [],
        "downstream_impacts": [],
        "grouped_categories": {},
        "research_findings": {},
        "evaluated_scores": {},
        "final_summary": "",
        "recommendation": None,
        "events": [],
    }
