"""Runs one proposal through the compiled analysis graph."""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Mapping
from typing import Any

from impact_analysis.domain.values import Proposal
from impact_analysis.graph.state import initial_state

logger = logging.getLogger(__name__)


class AnalysisOrchestrator:
    """Sequences the five stages and returns the merged final state.

    The orchestrator never aborts early: every stage degrades on its own, so
    a run always reaches ``summarize``.

    Parameters
    ----------
    app:
        Compiled graph from :func:`build_analysis_graph`.
    recursion_limit:
        Passed to LangGraph; the linear graph needs only five steps.
    """

    def __init__(self, app: Any, recursion_limit: int = 25) -> None:
        self._app = app
        self._recursion_limit = recursion_limit

    @property
    def app(self) -> Any:
        return self._app

    async def run_analysis(
        self,
        proposal: str | Mapping[str, Any] | Proposal,
        *,
        analysis_id: str | None = None,
        user_id: str = "",
    ) -> dict[str, Any]:
        """Analyze *proposal* and return the final ``AnalysisState``."""
        proposal = Proposal.coerce(proposal)
        analysis_id = analysis_id or uuid.uuid4().hex
        config = {
            "recursion_limit": self._recursion_limit,
            "metadata": {"analysis_id": analysis_id},
        }
        logger.info("Starting analysis %s", analysis_id)
        result = await self._app.ainvoke(initial_state(proposal, analysis_id, user_id), config)
        logger.info(
            "Finished analysis %s: %d statements, %d categories",
            analysis_id,
            len(result.get("extracted_statements", [])),
            len(result.get("evaluated_scores", {})),
        )
        return result

    def run_analysis_sync(
        self,
        proposal: str | Mapping[str, Any] | Proposal,
        *,
        analysis_id: str | None = None,
        user_id: str = "",
    ) -> dict[str, Any]:
        """Blocking wrapper around :meth:`run_analysis` for scripts and the CLI."""
        return asyncio.run(
            self.run_analysis(proposal, analysis_id=analysis_id, user_id=user_id)
        )
