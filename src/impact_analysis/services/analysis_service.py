"""Top-level entry point: cost gate around one orchestrated analysis."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from impact_analysis.domain.values import AnalysisUsageSummary, Proposal
from impact_analysis.infrastructure.usage_sink import UsageSink
from impact_analysis.services.cost_gate import CostGate
from impact_analysis.services.usage import UsageLedger, summarize_usage

if TYPE_CHECKING:
    from impact_analysis.graph.orchestrator import AnalysisOrchestrator

logger = logging.getLogger(__name__)

PipelineFactory = Callable[[UsageSink], "AnalysisOrchestrator"]


@dataclass(frozen=True)
class AnalysisOutcome:
    """Final state of a run plus what it cost."""

    state: Mapping[str, Any]
    usage: AnalysisUsageSummary
    charged: float
    balance: float


class AnalysisService:
    """Runs analyses behind the balance gate.

    Each call builds a fresh orchestrator bound to a per-run
    :class:`UsageLedger`, so concurrent analyses never share usage state.

    Parameters
    ----------
    gate:
        Balance hold and settlement.
    pipeline_factory:
        Builds an orchestrator whose invocations report to the given sink.
    estimated_cost:
        Amount held before the run starts.
    """

    def __init__(
        self,
        gate: CostGate,
        pipeline_factory: PipelineFactory,
        estimated_cost: float = 1.0,
    ) -> None:
        self._gate = gate
        self._pipeline_factory = pipeline_factory
        self._estimated_cost = estimated_cost

    async def analyze(
        self,
        user_id: str,
        proposal: str | Mapping[str, Any] | Proposal,
        analysis_id: str | None = None,
    ) -> AnalysisOutcome:
        """Reserve, run and settle one analysis.

        Raises
        ------
        InsufficientBalance
            Before any model is called, when the hold cannot be placed.
        """
        proposal = Proposal.coerce(proposal)
        analysis_id = analysis_id or uuid.uuid4().hex
        reservation = self._gate.reserve(user_id, self._estimated_cost)

        ledger = UsageLedger(user_id=user_id, analysis_id=analysis_id)
        try:
            orchestrator = self._pipeline_factory(ledger)
            state = await orchestrator.run_analysis(
                proposal, analysis_id=analysis_id, user_id=user_id
            )
        finally:
            # Records emitted before a cancellation are still billable.
            balance = self._gate.settle(reservation, ledger.records)

        usage = summarize_usage(analysis_id, ledger.records)
        logger.info(
            "Analysis %s for %s: %d calls, cost %.6f",
            analysis_id,
            user_id,
            usage.total_calls,
            usage.total_cost,
        )
        return AnalysisOutcome(state=state, usage=usage, charged=usage.total_cost, balance=balance)
