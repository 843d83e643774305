"""Summarize: narrative summary plus the code-computed recommendation."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field

from impact_analysis.domain.exceptions import ExhaustedRetries
from impact_analysis.domain.values import Proposal, Recommendation
from impact_analysis.infrastructure.config import StageModels
from impact_analysis.services.recommendation import DEFAULT_ACCEPTANCE_RATIO, assess
from impact_analysis.services.retry import RetryingCaller
from impact_analysis.services.stages import PipelineStage, StageReport

logger = logging.getLogger(__name__)

SUMMARY_ERROR = "Error generating summary."


class FinalSummary(BaseModel):
    summary: str = Field(
        description="Well-formatted Markdown string suitable for direct display in the UI"
    )


SUMMARY_PROMPT = """\
You are a senior analyst and advisor. Your goal is to provide a clear, concise, and professional summary.

Combine the original proposal, the evaluatedScores, and the researchFindings to generate a final summary and recommendation.

Summary Structure:
1. A brief, one-sentence overview of the proposal's overall impact.
2. A point-by-point breakdown of each category's score and the justification from the research.
3. A final, explicit recommendation.

Recommendation Logic: The system has a hard rule: a negative impact is only considered "acceptable" if the total positive score is at least {ratio} times the absolute value of the total negative score. If this condition is not met, the recommendation is to **not** proceed with the proposal as-is.

Computed Recommendation: {assessment}

Original Proposal: {proposal}
Category Scores: {scores}
Research Findings: {findings}

{format_instructions}"""


def describe(recommendation: Recommendation) -> str:
    """One-line account of the rule's outcome, embedded in the summary prompt."""
    return (
        f"{recommendation.verdict} (positive total {recommendation.positive_total:.2f}, "
        f"negative total {recommendation.negative_total:.2f}, "
        f"required ratio {recommendation.ratio:g})"
    )


class FindingsSummarizer(PipelineStage):
    """Writes ``final_summary`` and ``recommendation``.

    The recommendation is always computed from ``evaluated_scores``, even
    when the narrative call fails and the summary degrades to a fixed string.
    """

    name = "summarize"

    def __init__(
        self,
        caller: RetryingCaller,
        models: StageModels | None = None,
        max_retries: int | None = None,
        ratio: float = DEFAULT_ACCEPTANCE_RATIO,
    ) -> None:
        super().__init__(caller, models, max_retries)
        self._ratio = ratio

    async def execute(self, state: Mapping[str, Any]) -> StageReport:
        scores: Mapping[str, float] = state.get("evaluated_scores") or {}
        findings: Mapping[str, str] = state.get("research_findings") or {}
        recommendation = assess(scores, self._ratio)
        logger.info("Summarizing findings (%s)", recommendation.verdict)

        try:
            result = await self._call(
                SUMMARY_PROMPT,
                FinalSummary,
                {
                    "proposal": Proposal.coerce(state["proposal"]).as_prompt(),
                    "scores": json.dumps(dict(scores)),
                    "findings": json.dumps(dict(findings)),
                    "ratio": f"{self._ratio:g}",
                    "assessment": describe(recommendation),
                },
            )
        except ExhaustedRetries as exc:
            logger.warning("Summary generation failed: %s", exc)
            return StageReport(
                {"final_summary": SUMMARY_ERROR, "recommendation": recommendation},
                degraded=True,
            )

        return StageReport({"final_summary": result.summary, "recommendation": recommendation})
