"""Research + Evaluate: free-text research, then a scored judgment, per category.

Categories are processed one after another.  For each category the research
call (no output schema) feeds the evaluation call, which must return a
``researchSummary`` and a ``score``.  If either call exhausts its ladder the
category gets a placeholder finding and a neutral score; other categories
are unaffected.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from impact_analysis.domain.results import Failure, capture
from impact_analysis.domain.values import CategoryEvaluation
from impact_analysis.infrastructure.config import StageModels
from impact_analysis.services.retry import RetryingCaller
from impact_analysis.services.stages import PipelineStage, StageReport

logger = logging.getLogger(__name__)

NEUTRAL_SCORE = 0.0


class EvaluationResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    research_summary: str = Field(
        alias="researchSummary", description="Research findings for the category"
    )
    score: float = Field(
        allow_inf_nan=False, description="Numerical score between -1.0 and +1.0"
    )


RESEARCH_PROMPT = """\
You are a meticulous researcher. Given an impactCategory and its statements, use a search tool to find concrete, numerical data.

ImpactCategory: {category}
Statements: {statements}"""

EVALUATION_PROMPT = """\
You are an impartial judge. Your judgment is based on the principles of Doughnut Economics and the UN's Sustainable Development Goals (SDGs).

Research Findings: {research}
ImpactCategory: {category}
Statements: {statements}

Analyze the research findings and assign a numerical score between -1.0 (highly negative) and +1.0 (highly positive) to the category.

Scoring Criteria:
- Positive Score: The impact measurably improves a social or environmental metric
- Negative Score: The impact depletes a critical resource, harms a social foundation, or negatively affects an SDG
- The magnitude of the score should be proportional to the magnitude of the impact

{format_instructions}"""


def placeholder_finding(category: str) -> str:
    return f"Error generating research findings for {category}"


class CategoryEvaluator(PipelineStage):
    """Fills ``research_findings`` and ``evaluated_scores`` for every category.

    Parameters
    ----------
    caller:
        Shared retrying caller.
    models:
        Ladder for the structured evaluation call.
    research_models:
        Ladder for the free-text research call.
    max_retries:
        Attempts per model.
    clamp_scores:
        Clamp model scores to ``[-1, 1]`` before they reach the state.
    """

    name = "evaluate"

    def __init__(
        self,
        caller: RetryingCaller,
        models: StageModels | None = None,
        research_models: StageModels | None = None,
        max_retries: int | None = None,
        clamp_scores: bool = True,
    ) -> None:
        super().__init__(caller, models, max_retries)
        self._research_models = research_models or self._models
        self._clamp_scores = clamp_scores

    @property
    def research_models(self) -> StageModels:
        return self._research_models

    async def evaluate_category(
        self, category: str, members: Sequence[str]
    ) -> tuple[str, CategoryEvaluation]:
        """Research then score one category.

        Returns the raw research text and the (possibly clamped) evaluation.
        """
        statements = "\n".join(members)
        research = await self._call(
            RESEARCH_PROMPT,
            None,
            {"category": category, "statements": statements},
            models=self._research_models,
        )
        result = await self._call(
            EVALUATION_PROMPT,
            EvaluationResult,
            {"research": research, "category": category, "statements": statements},
        )
        evaluation = CategoryEvaluation(
            research_summary=result.research_summary, score=float(result.score)
        )
        if self._clamp_scores:
            clamped = evaluation.clamped()
            if clamped.score != evaluation.score:
                logger.warning(
                    "Score %.3f for %r is outside [-1, 1]; clamped to %.1f",
                    evaluation.score,
                    category,
                    clamped.score,
                )
            evaluation = clamped
        return research, evaluation

    async def execute(self, state: Mapping[str, Any]) -> StageReport:
        categories: Mapping[str, Sequence[str]] = state.get("grouped_categories") or {}
        logger.info("Researching and evaluating %d categories", len(categories))

        findings: dict[str, str] = {}
        scores: dict[str, float] = {}
        failed = 0
        for category, members in categories.items():
            outcome = await capture(category, self.evaluate_category(category, members))
            if isinstance(outcome, Failure):
                logger.warning("Evaluation of category %r failed: %s", category, outcome.error)
                findings[category] = placeholder_finding(category)
                scores[category] = NEUTRAL_SCORE
                failed += 1
                continue
            research, evaluation = outcome.value
            findings[category] = research
            scores[category] = evaluation.score
            logger.debug("Category %r scored %.3f", category, evaluation.score)

        return StageReport(
            {"research_findings": findings, "evaluated_scores": scores},
            failed_items=failed,
        )
