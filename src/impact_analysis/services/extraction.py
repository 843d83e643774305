"""Extract: split a proposal into atomic impact statements."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field

from impact_analysis.domain.exceptions import ExhaustedRetries
from impact_analysis.domain.values import Proposal
from impact_analysis.services.stages import PipelineStage, StageReport

logger = logging.getLogger(__name__)


class ExtractedStatements(BaseModel):
    statements: list[str] = Field(description="Array of impact statements")


EXTRACT_PROMPT = """\
You are an expert analyst with a talent for deconstructing complex ideas into simple, atomic statements.

Task: Take the user's proposal and identify all of its concrete components. Each component should be rephrased as a single, unambiguous statement of impact or action.

Input proposal: {proposal}

{format_instructions}

Example:
Input: proposal: "We should build a fleet of electric driverless vehicles for our city and replace trains to provide efficient transport for remote areas"
Output: {{"statements": ["Build a fleet of electric driverless vehicles", "Replace existing trains", "Provide efficient transport for remote areas"]}}"""


class StatementExtractor(PipelineStage):
    """Turns the proposal into ``extracted_statements``; ``[]`` if every model fails."""

    name = "extract"

    async def execute(self, state: Mapping[str, Any]) -> StageReport:
        proposal = Proposal.coerce(state["proposal"])
        logger.info("Extracting statements from proposal")
        try:
            result = await self._call(
                EXTRACT_PROMPT,
                ExtractedStatements,
                {"proposal": proposal.as_prompt()},
            )
        except ExhaustedRetries as exc:
            logger.warning("Statement extraction failed: %s", exc)
            return StageReport({"extracted_statements": []}, degraded=True)

        statements = list(result.statements)
        logger.debug("Extracted statements: %s", statements)
        return StageReport({"extracted_statements": statements})
