"""Categorize: group downstream impacts under sustainability categories."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field

from impact_analysis.domain.exceptions import ExhaustedRetries
from impact_analysis.services.stages import PipelineStage, StageReport

logger = logging.getLogger(__name__)


class GroupedCategories(BaseModel):
    categories: dict[str, list[str]] = Field(
        description="Category name mapped to the impacts that belong to it"
    )


CATEGORIZE_PROMPT = """\
You are an expert categorizer and organizer.

Task: Take a list of impactStatements and group them into logical categories. The categories should be high-level and relevant to a sustainability analysis (e.g., "Resource Impact", "Labor & Social", "Environmental", "Economic", "Governance"). The output should be a structured JSON object.

Input impactStatements: {statements}

{format_instructions}"""


class ImpactCategorizer(PipelineStage):
    """Produces ``grouped_categories``; ``{}`` when there is nothing to group or every model fails."""

    name = "categorize"

    async def execute(self, state: Mapping[str, Any]) -> StageReport:
        impacts = list(state.get("downstream_impacts") or [])
        if not impacts:
            logger.info("No downstream impacts to categorize")
            return StageReport({"grouped_categories": {}})

        logger.info("Categorizing %d downstream impacts", len(impacts))
        try:
            result = await self._call(
                CATEGORIZE_PROMPT,
                GroupedCategories,
                {"statements": "\n".join(impacts)},
            )
        except ExhaustedRetries as exc:
            logger.warning("Categorization failed: %s", exc)
            return StageReport({"grouped_categories": {}}, degraded=True)

        categories = {name: list(members) for name, members in result.categories.items()}
        logger.debug("Categories: %s", categories)
        return StageReport({"grouped_categories": categories})
