"""Expand: fan out one call per statement for its downstream consequences."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field

from impact_analysis.domain.results import capture, partition
from impact_analysis.services.stages import PipelineStage, StageReport

logger = logging.getLogger(__name__)


class DownstreamImpacts(BaseModel):
    impacts: list[str] = Field(description="Array of downstream impacts")


EXPAND_PROMPT = """\
You are a systems thinking expert. You understand how a single action can ripple through an ecosystem.

Task: Given a single impactStatement, generate a list of 5-10 direct and indirect downstream consequences. Think broadly about resources, labor, environment, social effects, and economic factors.

Input impactStatement: {statement}

{format_instructions}"""


class DownstreamExpander(PipelineStage):
    """Concurrently expands every statement; a failed statement contributes nothing.

    The flattened ``downstream_impacts`` follow statement order, but callers
    should treat the list as unordered.
    """

    name = "expand"

    async def _expand(self, statement: str) -> list[str]:
        result = await self._call(EXPAND_PROMPT, DownstreamImpacts, {"statement": statement})
        return list(result.impacts)

    async def execute(self, state: Mapping[str, Any]) -> StageReport:
        statements = list(state.get("extracted_statements") or [])
        logger.info("Generating downstream impacts for %d statements", len(statements))

        results = await asyncio.gather(
            *(capture(statement, self._expand(statement)) for statement in statements)
        )
        successes, failures = partition(results)
        for failure in failures:
            logger.warning(
                "No downstream impacts for statement %r: %s", failure.item, failure.error
            )

        impacts = [impact for success in successes for impact in success.value]
        logger.debug("Downstream impacts: %s", impacts)
        return StageReport({"downstream_impacts": impacts}, failed_items=len(failures))
