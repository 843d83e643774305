"""LangGraph node factory for pipeline stages.

Each node takes the ``AnalysisState`` and returns a partial update dict.
Nodes delegate to the stage objects rather than reimplementing any logic;
they only add timing, logging and a ``StageCompleted`` event.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from impact_analysis.domain.events import StageCompleted
from impact_analysis.services.observers import CallObserver
from impact_analysis.services.stages import PipelineStage

logger = logging.getLogger(__name__)

Node = Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]


def make_stage_node(stage: PipelineStage, observer: CallObserver | None = None) -> Node:
    """Wrap *stage* as an async LangGraph node.

    The node's update is the stage's update plus one ``StageCompleted`` event
    appended to the ``events`` channel.
    """
    obs = observer or CallObserver()

    async def stage_node(state: dict[str, Any]) -> dict[str, Any]:
        analysis_id = state.get("analysis_id", "")
        logger.debug("stage %s: starting (analysis=%s)", stage.name, analysis_id)
        started = time.monotonic()
        report = await stage.execute(state)
        duration = time.monotonic() - started

        obs.on_stage_completed(
            stage.name, analysis_id, duration, report.degraded, report.failed_items
        )
        event = StageCompleted(
            source_id=stage.name,
            stage=stage.name,
            analysis_id=analysis_id,
            duration=duration,
            degraded=report.degraded,
            failed_items=report.failed_items,
        )
        return {**report.update, "events": [event]}

    stage_node.__name__ = f"{stage.name}_node"
    return stage_node
