"""Base class for the five pipeline stages.

A stage is a function of the accumulated ``AnalysisState`` to a partial
update.  Stages never raise for model failures: each one applies its own
degrade policy and reports whether it had to, via :class:`StageReport`.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel

from impact_analysis.infrastructure.config import StageModels
from impact_analysis.services.retry import RetryingCaller

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StageReport:
    """A stage's partial state update plus how it went.

    Attributes
    ----------
    update:
        Fields to merge into the analysis state.
    degraded:
        ``True`` when a whole-stage failure forced the fallback value.
    failed_items:
        Per-item failures absorbed by a fan-out stage.
    """

    update: dict[str, Any] = field(default_factory=dict)
    degraded: bool = False
    failed_items: int = 0


class PipelineStage(ABC):
    """One ordered transformation of the analysis state.

    Parameters
    ----------
    caller:
        Retrying caller shared by every stage of a pipeline.
    models:
        Primary model, fallbacks and temperature for this stage.
    max_retries:
        Attempts per model.  ``None`` uses the caller's ``RetryConfig``.
    """

    name: str = "stage"

    def __init__(
        self,
        caller: RetryingCaller,
        models: StageModels | None = None,
        max_retries: int | None = None,
    ) -> None:
        self._caller = caller
        self._models = models or StageModels()
        self._max_retries = max_retries

    @property
    def models(self) -> StageModels:
        return self._models

    async def _call(
        self,
        prompt_template: str,
        output_schema: type[BaseModel] | None,
        variables: Mapping[str, Any],
        models: StageModels | None = None,
    ) -> Any:
        ladder = models or self._models
        return await self._caller.call_with_retry(
            prompt_template,
            output_schema,
            variables,
            primary_model=ladder.primary_model,
            temperature=ladder.temperature,
            max_retries=self._max_retries,
            fallback_models=ladder.fallback_models,
            source=self.name,
        )

    @abstractmethod
    async def execute(self, state: Mapping[str, Any]) -> StageReport:
        """Run the stage and report its update and degradation."""

    async def run(self, state: Mapping[str, Any]) -> dict[str, Any]:
        """Run the stage and return only the partial state update."""
        report = await self.execute(state)
        return report.update

    def __repr__(self) -> str:
        return f"{type(self).__name__}(primary={self._models.primary_model!r})"
