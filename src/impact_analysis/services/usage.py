"""Per-run usage ledger and roll-ups."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable

from impact_analysis.domain.values import AnalysisUsageSummary, ModelUsage, UsageRecord
from impact_analysis.infrastructure.pricing import calculate_total_cost
from impact_analysis.infrastructure.usage_sink import UsageSink

logger = logging.getLogger(__name__)


class UsageLedger(UsageSink):
    """Append-only sink for one analysis run.

    Every accepted record is re-tagged with the run's ``user_id`` and
    ``analysis_id`` so the long-term sink can attribute it.
    """

    def __init__(self, user_id: str, analysis_id: str) -> None:
        self._user_id = user_id
        self._analysis_id = analysis_id
        self._lock = threading.Lock()
        self._records: list[UsageRecord] = []

    @property
    def user_id(self) -> str:
        return self._user_id

    @property
    def analysis_id(self) -> str:
        return self._analysis_id

    def record(self, record: UsageRecord) -> None:
        tagged = record.for_run(self._user_id, self._analysis_id)
        with self._lock:
            self._records.append(tagged)

    @property
    def records(self) -> tuple[UsageRecord, ...]:
        with self._lock:
            return tuple(self._records)

    def total_cost(self) -> float:
        return total_cost(self.records)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


def total_cost(records: Iterable[UsageRecord]) -> float:
    """Summed cost of *records*, failed calls included."""
    return calculate_total_cost(records)


def summarize_usage(analysis_id: str, records: Iterable[UsageRecord]) -> AnalysisUsageSummary:
    """Roll *records* up per model, in first-seen order."""
    per_model: dict[str, ModelUsage] = {}
    total_in = total_out = calls = failed = 0
    cost = 0.0
    for record in records:
        calls += 1
        if not record.success:
            failed += 1
        total_in += record.input_tokens
        total_out += record.output_tokens
        cost += record.cost
        current = per_model.get(record.model, ModelUsage(model_name=record.model))
        per_model[record.model] = ModelUsage(
            model_name=record.model,
            calls=current.calls + 1,
            input_tokens=current.input_tokens + record.input_tokens,
            output_tokens=current.output_tokens + record.output_tokens,
            cost=current.cost + record.cost,
        )
    return AnalysisUsageSummary(
        analysis_id=analysis_id,
        total_input_tokens=total_in,
        total_output_tokens=total_out,
        total_cost=cost,
        total_calls=calls,
        failed_calls=failed,
        model_usages=tuple(per_model.values()),
    )
