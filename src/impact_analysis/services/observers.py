"""Call observers: the tracing side-channel of the pipeline.

An observer is handed to the invoker, the retrying caller and the
orchestrator explicitly; nothing is registered process-wide.  The base
class is a no-op so implementations override only the hooks they need.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from impact_analysis.domain.events import (
    ModelCallFailed,
    ModelCallSucceeded,
    ModelEscalated,
    RetriesExhausted,
    StageCompleted,
    UsageRecorded,
)
from impact_analysis.domain.exceptions import ExhaustedRetries, is_retryable
from impact_analysis.domain.values import UsageRecord
from impact_analysis.infrastructure.event_bus import EventBus

logger = logging.getLogger(__name__)


class CallObserver:
    """No-op observer; subclass and override the hooks of interest."""

    def on_attempt_failed(
        self,
        model: str,
        attempt: int,
        max_attempts: int,
        error: BaseException,
        source: str = "",
    ) -> None:
        pass

    def on_attempt_succeeded(
        self,
        model: str,
        attempt: int,
        fallback: bool,
        source: str = "",
    ) -> None:
        pass

    def on_escalation(
        self,
        from_model: str,
        to_model: str,
        error: BaseException,
        source: str = "",
    ) -> None:
        pass

    def on_exhausted(self, error: ExhaustedRetries, source: str = "") -> None:
        pass

    def on_usage(self, record: UsageRecord) -> None:
        pass

    def on_stage_completed(
        self,
        stage: str,
        analysis_id: str,
        duration: float,
        degraded: bool,
        failed_items: int = 0,
    ) -> None:
        pass


class LoggingObserver(CallObserver):
    """Writes every hook to the standard logging tree."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger

    def on_attempt_failed(self, model, attempt, max_attempts, error, source=""):
        self._log.warning(
            "[%s] %s attempt %d/%d failed: %s",
            source or "call",
            model,
            attempt,
            max_attempts,
            error,
        )

    def on_attempt_succeeded(self, model, attempt, fallback, source=""):
        if fallback:
            self._log.info("[%s] succeeded with fallback model %s", source or "call", model)
        elif attempt > 1:
            self._log.info(
                "[%s] succeeded after %d attempts with %s", source or "call", attempt, model
            )

    def on_escalation(self, from_model, to_model, error, source=""):
        self._log.warning(
            "[%s] escalating from %s to fallback %s (%s)",
            source or "call",
            from_model,
            to_model,
            type(error).__name__,
        )

    def on_exhausted(self, error, source=""):
        self._log.error("[%s] %s", source or "call", error)

    def on_usage(self, record):
        self._log.debug(
            "usage: %s in=%d out=%d cost=%.6f success=%s",
            record.model,
            record.input_tokens,
            record.output_tokens,
            record.cost,
            record.success,
        )

    def on_stage_completed(self, stage, analysis_id, duration, degraded, failed_items=0):
        self._log.info(
            "stage %s finished in %.2fs (degraded=%s, failed_items=%d)",
            stage,
            duration,
            degraded,
            failed_items,
        )


class EventBusObserver(CallObserver):
    """Publishes each hook as a domain event on an :class:`EventBus`."""

    def __init__(self, bus: EventBus) -> None:
        self._bus = bus

    @property
    def bus(self) -> EventBus:
        return self._bus

    def on_attempt_failed(self, model, attempt, max_attempts, error, source=""):
        self._bus.publish(
            ModelCallFailed(
                source_id=source,
                model=model,
                attempt=attempt,
                max_attempts=max_attempts,
                error_type=type(error).__name__,
                error=str(error),
                retryable=is_retryable(error),
            )
        )

    def on_attempt_succeeded(self, model, attempt, fallback, source=""):
        self._bus.publish(
            ModelCallSucceeded(source_id=source, model=model, attempt=attempt, fallback=fallback)
        )

    def on_escalation(self, from_model, to_model, error, source=""):
        self._bus.publish(
            ModelEscalated(
                source_id=source,
                from_model=from_model,
                to_model=to_model,
                reason=type(error).__name__,
            )
        )

    def on_exhausted(self, error, source=""):
        self._bus.publish(
            RetriesExhausted(
                source_id=source,
                models=error.models,
                attempts=error.attempts,
                error=str(error),
            )
        )

    def on_usage(self, record):
        self._bus.publish(UsageRecorded(source_id=record.model, record=record))

    def on_stage_completed(self, stage, analysis_id, duration, degraded, failed_items=0):
        self._bus.publish(
            StageCompleted(
                source_id=stage,
                stage=stage,
                analysis_id=analysis_id,
                duration=duration,
                degraded=degraded,
                failed_items=failed_items,
            )
        )


class CompositeObserver(CallObserver):
    """Fans every hook out to several observers in order."""

    def __init__(self, observers: Iterable[CallObserver]) -> None:
        self._observers = list(observers)

    def on_attempt_failed(self, *args, **kwargs):
        for obs in self._observers:
            obs.on_attempt_failed(*args, **kwargs)

    def on_attempt_succeeded(self, *args, **kwargs):
        for obs in self._observers:
            obs.on_attempt_succeeded(*args, **kwargs)

    def on_escalation(self, *args, **kwargs):
        for obs in self._observers:
            obs.on_escalation(*args, **kwargs)

    def on_exhausted(self, *args, **kwargs):
        for obs in self._observers:
            obs.on_exhausted(*args, **kwargs)

    def on_usage(self, record):
        for obs in self._observers:
            obs.on_usage(record)

    def on_stage_completed(self, *args, **kwargs):
        for obs in self._observers:
            obs.on_stage_completed(*args, **kwargs)
