"""Domain events for the impact analysis pipeline.

Every event is a frozen dataclass inheriting from ``DomainEvent``.  Events
are published through the observer side-channel handed to the retrying
caller and the orchestrator; listeners (logging, tracing, dashboards) react
without the pipeline depending on them.

All events carry a ``timestamp`` and a ``source_id`` identifying the
originating component (usually a stage name).
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from .values import UsageRecord

# ---------------------------------------------------------------------------
# Base event
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DomainEvent:
    """Base class for all domain events."""

    timestamp: float = field(default_factory=time.time)
    source_id: str = ""


# ---------------------------------------------------------------------------
# Model call events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ModelCallFailed(DomainEvent):
    """One attempt against a model failed."""

    model: str = ""
    attempt: int = 0
    max_attempts: int = 0
    error_type: str = ""
    error: str = ""
    retryable: bool = True


@dataclass(frozen=True)
class ModelCallSucceeded(DomainEvent):
    """One attempt against a model succeeded."""

    model: str = ""
    attempt: int = 0
    fallback: bool = False


@dataclass(frozen=True)
class ModelEscalated(DomainEvent):
    """The caller gave up on one model and moved to the next fallback."""

    from_model: str = ""
    to_model: str = ""
    reason: str = ""


@dataclass(frozen=True)
class RetriesExhausted(DomainEvent):
    """Every model in the ladder failed."""

    models: tuple[str, ...] = ()
    attempts: int = 0
    error: str = ""


@dataclass(frozen=True)
class UsageRecorded(DomainEvent):
    """An invocation produced a usage record."""

    record: UsageRecord | None = None


# ---------------------------------------------------------------------------
# Pipeline events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StageCompleted(DomainEvent):
    """A pipeline stage finished, possibly with degraded output."""

    stage: str = ""
    analysis_id: str = ""
    duration: float = 0.0
    degraded: bool = False
    failed_items: int = 0


# Everything the observers publish; the event bus accepts only these.
PIPELINE_EVENTS: tuple[type[DomainEvent], ...] = (
    ModelCallFailed,
    ModelCallSucceeded,
    ModelEscalated,
    RetriesExhausted,
    UsageRecorded,
    StageCompleted,
)
