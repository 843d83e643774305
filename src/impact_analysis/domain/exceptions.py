"""Domain exceptions for the impact analysis pipeline.

All domain-specific exceptions inherit from ``ImpactAnalysisError`` so
callers can catch the full family with a single ``except`` clause when needed.

The taxonomy mirrors how the pipeline recovers from each failure:

* ``TransientProviderError`` and ``SchemaViolation`` are retried by the
  retrying caller on the same model.
* ``FatalConfigError`` skips the remaining attempts on a model and escalates
  to the next fallback.
* ``ExhaustedRetries`` is raised once every model has been spent.
* ``InsufficientBalance`` stops a run before any model is called.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any


class ImpactAnalysisError(Exception):
    """Base exception for all impact analysis domain errors."""

    def __init__(self, message: str = "", details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details: dict[str, Any] = details or {}


class TransientProviderError(ImpactAnalysisError):
    """Raised for rate limits, timeouts and server-side provider failures.

    ``retry_after`` carries the provider's suggested wait in seconds when
    one was given (e.g. a ``retry-after`` header on a 429 response).
    """

    def __init__(
        self,
        message: str = "Transient provider failure",
        retry_after: float | None = None,
        rate_limited: bool = False,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.retry_after = retry_after
        self.rate_limited = rate_limited


class SchemaViolation(ImpactAnalysisError):
    """Raised when a model reply does not conform to the declared output schema."""

    def __init__(
        self,
        message: str = "Model output violates the output schema",
        raw_text: str = "",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.raw_text = raw_text


class FatalConfigError(ImpactAnalysisError):
    """Raised for failures that retrying the same model cannot fix.

    Examples: bad credentials, an unknown model name, or a prompt template
    that references a variable the caller did not supply.
    """


class ExhaustedRetries(ImpactAnalysisError):
    """Raised when the primary model and every fallback have failed."""

    def __init__(
        self,
        message: str = "All models exhausted their retry budget",
        last_error: BaseException | None = None,
        attempts: int = 0,
        models: Sequence[str] = (),
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.last_error = last_error
        self.attempts = attempts
        self.models: tuple[str, ...] = tuple(models)


class InsufficientBalance(ImpactAnalysisError):
    """Raised when a user's balance cannot cover the estimated analysis cost."""

    def __init__(
        self,
        message: str = "Insufficient balance",
        user_id: str = "",
        balance: float = 0.0,
        required: float = 0.0,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.user_id = user_id
        self.balance = balance
        self.required = required


def is_retryable(exc: BaseException) -> bool:
    """Return ``True`` if *exc* should be retried on the same model."""
    return isinstance(exc, (TransientProviderError, SchemaViolation))
