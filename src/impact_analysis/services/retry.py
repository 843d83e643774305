"""Retrying caller: per-model retry budget plus a fallback ladder.

Each model in ``(primary_model, *fallback_models)`` gets ``max_retries``
attempts, counting the first.  Retryable failures (transient provider errors
and schema violations) back off exponentially on the same model; a
``FatalConfigError`` moves straight to the next model.  When every model is
spent the caller raises ``ExhaustedRetries`` with the last failure attached.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any

from pydantic import BaseModel

from impact_analysis.domain.exceptions import (
    ExhaustedRetries,
    ImpactAnalysisError,
    TransientProviderError,
    is_retryable,
)
from impact_analysis.infrastructure.config import RetryConfig
from impact_analysis.services.invoker import ModelInvoker
from impact_analysis.services.observers import CallObserver

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[Any]]


class RetryingCaller:
    """Wraps a :class:`ModelInvoker` with retries and model escalation.

    Parameters
    ----------
    invoker:
        Performs the individual calls.
    retry:
        Backoff settings.  ``retry.max_retries`` is only the default budget;
        each call may pass its own.
    observer:
        Notified of failed attempts, escalations and exhaustion.
    sleep:
        Awaitable used for backoff.  Tests inject a no-op.
    rng:
        Source of jitter.
    """

    def __init__(
        self,
        invoker: ModelInvoker,
        retry: RetryConfig | None = None,
        observer: CallObserver | None = None,
        sleep: SleepFn = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self._invoker = invoker
        self._retry = retry or RetryConfig()
        self._observer = observer or CallObserver()
        self._sleep = sleep
        self._rng = rng or random.Random()

    @property
    def retry_config(self) -> RetryConfig:
        return self._retry

    def backoff_delay(self, attempt: int, error: BaseException | None = None) -> float:
        """Seconds to wait after failed *attempt* (1-based) on the same model."""
        delay = min(self._retry.base_delay * (2 ** (attempt - 1)), self._retry.max_delay)
        if self._retry.jitter:
            delay *= 0.5 + self._rng.random() * 0.5
        if isinstance(error, TransientProviderError):
            if error.retry_after is not None:
                delay = max(delay, error.retry_after)
            elif error.rate_limited:
                delay = max(delay, self._retry.rate_limit_delay)
        return delay

    async def call_with_retry(
        self,
        prompt_template: str,
        output_schema: type[BaseModel] | None,
        variables: Mapping[str, Any],
        primary_model: str,
        temperature: float = 0.0,
        max_retries: int | None = None,
        fallback_models: Sequence[str] = (),
        source: str = "",
    ) -> Any:
        """Invoke the ladder until one model returns a valid value.

        Returns
        -------
        The parsed schema instance, or the raw text when *output_schema* is
        ``None``.

        Raises
        ------
        ExhaustedRetries
            Every model failed; ``last_error`` holds the final failure.
        ValueError
            If *max_retries* is below 1.
        """
        budget = self._retry.max_retries if max_retries is None else max_retries
        if budget < 1:
            raise ValueError(f"max_retries must be >= 1, got {budget}")

        models = [primary_model, *fallback_models]
        attempts = 0
        last_error: BaseException | None = None

        for index, model in enumerate(models):
            is_fallback = index > 0
            for attempt in range(1, budget + 1):
                attempts += 1
                try:
                    result = await self._invoker.invoke(
                        prompt_template,
                        variables,
                        output_schema=output_schema,
                        model_name=model,
                        temperature=temperature,
                    )
                except ImpactAnalysisError as exc:
                    last_error = exc
                    self._observer.on_attempt_failed(model, attempt, budget, exc, source)
                    if not is_retryable(exc):
                        break
                    if attempt < budget:
                        await self._sleep(self.backoff_delay(attempt, exc))
                    continue

                self._observer.on_attempt_succeeded(model, attempt, is_fallback, source)
                return result.value

            if index + 1 < len(models):
                self._observer.on_escalation(model, models[index + 1], last_error, source)

        error = ExhaustedRetries(
            f"All models failed after {attempts} attempts "
            f"({', '.join(models)}): {last_error}",
            last_error=last_error,
            attempts=attempts,
            models=models,
            details={"source": source} if source else None,
        )
        self._observer.on_exhausted(error, source)
        raise error from last_error
