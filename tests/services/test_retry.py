"""Tests for the retry budget and fallback ladder."""

from __future__ import annotations

import asyncio
import random

import pytest
from pydantic import BaseModel

from impact_analysis.domain.events import ModelCallFailed, ModelEscalated, RetriesExhausted
from impact_analysis.domain.exceptions import (
    ExhaustedRetries,
    FatalConfigError,
    TransientProviderError,
)
from impact_analysis.infrastructure.config import RetryConfig
from impact_analysis.infrastructure.event_bus import EventBus, EventLog
from impact_analysis.infrastructure.usage_sink import InMemoryUsageSink
from impact_analysis.services.invoker import ModelInvoker
from impact_analysis.services.observers import EventBusObserver
from impact_analysis.services.retry import RetryingCaller
from impact_analysis.testing import ScriptedProvider

PRIMARY = "claude-3-5-haiku-latest"
FALLBACK = "claude-3-7-sonnet-latest"
OK = '{"summary": "done"}'


class Summary(BaseModel):
    summary: str


def _call(caller: RetryingCaller, **kwargs):
    kwargs.setdefault("fallback_models", (FALLBACK,))
    return asyncio.run(
        caller.call_with_retry(
            "Summarize {text}\n{format_instructions}",
            Summary,
            {"text": "x"},
            PRIMARY,
            **kwargs,
        )
    )


class TestCallWithRetry:

    def test_first_attempt_succeeds(self, make_caller, usage_sink, sleeps) -> None:
        provider = ScriptedProvider.from_replies([OK])
        assert _call(make_caller(provider)) == Summary(summary="done")
        assert provider.models_called() == [PRIMARY]
        assert sleeps == []
        assert len(usage_sink) == 1

    def test_primary_exhausted_then_fallback(
        self, make_caller, usage_sink: InMemoryUsageSink, sleeps
    ) -> None:
        provider = ScriptedProvider.from_replies(
            [
                TransientProviderError("503"),
                TransientProviderError("503"),
                TransientProviderError("503"),
                OK,
            ]
        )
        result = _call(make_caller(provider))

        assert result.summary == "done"
        assert provider.models_called() == [PRIMARY, PRIMARY, PRIMARY, FALLBACK]
        assert [r.success for r in usage_sink.records] == [False, False, False, True]
        # Backoff between attempts on the same model only.
        assert sleeps == [1.0, 2.0]

    def test_schema_violation_is_retried(self, make_caller, usage_sink) -> None:
        provider = ScriptedProvider.from_replies(["not json", OK])
        assert _call(make_caller(provider)).summary == "done"
        assert provider.models_called() == [PRIMARY, PRIMARY]
        assert len(usage_sink) == 2

    def test_fatal_error_escalates_immediately(self, make_caller, sleeps) -> None:
        provider = ScriptedProvider.from_replies([FatalConfigError("bad key"), OK])
        assert _call(make_caller(provider)).summary == "done"
        assert provider.models_called() == [PRIMARY, FALLBACK]
        assert sleeps == []

    def test_every_model_fails(self, make_caller, usage_sink) -> None:
        errors = [TransientProviderError(f"fail {i}") for i in range(6)]
        provider = ScriptedProvider.from_replies(errors)

        with pytest.raises(ExhaustedRetries) as exc_info:
            _call(make_caller(provider))

        exhausted = exc_info.value
        assert exhausted.attempts == 6
        assert exhausted.models == (PRIMARY, FALLBACK)
        assert exhausted.last_error is errors[-1]
        assert exhausted.__cause__ is errors[-1]
        assert len(usage_sink) == 6

    def test_fatal_without_fallback_exhausts(self, make_caller) -> None:
        provider = ScriptedProvider.from_replies([FatalConfigError("bad key")])
        with pytest.raises(ExhaustedRetries) as exc_info:
            _call(make_caller(provider), fallback_models=())
        assert exc_info.value.attempts == 1
        assert isinstance(exc_info.value.last_error, FatalConfigError)

    def test_per_call_budget(self, make_caller) -> None:
        provider = ScriptedProvider.from_replies([TransientProviderError(), OK])
        _call(make_caller(provider), max_retries=1)
        assert provider.models_called() == [PRIMARY, FALLBACK]

    def test_budget_below_one_rejected(self, make_caller) -> None:
        provider = ScriptedProvider.from_replies([])
        with pytest.raises(ValueError, match="max_retries"):
            _call(make_caller(provider), max_retries=0)
        assert provider.calls == []

    def test_retry_after_is_honoured(self, make_caller, sleeps) -> None:
        provider = ScriptedProvider.from_replies(
            [TransientProviderError("429", retry_after=7.0, rate_limited=True), OK]
        )
        _call(make_caller(provider))
        assert sleeps == [7.0]

    def test_rate_limit_waits_at_least_rate_limit_delay(self, make_caller, sleeps) -> None:
        provider = ScriptedProvider.from_replies(
            [TransientProviderError("429", rate_limited=True), OK]
        )
        _call(make_caller(provider))
        assert sleeps == [5.0]

    def test_temperature_forwarded(self, make_caller) -> None:
        provider = ScriptedProvider.from_replies([OK])
        _call(make_caller(provider), temperature=0.7)
        assert provider.calls[0].temperature == 0.7

    def test_events_published(self, make_caller) -> None:
        bus = EventBus()
        log = EventLog()
        bus.subscribe_all(log)
        provider = ScriptedProvider.from_replies([FatalConfigError("bad key"), OK])

        _call(make_caller(provider, observer=EventBusObserver(bus)), source="summarize")

        escalations = log.of_type(ModelEscalated)
        assert len(escalations) == 1
        assert (escalations[0].from_model, escalations[0].to_model) == (PRIMARY, FALLBACK)
        assert escalations[0].source_id == "summarize"
        failed = log.of_type(ModelCallFailed)
        assert failed[0].error_type == "FatalConfigError"
        assert not failed[0].retryable
        assert log.of_type(RetriesExhausted) == []


class TestBackoffDelay:

    def _caller(self, **overrides) -> RetryingCaller:
        config = RetryConfig(**{"jitter": False, **overrides})
        invoker = ModelInvoker(ScriptedProvider.from_replies([]))
        return RetryingCaller(invoker, config, rng=random.Random(0))

    def test_exponential(self) -> None:
        caller = self._caller()
        assert [caller.backoff_delay(n) for n in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 8.0]

    def test_capped(self) -> None:
        caller = self._caller(max_delay=3.0)
        assert caller.backoff_delay(5) == 3.0

    def test_jitter_within_half_to_full(self) -> None:
        caller = self._caller(jitter=True)
        for attempt in range(1, 6):
            base = min(2 ** (attempt - 1), 30.0)
            assert base * 0.5 <= caller.backoff_delay(attempt) <= base

    def test_retry_after_overrides_short_backoff(self) -> None:
        caller = self._caller()
        error = TransientProviderError(retry_after=12.0)
        assert caller.backoff_delay(1, error) == 12.0

    def test_long_backoff_beats_retry_after(self) -> None:
        caller = self._caller(base_delay=20.0)
        error = TransientProviderError(retry_after=1.0)
        assert caller.backoff_delay(1, error) == 20.0
