"""Shared fixtures for the impact-analysis test suite."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from impact_analysis.graph.builder import AnalysisBuilder
from impact_analysis.infrastructure.config import PipelineConfig, RetryConfig
from impact_analysis.infrastructure.llm import ModelProvider
from impact_analysis.infrastructure.usage_sink import InMemoryUsageSink
from impact_analysis.services.invoker import ModelInvoker
from impact_analysis.services.observers import CallObserver
from impact_analysis.services.retry import RetryingCaller
from impact_analysis.testing import PipelineScript

EXAMPLE_PROPOSAL = (
    "Build a fleet of electric driverless vehicles for our city and "
    "replace trains to provide efficient transport for remote areas"
)

EXAMPLE_STATEMENTS = [
    "Build a fleet of electric driverless vehicles",
    "Replace existing trains",
    "Provide efficient transport for remote areas",
]


async def no_sleep(delay: float) -> None:
    return None


# ---------------------------------------------------------------------------
# Retry fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def retry_config() -> RetryConfig:
    """Default budget, deterministic backoff."""
    return RetryConfig(max_retries=3, base_delay=1.0, max_delay=30.0, jitter=False)


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def recording_sleep(sleeps: list[float]) -> Callable:
    async def sleep(delay: float) -> None:
        sleeps.append(delay)

    return sleep


@pytest.fixture
def usage_sink() -> InMemoryUsageSink:
    return InMemoryUsageSink()


@pytest.fixture
def make_caller(
    retry_config: RetryConfig,
    usage_sink: InMemoryUsageSink,
    recording_sleep: Callable,
) -> Callable[..., RetryingCaller]:
    """Factory for a ``RetryingCaller`` over a provider, recording usage and sleeps."""

    def factory(provider: ModelProvider, observer: CallObserver | None = None) -> RetryingCaller:
        invoker = ModelInvoker(provider, usage_sink=usage_sink, observer=observer)
        return RetryingCaller(
            invoker, retry_config, observer=observer, sleep=recording_sleep
        )

    return factory


# ---------------------------------------------------------------------------
# Pipeline fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def example_proposal() -> str:
    return EXAMPLE_PROPOSAL


@pytest.fixture
def example_statements() -> list[str]:
    return list(EXAMPLE_STATEMENTS)


@pytest.fixture
def example_script() -> PipelineScript:
    """Scripted answers for the electric-vehicle example proposal."""
    return PipelineScript(
        statements=EXAMPLE_STATEMENTS,
        impacts={
            EXAMPLE_STATEMENTS[0]: ["Lower tailpipe emissions", "Job losses for drivers"],
            EXAMPLE_STATEMENTS[1]: ["Stranded rail assets"],
            EXAMPLE_STATEMENTS[2]: ["Better access to services"],
        },
        categories={
            "Environmental": ["Lower tailpipe emissions"],
            "Labor & Social": ["Job losses for drivers", "Better access to services"],
            "Economic": ["Stranded rail assets"],
        },
        scores={"Environmental": 0.8, "Labor & Social": -0.4, "Economic": -0.2},
        summary="The proposal should not proceed as-is.",
    )


@pytest.fixture
def make_builder() -> Callable[..., AnalysisBuilder]:
    """Factory for an ``AnalysisBuilder`` that never sleeps between retries."""

    def factory(
        provider: ModelProvider,
        config: PipelineConfig | None = None,
    ) -> AnalysisBuilder:
        builder = AnalysisBuilder().with_provider(provider).with_sleep(no_sleep)
        if config is not None:
            builder.with_config(config)
        return builder

    return factory
