"""Fluent builder for assembling an analysis pipeline.

``AnalysisBuilder`` turns a :class:`PipelineConfig` plus a model provider into
a ready-to-run :class:`AnalysisOrchestrator`::

    orchestrator = (
        AnalysisBuilder()
        .with_config(load_config("pipeline.yaml"))
        .with_observer(LoggingObserver())
        .build()
    )
    state = orchestrator.run_analysis_sync("Replace diesel buses with electric ones")

Without ``.with_provider()`` the builder uses :class:`LangChainProvider`,
which reads provider credentials from the environment.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from impact_analysis.graph.graph import build_analysis_graph
from impact_analysis.graph.orchestrator import AnalysisOrchestrator
from impact_analysis.infrastructure.balance_store import BalanceStore, InMemoryBalanceStore
from impact_analysis.infrastructure.config import PipelineConfig
from impact_analysis.infrastructure.llm import ModelProvider
from impact_analysis.infrastructure.pricing import PricingTable
from impact_analysis.infrastructure.usage_sink import UsageSink
from impact_analysis.services.analysis_service import AnalysisService
from impact_analysis.services.categorization import ImpactCategorizer
from impact_analysis.services.cost_gate import CostGate
from impact_analysis.services.evaluation import CategoryEvaluator
from impact_analysis.services.expansion import DownstreamExpander
from impact_analysis.services.extraction import StatementExtractor
from impact_analysis.services.invoker import ModelInvoker
from impact_analysis.services.observers import CallObserver
from impact_analysis.services.retry import RetryingCaller
from impact_analysis.services.summary import FindingsSummarizer


class AnalysisBuilder:
    """Fluent builder for an :class:`AnalysisOrchestrator`."""

    def __init__(self) -> None:
        self._provider: ModelProvider | None = None
        self._config = PipelineConfig()
        self._usage_sink: UsageSink | None = None
        self._observer: CallObserver | None = None
        self._pricing: PricingTable | None = None
        self._sleep: Callable[[float], Awaitable[Any]] | None = None

    # -- fluent setters -------------------------------------------------------

    def with_provider(self, provider: ModelProvider) -> AnalysisBuilder:
        self._provider = provider
        return self

    def with_config(self, config: PipelineConfig) -> AnalysisBuilder:
        config.validate()
        self._config = config
        return self

    def with_usage_sink(self, sink: UsageSink) -> AnalysisBuilder:
        self._usage_sink = sink
        return self

    def with_observer(self, observer: CallObserver) -> AnalysisBuilder:
        self._observer = observer
        return self

    def with_pricing(self, pricing: PricingTable) -> AnalysisBuilder:
        self._pricing = pricing
        return self

    def with_sleep(self, sleep: Callable[[float], Awaitable[Any]]) -> AnalysisBuilder:
        """Replace ``asyncio.sleep`` in backoff (tests pass a no-op)."""
        self._sleep = sleep
        return self

    @property
    def config(self) -> PipelineConfig:
        return self._config

    # -- assembly -------------------------------------------------------------

    def _resolve_provider(self) -> ModelProvider:
        if self._provider is None:
            from impact_analysis.infrastructure.llm.chat_models import LangChainProvider

            self._provider = LangChainProvider(timeout=self._config.retry.call_timeout)
        return self._provider

    def build(self, usage_sink: UsageSink | None = None) -> AnalysisOrchestrator:
        """Assemble invoker, caller, stages and graph.

        *usage_sink* overrides the one given to :meth:`with_usage_sink` for
        this orchestrator only.
        """
        cfg = self._config
        invoker = ModelInvoker(
            self._resolve_provider(),
            usage_sink=usage_sink if usage_sink is not None else self._usage_sink,
            pricing=self._pricing,
            observer=self._observer,
            call_timeout=cfg.retry.call_timeout,
        )
        caller_kwargs: dict[str, Any] = {}
        if self._sleep is not None:
            caller_kwargs["sleep"] = self._sleep
        caller = RetryingCaller(invoker, cfg.retry, observer=self._observer, **caller_kwargs)

        app = build_analysis_graph(
            StatementExtractor(caller, cfg.extract),
            DownstreamExpander(caller, cfg.expand),
            ImpactCategorizer(caller, cfg.categorize),
            CategoryEvaluator(
                caller,
                cfg.evaluate,
                research_models=cfg.research,
                clamp_scores=cfg.clamp_scores,
            ),
            FindingsSummarizer(caller, cfg.summarize, ratio=cfg.acceptance_ratio),
            observer=self._observer,
        )
        return AnalysisOrchestrator(app)

    def pipeline_factory(self) -> Callable[[UsageSink], AnalysisOrchestrator]:
        """Factory for :class:`AnalysisService`: one orchestrator per run ledger."""
        return lambda sink: self.build(usage_sink=sink)

    def build_service(
        self,
        balance_store: BalanceStore | None = None,
        usage_sink: UsageSink | None = None,
    ) -> AnalysisService:
        """Wrap the pipeline in the balance gate.

        *usage_sink* is the long-term sink records are persisted to at
        settlement; it defaults to the one given to :meth:`with_usage_sink`.
        """
        store = balance_store or InMemoryBalanceStore(self._config.cost.initial_credit)
        gate = CostGate(store, usage_sink if usage_sink is not None else self._usage_sink)
        return AnalysisService(
            gate,
            self.pipeline_factory(),
            estimated_cost=self._config.cost.estimated_cost,
        )

    def __repr__(self) -> str:
        return (
            f"AnalysisBuilder(provider={self._provider!r}, "
            f"extract={self._config.extract.primary_model!r})"
        )
