"""Infrastructure layer for the impact analysis pipeline.

Re-exports the public API surface for convenience::

    from impact_analysis.infrastructure import (
        EventBus, EventLog,
        PipelineConfig, RetryConfig, StageModels, CostConfig, load_config,
        InMemoryBalanceStore, InMemoryUsageSink, JsonlUsageSink,
        PricingTable,
    )
"""

from impact_analysis.infrastructure.balance_store import (
    BalanceStore,
    InMemoryBalanceStore,
)
from impact_analysis.infrastructure.config import (
    CostConfig,
    PipelineConfig,
    RetryConfig,
    StageModels,
    load_config,
    load_config_from_json,
)
from impact_analysis.infrastructure.event_bus import EventBus, EventLog
from impact_analysis.infrastructure.llm import (
    ModelProvider,
    ProviderResponse,
    classify_provider_error,
)
from impact_analysis.infrastructure.pricing import (
    DEFAULT_PRICING,
    PricingTable,
    calculate_total_cost,
)
from impact_analysis.infrastructure.usage_sink import (
    InMemoryUsageSink,
    JsonlUsageSink,
    UsageSink,
)

__all__ = [
    # Balance
    "BalanceStore",
    "InMemoryBalanceStore",
    # Config
    "CostConfig",
    "PipelineConfig",
    "RetryConfig",
    "StageModels",
    "load_config",
    "load_config_from_json",
    # Events
    "EventBus",
    "EventLog",
    # LLM
    "ModelProvider",
    "ProviderResponse",
    "classify_provider_error",
    # Pricing
    "DEFAULT_PRICING",
    "PricingTable",
    "calculate_total_cost",
    # Usage
    "InMemoryUsageSink",
    "JsonlUsageSink",
    "UsageSink",
]
