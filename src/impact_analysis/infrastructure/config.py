"""Configuration dataclasses for the impact analysis pipeline.

Each config is a plain ``dataclass`` with a ``validate()`` method that raises
``ValueError`` on invalid combinations.  Configs are **frozen** so a single
instance can be shared by every run without risking silent mutation.

Which model backs a stage is configuration, not behaviour: the only
contract is that each stage has at least one fallback to escalate to.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from impact_analysis.infrastructure.llm.models import LLMModels


def _filter_keys(cls: type, data: dict[str, Any]) -> dict[str, Any]:
    valid_keys = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in valid_keys}


# ===================================================================== #
#  Stage model ladder                                                    #
# ===================================================================== #

@dataclass(frozen=True)
class StageModels:
    """Primary model, fallback ladder and sampling temperature for one stage.

    Attributes
    ----------
    primary_model:
        Model tried first.
    fallback_models:
        Models tried in order once the primary exhausts its retry budget.
    temperature:
        Sampling temperature passed to every model in the ladder.
    """

    primary_model: str = LLMModels.CLAUDE_3_HAIKU
    fallback_models: tuple[str, ...] = (LLMModels.CLAUDE_3_7_SONNET,)
    temperature: float = 0.0

    def __post_init__(self) -> None:
        # JSON/YAML hand us lists; keep the field hashable.
        if not isinstance(self.fallback_models, tuple):
            object.__setattr__(self, "fallback_models", tuple(self.fallback_models or ()))

    @property
    def ladder(self) -> tuple[str, ...]:
        return (self.primary_model, *self.fallback_models)

    def validate(self) -> None:
        if not self.primary_model:
            raise ValueError("primary_model must not be empty")
        if not self.fallback_models:
            raise ValueError(
                f"at least one fallback model is required for '{self.primary_model}'"
            )
        if any(not m for m in self.fallback_models):
            raise ValueError("fallback model names must not be empty")
        if not (0.0 <= self.temperature <= 2.0):
            raise ValueError(
                f"temperature must be in [0, 2], got {self.temperature}"
            )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["fallback_models"] = list(self.fallback_models)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StageModels:
        cfg = cls(**_filter_keys(cls, data))
        cfg.validate()
        return cfg


# ===================================================================== #
#  Retry Configuration                                                   #
# ===================================================================== #

@dataclass(frozen=True)
class RetryConfig:
    """Retry budget and backoff shared by every stage.

    Attributes
    ----------
    max_retries:
        Attempts per model, including the first.
    base_delay:
        Base backoff in seconds; doubled after each failed attempt.
    max_delay:
        Upper bound on a single backoff.
    rate_limit_delay:
        Minimum wait after a rate-limit error without a ``retry_after`` hint.
    call_timeout:
        Seconds before a single provider call counts as a transient failure.
    jitter:
        If ``True``, each delay is scaled by a random factor in [0.5, 1.0].
    """

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    rate_limit_delay: float = 5.0
    call_timeout: float = 60.0
    jitter: bool = True

    def validate(self) -> None:
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be >= 1, got {self.max_retries}")
        if self.base_delay < 0.0:
            raise ValueError(f"base_delay must be >= 0, got {self.base_delay}")
        if self.max_delay < self.base_delay:
            raise ValueError(
                f"max_delay ({self.max_delay}) must be >= base_delay ({self.base_delay})"
            )
        if self.rate_limit_delay < 0.0:
            raise ValueError(
                f"rate_limit_delay must be >= 0, got {self.rate_limit_delay}"
            )
        if self.call_timeout <= 0.0:
            raise ValueError(f"call_timeout must be > 0, got {self.call_timeout}")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RetryConfig:
        cfg = cls(**_filter_keys(cls, data))
        cfg.validate()
        return cfg


# ===================================================================== #
#  Cost Configuration                                                    #
# ===================================================================== #

@dataclass(frozen=True)
class CostConfig:
    """Balance gate parameters.

    Attributes
    ----------
    estimated_cost:
        Amount (USD) held before a run starts; refunded down to the real cost.
    initial_credit:
        Balance granted to a user the first time the store sees them.
    """

    estimated_cost: float = 1.0
    initial_credit: float = 10.0

    def validate(self) -> None:
        if self.estimated_cost < 0.0:
            raise ValueError(
                f"estimated_cost must be >= 0, got {self.estimated_cost}"
            )
        if self.initial_credit < 0.0:
            raise ValueError(
                f"initial_credit must be >= 0, got {self.initial_credit}"
            )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CostConfig:
        cfg = cls(**_filter_keys(cls, data))
        cfg.validate()
        return cfg


# ===================================================================== #
#  Pipeline Configuration                                                #
# ===================================================================== #

_STAGE_FIELDS = ("extract", "expand", "categorize", "research", "evaluate", "summarize")


@dataclass(frozen=True)
class PipelineConfig:
    """Everything needed to assemble an analysis pipeline.

    The research step defaults to a stronger model with a two-step ladder;
    expansion samples at a higher temperature to widen the consequences it
    explores.  All other stages run deterministically at temperature 0.
    """

    extract: StageModels = field(default_factory=StageModels)
    expand: StageModels = field(default_factory=lambda: StageModels(temperature=0.7))
    categorize: StageModels = field(default_factory=StageModels)
    research: StageModels = field(
        default_factory=lambda: StageModels(
            primary_model=LLMModels.CLAUDE_4_SONNET,
            fallback_models=(LLMModels.CLAUDE_3_7_SONNET, LLMModels.CLAUDE_3_HAIKU),
        )
    )
    evaluate: StageModels = field(default_factory=StageModels)
    summarize: StageModels = field(default_factory=StageModels)
    retry: RetryConfig = field(default_factory=RetryConfig)
    cost: CostConfig = field(default_factory=CostConfig)
    clamp_scores: bool = True
    acceptance_ratio: float = 10.0

    def validate(self) -> None:
        for name in _STAGE_FIELDS:
            getattr(self, name).validate()
        self.retry.validate()
        self.cost.validate()
        if self.acceptance_ratio <= 0.0:
            raise ValueError(
                f"acceptance_ratio must be > 0, got {self.acceptance_ratio}"
            )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {name: getattr(self, name).to_dict() for name in _STAGE_FIELDS}
        data["retry"] = self.retry.to_dict()
        data["cost"] = self.cost.to_dict()
        data["clamp_scores"] = self.clamp_scores
        data["acceptance_ratio"] = self.acceptance_ratio
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PipelineConfig:
        kwargs: dict[str, Any] = {}
        for name in _STAGE_FIELDS:
            section = data.get(name)
            if isinstance(section, dict):
                kwargs[name] = StageModels.from_dict(section)
        if isinstance(data.get("retry"), dict):
            kwargs["retry"] = RetryConfig.from_dict(data["retry"])
        if isinstance(data.get("cost"), dict):
            kwargs["cost"] = CostConfig.from_dict(data["cost"])
        if "clamp_scores" in data:
            kwargs["clamp_scores"] = bool(data["clamp_scores"])
        if "acceptance_ratio" in data:
            kwargs["acceptance_ratio"] = float(data["acceptance_ratio"])
        cfg = cls(**kwargs)
        cfg.validate()
        return cfg


# ===================================================================== #
#  Loaders                                                               #
# ===================================================================== #

def load_config_from_json(json_str: str) -> PipelineConfig:
    """Parse a JSON document into a validated ``PipelineConfig``."""
    raw = json.loads(json_str)
    if not isinstance(raw, dict):
        raise ValueError("Top-level JSON must be an object")
    return PipelineConfig.from_dict(raw)


def load_config(path: str | Path) -> PipelineConfig:
    """Load a ``PipelineConfig`` from a ``.json``, ``.yaml`` or ``.yml`` file."""
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in (".yaml", ".yml"):
        raw = yaml.safe_load(text) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"{path}: top-level YAML must be a mapping")
        return PipelineConfig.from_dict(raw)
    return load_config_from_json(text)
