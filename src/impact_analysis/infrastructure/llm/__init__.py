"""Model provider layer for the impact analysis pipeline.

This sub-package provides a **provider-agnostic** abstraction over the chat
model backends (Anthropic, OpenAI, Google) used by the pipeline stages.

Public API
----------
ModelProvider
    Abstract base class every concrete provider must implement.
ProviderResponse
    Text plus token counts returned by a single ``send``.
classify_provider_error
    Maps an SDK exception onto the pipeline's failure taxonomy.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from impact_analysis.domain.exceptions import (
    FatalConfigError,
    ImpactAnalysisError,
    TransientProviderError,
)

logger = logging.getLogger(__name__)


# =========================================================================== #
#  Data structures                                                             #
# =========================================================================== #

@dataclass(frozen=True)
class ProviderResponse:
    """Result of one provider call.

    Attributes
    ----------
    text:
        The generated text content.
    input_tokens:
        Prompt tokens billed by the provider.
    output_tokens:
        Completion tokens billed by the provider.
    model:
        The model that actually produced the response (may differ from the
        requested name when the provider resolves an alias).
    """

    text: str
    input_tokens: int = 0
    output_tokens: int = 0
    model: str = ""


# =========================================================================== #
#  Abstract provider                                                           #
# =========================================================================== #

class ModelProvider(ABC):
    """Abstract base class for model backends.

    Usage::

        provider = LangChainProvider()
        response = await provider.send("claude-3-5-haiku-latest", prompt, 0.0)
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Human-readable provider identifier (e.g. ``"langchain"``)."""
        ...

    @abstractmethod
    async def send(
        self,
        model_name: str,
        prompt: str,
        temperature: float,
    ) -> ProviderResponse:
        """Send a rendered prompt to *model_name*.

        Raises
        ------
        TransientProviderError
            Rate limits, timeouts, connection and server errors.
        FatalConfigError
            Bad credentials, unknown model, rejected request.
        """
        ...


# =========================================================================== #
#  Error classification                                                        #
# =========================================================================== #

_TRANSIENT_STATUS = frozenset({408, 409, 429})
_FATAL_STATUS = frozenset({400, 401, 403, 404, 422})
_FATAL_NAMES = ("Authentication", "PermissionDenied", "NotFound", "BadRequest")


def _status_code(exc: BaseException) -> int | None:
    status = getattr(exc, "status_code", None)
    if status is None:
        response = getattr(exc, "response", None)
        status = getattr(response, "status_code", None)
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def _retry_after(exc: BaseException) -> float | None:
    response = getattr(exc, "response", None)
    headers = getattr(response, "headers", None)
    if not headers:
        return None
    value = headers.get("retry-after")
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def classify_provider_error(exc: BaseException) -> ImpactAnalysisError:
    """Translate a provider/SDK exception into the pipeline's taxonomy.

    Domain errors pass through unchanged.  Timeouts, connection failures,
    rate limits and 5xx responses are transient; authentication, permission,
    unknown-model and malformed-request responses are fatal.  Anything else
    is treated as transient so the ladder still gets a chance to recover.
    """
    if isinstance(exc, ImpactAnalysisError):
        return exc

    name = type(exc).__name__
    message = f"{name}: {exc}" if str(exc) else name
    status = _status_code(exc)
    details: dict[str, Any] = {"error_type": name, "status_code": status}

    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, ConnectionError)) or (
        "Timeout" in name or "Connection" in name
    ):
        return TransientProviderError(message, details=details)

    if status == 429 or "RateLimit" in name or "rate limit" in str(exc).lower():
        return TransientProviderError(
            message,
            retry_after=_retry_after(exc),
            rate_limited=True,
            details=details,
        )

    if status in _FATAL_STATUS or any(part in name for part in _FATAL_NAMES):
        return FatalConfigError(message, details=details)

    if status is not None and status not in _TRANSIENT_STATUS and status < 500:
        logger.debug("classify_provider_error: unmapped status %d treated as transient", status)

    return TransientProviderError(message, details=details)


__all__ = [
    "ModelProvider",
    "ProviderResponse",
    "classify_provider_error",
]


# ---------------------------------------------------------------------------
# Lazy imports for concrete providers (avoids importing SDKs on package load)
# ---------------------------------------------------------------------------

def __getattr__(name: str):  # noqa: N807
    """Lazy-load concrete providers on attribute access."""
    _lazy_map = {
        "LangChainProvider": "impact_analysis.infrastructure.llm.chat_models",
        "create_chat_model": "impact_analysis.infrastructure.llm.chat_models",
        "LLMModels": "impact_analysis.infrastructure.llm.models",
    }

    if name in _lazy_map:
        import importlib
        module = importlib.import_module(_lazy_map[name])
        return getattr(module, name)

    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
