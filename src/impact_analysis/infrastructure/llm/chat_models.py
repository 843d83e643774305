"""LangChain chat models as pipeline providers.

``create_chat_model`` picks the LangChain integration for a model name by
prefix (``gpt`` -> OpenAI, ``claude`` -> Anthropic, ``gemini`` -> Google),
and ``LangChainProvider`` adapts any ``BaseChatModel`` to the
:class:`~impact_analysis.infrastructure.llm.ModelProvider` interface.

Provider credentials are read by each SDK from its usual environment
variable (``ANTHROPIC_API_KEY``, ``OPENAI_API_KEY``, ``GOOGLE_API_KEY``).

Example
-------
::

    from impact_analysis.infrastructure.llm.chat_models import LangChainProvider

    provider = LangChainProvider(timeout=30.0)
    response = await provider.send("claude-3-5-haiku-latest", "Hello", 0.0)
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage

from impact_analysis.domain.exceptions import FatalConfigError, ImpactAnalysisError
from impact_analysis.infrastructure.llm import (
    ModelProvider,
    ProviderResponse,
    classify_provider_error,
)
from impact_analysis.infrastructure.llm.models import provider_for

logger = logging.getLogger(__name__)

ChatModelFactory = Callable[[str, float, float], BaseChatModel]


def create_chat_model(
    model_name: str,
    temperature: float,
    timeout: float = 60.0,
) -> BaseChatModel:
    """Instantiate the LangChain chat model for *model_name*.

    Raises
    ------
    FatalConfigError
        If the model family is unknown, its integration package is not
        installed, or the client rejects its configuration (e.g. no API key).
    """
    family = provider_for(model_name)
    try:
        if family == "openai":
            from langchain_openai import ChatOpenAI

            return ChatOpenAI(model=model_name, temperature=temperature, timeout=timeout)
        if family == "anthropic":
            from langchain_anthropic import ChatAnthropic

            return ChatAnthropic(model=model_name, temperature=temperature, timeout=timeout)
        if family == "google":
            from langchain_google_genai import ChatGoogleGenerativeAI

            return ChatGoogleGenerativeAI(
                model=model_name, temperature=temperature, timeout=timeout
            )
    except ImportError as exc:
        raise FatalConfigError(
            f"The LangChain integration for '{model_name}' is not installed: {exc}",
            details={"model": model_name, "provider": family},
        ) from exc
    except ValueError as exc:
        raise FatalConfigError(
            f"Could not configure model '{model_name}': {exc}",
            details={"model": model_name, "provider": family},
        ) from exc

    raise FatalConfigError(
        f"Unsupported LLM model: {model_name}", details={"model": model_name}
    )


def _message_text(message: Any) -> str:
    """Flatten a chat message's content into plain text."""
    content = message.content if isinstance(message, BaseMessage) else message
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts: list[str] = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, Mapping) and block.get("type") == "text":
                parts.append(str(block.get("text", "")))
        return "".join(parts)
    return str(content)


def _token_counts(message: Any) -> tuple[int, int]:
    """Read (input, output) token counts from a chat message.

    Prefers the standard ``usage_metadata``; falls back to provider-specific
    keys in ``response_metadata``.
    """
    usage = getattr(message, "usage_metadata", None)
    if usage:
        return int(usage.get("input_tokens", 0)), int(usage.get("output_tokens", 0))

    metadata = getattr(message, "response_metadata", None) or {}
    raw = metadata.get("usage") or metadata.get("token_usage") or {}
    input_tokens = raw.get("input_tokens", raw.get("prompt_tokens", 0))
    output_tokens = raw.get("output_tokens", raw.get("completion_tokens", 0))
    return int(input_tokens or 0), int(output_tokens or 0)


class LangChainProvider(ModelProvider):
    """Sends prompts through LangChain chat models.

    Parameters
    ----------
    model_factory:
        ``(model_name, temperature, timeout) -> BaseChatModel``.  Defaults to
        :func:`create_chat_model`.
    timeout:
        Per-request timeout handed to the SDK client.
    """

    def __init__(
        self,
        model_factory: ChatModelFactory | None = None,
        timeout: float = 60.0,
    ) -> None:
        self._factory = model_factory or create_chat_model
        self._timeout = timeout
        self._models: dict[tuple[str, float], BaseChatModel] = {}

    @property
    def provider_name(self) -> str:
        return "langchain"

    def _get_model(self, model_name: str, temperature: float) -> BaseChatModel:
        key = (model_name, temperature)
        model = self._models.get(key)
        if model is None:
            model = self._factory(model_name, temperature, self._timeout)
            self._models[key] = model
        return model

    async def send(
        self,
        model_name: str,
        prompt: str,
        temperature: float,
    ) -> ProviderResponse:
        model = self._get_model(model_name, temperature)
        try:
            message = await model.ainvoke(prompt)
        except ImpactAnalysisError:
            raise
        except Exception as exc:
            raise classify_provider_error(exc) from exc

        input_tokens, output_tokens = _token_counts(message)
        metadata = getattr(message, "response_metadata", None) or {}
        resolved = metadata.get("model_name") or metadata.get("model") or model_name

        logger.debug(
            "LangChainProvider: %s -> %d in / %d out tokens",
            resolved,
            input_tokens,
            output_tokens,
        )
        return ProviderResponse(
            text=_message_text(message),
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            model=str(resolved),
        )
