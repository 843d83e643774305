"""Single model call: render, send, validate, account.

``ModelInvoker.invoke`` renders a prompt template, sends it to one named
model and returns either the raw text or a value validated against a
pydantic output schema.  Every invocation -- successful or not -- emits
exactly one :class:`UsageRecord` to the usage sink, so the cost ledger is
never missing a call.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from langchain_core.exceptions import OutputParserException
from langchain_core.output_parsers import PydanticOutputParser
from langchain_core.prompts import PromptTemplate
from pydantic import BaseModel, ValidationError

from impact_analysis.domain.exceptions import (
    FatalConfigError,
    ImpactAnalysisError,
    SchemaViolation,
    TransientProviderError,
)
from impact_analysis.domain.values import UsageRecord
from impact_analysis.infrastructure.llm import (
    ModelProvider,
    ProviderResponse,
    classify_provider_error,
)
from impact_analysis.infrastructure.pricing import PricingTable
from impact_analysis.infrastructure.usage_sink import UsageSink
from impact_analysis.services.observers import CallObserver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InvocationResult:
    """Outcome of a successful invocation.

    ``value`` is the parsed schema instance when an output schema was given,
    otherwise the raw reply text.
    """

    value: Any
    text: str
    model: str
    usage: UsageRecord


@lru_cache(maxsize=64)
def _compile(template: str) -> PromptTemplate:
    return PromptTemplate.from_template(template)


def render_prompt(template: str, variables: Mapping[str, Any]) -> str:
    """Substitute ``{name}`` placeholders in *template* from *variables*.

    Variables the template does not use are ignored.

    Raises
    ------
    FatalConfigError
        If the template is malformed or references a missing variable.
    """
    try:
        prompt = _compile(template)
    except ValueError as exc:
        raise FatalConfigError(f"Malformed prompt template: {exc}") from exc

    missing = [name for name in prompt.input_variables if name not in variables]
    if missing:
        raise FatalConfigError(
            f"Prompt template is missing variables: {', '.join(sorted(missing))}",
            details={"missing": missing},
        )
    return prompt.format(**{name: variables[name] for name in prompt.input_variables})


class ModelInvoker:
    """Sends one rendered prompt to one model and accounts for it.

    Parameters
    ----------
    provider:
        Backend that actually talks to the model.
    usage_sink:
        Receives one ``UsageRecord`` per invocation.  Optional.
    pricing:
        Rates used to cost each call.  Defaults to the built-in table.
    observer:
        Side-channel notified of every usage record.
    call_timeout:
        Seconds before the provider call is abandoned as a transient failure.
    """

    def __init__(
        self,
        provider: ModelProvider,
        usage_sink: UsageSink | None = None,
        pricing: PricingTable | None = None,
        observer: CallObserver | None = None,
        call_timeout: float = 60.0,
    ) -> None:
        self._provider = provider
        self._usage_sink = usage_sink
        self._pricing = pricing or PricingTable()
        self._observer = observer or CallObserver()
        self._call_timeout = call_timeout

    @property
    def provider(self) -> ModelProvider:
        return self._provider

    async def invoke(
        self,
        prompt_template: str,
        variables: Mapping[str, Any],
        output_schema: type[BaseModel] | None = None,
        model_name: str = "",
        temperature: float = 0.0,
    ) -> InvocationResult:
        """Render, send and (optionally) validate a single model call.

        Raises
        ------
        TransientProviderError
            Provider rate limit, timeout or server error.
        SchemaViolation
            The reply could not be parsed into ``output_schema``.
        FatalConfigError
            Bad template, credentials or model name.
        """
        parser = (
            PydanticOutputParser(pydantic_object=output_schema)
            if output_schema is not None
            else None
        )
        render_vars = dict(variables)
        if parser is not None:
            render_vars.setdefault("format_instructions", parser.get_format_instructions())

        try:
            prompt = render_prompt(prompt_template, render_vars)
        except FatalConfigError as exc:
            self._emit(model_name, error=exc)
            raise

        try:
            response = await asyncio.wait_for(
                self._provider.send(model_name, prompt, temperature),
                timeout=self._call_timeout,
            )
        except asyncio.TimeoutError as exc:
            error = TransientProviderError(
                f"LLM call to {model_name} timed out after {self._call_timeout}s",
                details={"model": model_name},
            )
            self._emit(model_name, error=error)
            raise error from exc
        except ImpactAnalysisError as exc:
            self._emit(model_name, error=exc)
            raise
        except Exception as exc:
            error = classify_provider_error(exc)
            self._emit(model_name, error=error)
            raise error from exc

        if parser is None:
            record = self._emit(model_name, response=response)
            return InvocationResult(
                value=response.text, text=response.text, model=model_name, usage=record
            )

        try:
            value = parser.parse(response.text)
        except (OutputParserException, ValidationError) as exc:
            error = SchemaViolation(
                f"{model_name} reply does not match {output_schema.__name__}: {exc}",
                raw_text=response.text,
                details={"model": model_name, "schema": output_schema.__name__},
            )
            self._emit(model_name, response=response, error=error)
            raise error from exc

        record = self._emit(model_name, response=response)
        return InvocationResult(value=value, text=response.text, model=model_name, usage=record)

    def _emit(
        self,
        model_name: str,
        response: ProviderResponse | None = None,
        error: BaseException | None = None,
    ) -> UsageRecord:
        input_tokens = response.input_tokens if response is not None else 0
        output_tokens = response.output_tokens if response is not None else 0
        cost = (
            self._pricing.calculate_cost(input_tokens, output_tokens, model_name).cost
            if response is not None
            else 0.0
        )
        record = UsageRecord(
            model=model_name,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cost=cost,
            success=error is None,
            error_message=f"{type(error).__name__}: {error}" if error is not None else None,
        )
        if self._usage_sink is not None:
            self._usage_sink.record(record)
        self._observer.on_usage(record)
        return record
