"""Model identifiers used by the default pipeline configuration."""

from __future__ import annotations


class LLMModels:
    """Known model names, grouped by provider."""

    GPT_3_5_TURBO = "gpt-3.5-turbo"
    GPT_4_TURBO = "gpt-4-turbo"
    GPT_4O_MINI = "gpt-4o-mini"
    GPT_4O = "gpt-4o"
    CLAUDE_3_HAIKU = "claude-3-5-haiku-latest"
    CLAUDE_3_SONNET = "claude-3-sonnet-20240229"
    CLAUDE_3_OPUS = "claude-3-opus-latest"
    CLAUDE_3_7_SONNET = "claude-3-7-sonnet-latest"
    CLAUDE_4_SONNET = "claude-sonnet-4-0"
    CLAUDE_4_OPUS = "claude-opus-4-0"
    GEMINI_PRO = "gemini-pro"


def provider_for(model_name: str) -> str:
    """Return the provider family for *model_name*, or ``""`` if unknown."""
    name = model_name.lower()
    if name.startswith("gpt"):
        return "openai"
    if name.startswith("claude"):
        return "anthropic"
    if name.startswith("gemini"):
        return "google"
    return ""
