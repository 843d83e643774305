"""Public testing utilities for impact-analysis.

Provides scripted model backends for writing self-contained examples and
tests without requiring API keys.
"""

from impact_analysis.testing.mock_llm import (
    STAGE_MARKERS,
    PipelineScript,
    RecordedCall,
    ScriptedChatModel,
    ScriptedProvider,
    stage_of,
)

__all__ = [
    "STAGE_MARKERS",
    "PipelineScript",
    "RecordedCall",
    "ScriptedChatModel",
    "ScriptedProvider",
    "stage_of",
]
