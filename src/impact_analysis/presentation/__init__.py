"""Presentation layer: console rendering of analysis results."""

from impact_analysis.presentation.console import AnalysisConsole

__all__ = ["AnalysisConsole"]
