"""Rich-based console rendering of analyses, scores and prices.

:class:`AnalysisConsole` prints a finished ``AnalysisState`` as a set of
tables (statements, categories with scores, recommendation, summary and
usage).  Colour is dropped automatically when the output is not a terminal.
"""

from __future__ import annotations

import sys
from collections.abc import Iterable, Mapping
from typing import Any

from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from impact_analysis.domain.values import (
    AnalysisUsageSummary,
    ImpactScore,
    ModelPricing,
    Recommendation,
)
from impact_analysis.services.scoring import impact_band


# Band colours are plain names; rich needs its own for two of them.
_BAND_STYLES = {"gray": "grey50", "orange": "orange1"}


def _band_style(color: str) -> str:
    return _BAND_STYLES.get(color, color)


def _score_style(value: float) -> str:
    if value > 0:
        return "green"
    if value < 0:
        return "red"
    return "dim"


class AnalysisConsole:
    """Console presentation layer for analysis results.

    Parameters
    ----------
    file:
        Output stream.  Defaults to ``sys.stdout``.
    width:
        Fixed console width; ``None`` lets rich detect it.
    """

    def __init__(self, file: Any = None, width: int | None = None) -> None:
        self._console = Console(file=file or sys.stdout, width=width)

    @property
    def console(self) -> Console:
        return self._console

    # -- analysis -------------------------------------------------------------

    def print_analysis(
        self,
        state: Mapping[str, Any],
        usage: AnalysisUsageSummary | None = None,
    ) -> None:
        """Print every section of a finished analysis."""
        self.print_statements(state.get("extracted_statements", []))
        self.print_categories(
            state.get("grouped_categories", {}),
            state.get("evaluated_scores", {}),
        )
        recommendation = state.get("recommendation")
        if isinstance(recommendation, Recommendation):
            self.print_recommendation(recommendation)
        summary = state.get("final_summary", "")
        if summary:
            self._console.print(Panel(Markdown(summary), title="Summary"))
        if usage is not None:
            self.print_usage(usage)

    def print_statements(self, statements: Iterable[str]) -> None:
        table = Table(title="Impact statements", show_lines=False)
        table.add_column("#", justify="right", style="dim")
        table.add_column("Statement")
        for i, statement in enumerate(statements, 1):
            table.add_row(str(i), escape(statement))
        self._console.print(table)

    def print_categories(
        self,
        categories: Mapping[str, Iterable[str]],
        scores: Mapping[str, float],
    ) -> None:
        table = Table(title="Categories")
        table.add_column("Category", style="bold")
        table.add_column("Impacts", justify="right")
        table.add_column("Score", justify="right")
        table.add_column("Band")
        names = list(categories) + [name for name in scores if name not in categories]
        for name in names:
            value = scores.get(name)
            if value is None:
                table.add_row(escape(name), str(len(list(categories.get(name, [])))), "-", "-")
                continue
            band = impact_band(value)
            table.add_row(
                escape(name),
                str(len(list(categories.get(name, [])))),
                f"[{_score_style(value)}]{value:+.2f}[/]",
                f"[{_band_style(band.color)}]{band.label}[/]",
            )
        self._console.print(table)

    def print_recommendation(self, recommendation: Recommendation) -> None:
        style = "bold green" if recommendation.acceptable else "bold red"
        body = (
            f"[{style}]{recommendation.verdict.upper()}[/]\n"
            f"positive total {recommendation.positive_total:.2f}, "
            f"negative total {recommendation.negative_total:.2f}, "
            f"required ratio {recommendation.ratio:g}:1, "
            f"margin {recommendation.margin:+.2f}"
        )
        self._console.print(Panel(body, title="Recommendation"))

    def print_usage(self, usage: AnalysisUsageSummary) -> None:
        table = Table(title=f"Usage ({usage.total_calls} calls, {usage.failed_calls} failed)")
        table.add_column("Model")
        table.add_column("Calls", justify="right")
        table.add_column("Input tokens", justify="right")
        table.add_column("Output tokens", justify="right")
        table.add_column("Cost (USD)", justify="right")
        for model in usage.model_usages:
            table.add_row(
                model.model_name,
                str(model.calls),
                str(model.input_tokens),
                str(model.output_tokens),
                f"{model.cost:.6f}",
            )
        table.add_row(
            "[bold]Total[/]",
            str(usage.total_calls),
            str(usage.total_input_tokens),
            str(usage.total_output_tokens),
            f"[bold]{usage.total_cost:.6f}[/]",
        )
        self._console.print(table)

    # -- scoring & pricing ----------------------------------------------------

    def print_score(self, upvotes: int, downvotes: int, impact: ImpactScore) -> None:
        band = impact_band(impact)
        table = Table(title=f"Score for {upvotes} up / {downvotes} down")
        table.add_column("Measure")
        table.add_column("Value", justify="right")
        table.add_row("raw", f"{impact.raw:.4f}")
        table.add_row("normalized", f"{impact.normalized:+.4f}")
        table.add_row("percentage", f"{impact.percentage:.1f}%")
        table.add_row("confidence", f"{impact.confidence:.2f}")
        table.add_row("band", f"[{_band_style(band.color)}]{band.label}[/]")
        self._console.print(table)

    def print_pricing(self, pricing: Iterable[ModelPricing]) -> None:
        table = Table(title="Model pricing (USD per million tokens)")
        table.add_column("Model")
        table.add_column("Provider")
        table.add_column("Input", justify="right")
        table.add_column("Output", justify="right")
        for entry in pricing:
            table.add_row(
                entry.model_name,
                entry.provider,
                f"{entry.input_price_per_million:.2f}",
                f"{entry.output_price_per_million:.2f}",
            )
        self._console.print(table)
