"""Tests for the command-line interface and console rendering."""

from __future__ import annotations

import io
import json

import pytest

from impact_analysis import __version__
from impact_analysis.cli import main
from impact_analysis.domain.values import Recommendation
from impact_analysis.presentation.console import AnalysisConsole
from impact_analysis.services.scoring import score
from impact_analysis.services.usage import summarize_usage
from impact_analysis.testing import ScriptedProvider


def _run(argv, **kwargs) -> int:
    with pytest.raises(SystemExit) as exc_info:
        main(argv, **kwargs)
    return exc_info.value.code


class TestCli:

    def test_version(self, capsys) -> None:
        assert _run(["--version"]) == 0
        assert __version__ in capsys.readouterr().out

    def test_no_command_prints_help(self, capsys) -> None:
        assert _run([]) == 0
        assert "analyze" in capsys.readouterr().out

    def test_score_json(self, capsys) -> None:
        assert _run(["score", "9", "1", "--json"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["raw"] == pytest.approx(0.8636, abs=1e-4)
        assert data["confidence"] == 1.0
        assert data["band"] == "High Positive Impact"

    def test_score_table(self, capsys) -> None:
        assert _run(["score", "0", "0"]) == 0
        assert "Neutral Impact" in capsys.readouterr().out

    def test_pricing_json(self, capsys) -> None:
        assert _run(["pricing", "--json"]) == 0
        models = {p["model"] for p in json.loads(capsys.readouterr().out)}
        assert "claude-3-5-haiku-latest" in models

    def test_info(self, capsys) -> None:
        assert _run(["info"]) == 0
        out = capsys.readouterr().out
        assert f"v{__version__}" in out
        assert "research: claude-sonnet-4-0" in out

    def test_analyze_json(self, capsys, example_script, example_proposal, example_statements) -> None:
        provider = ScriptedProvider(example_script)
        code = _run(["analyze", example_proposal, "--json", "--user", "alice"], provider=provider)

        assert code == 0
        data = json.loads(capsys.readouterr().out)
        assert data["analysis"]["extracted_statements"] == example_statements
        assert data["analysis"]["user_id"] == "alice"
        assert data["analysis"]["recommendation"]["acceptable"] is False
        assert data["usage"]["total_calls"] == 12
        assert data["balance"] == pytest.approx(10.0 - data["charged"])

    def test_analyze_from_file(self, capsys, tmp_path, example_script, example_proposal) -> None:
        path = tmp_path / "proposal.md"
        path.write_text(example_proposal, encoding="utf-8")
        provider = ScriptedProvider(example_script)

        code = _run(["analyze", "--file", str(path), "--title", "Transit"], provider=provider)

        assert code == 0
        assert "Transit" in provider.calls[0].prompt
        out = capsys.readouterr().out
        assert "Recommendation" in out
        assert "Charged" in out

    def test_analyze_insufficient_balance(self, capsys, example_script) -> None:
        provider = ScriptedProvider(example_script)
        code = _run(["analyze", "Plant trees", "--balance", "0"], provider=provider)
        assert code == 2
        assert "insufficient balance" in capsys.readouterr().err
        assert provider.calls == []

    def test_analyze_requires_proposal(self, capsys) -> None:
        assert _run(["analyze"], provider=ScriptedProvider.from_replies([])) == 1
        assert "proposal is required" in capsys.readouterr().err

    def test_analyze_bad_config(self, capsys, tmp_path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("retry:\n  max_retries: 0\n", encoding="utf-8")
        code = _run(["analyze", "x", "--config", str(path)], provider=ScriptedProvider.from_replies([]))
        assert code == 1
        assert "max_retries" in capsys.readouterr().err


class TestAnalysisConsole:

    def test_renders_every_band(self) -> None:
        out = io.StringIO()
        console = AnalysisConsole(file=out, width=120)
        console.print_categories(
            {"A": ["x"], "B": ["y"], "C": [], "D": [], "E": []},
            {"A": 0.9, "B": 0.4, "C": 0.0, "D": -0.5, "E": -0.9},
        )
        text = out.getvalue()
        for label in ("High Positive", "Moderate Positive", "Neutral", "Moderate Negative", "High Negative"):
            assert label in text

    def test_escapes_markup_in_model_output(self) -> None:
        out = io.StringIO()
        AnalysisConsole(file=out, width=120).print_statements(["Use [bold] tags"])
        assert "[bold]" in out.getvalue()

    def test_recommendation_and_usage(self) -> None:
        out = io.StringIO()
        console = AnalysisConsole(file=out, width=120)
        console.print_recommendation(Recommendation(False, 0.8, 0.6))
        console.print_usage(summarize_usage("run-1", []))
        console.print_score(2, 0, score(2, 0))
        text = out.getvalue()
        assert "DO NOT PROCEED AS-IS" in text
        assert "Total" in text
