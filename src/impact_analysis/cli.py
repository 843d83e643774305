"""Command-line interface for impact-analysis.

Provides subcommands for analyzing a proposal, scoring a vote tally, listing
model prices and querying package information.  Subcommands import their
dependencies lazily so that ``impact-analysis info`` works even when a
provider integration is missing.

Entry point
-----------
The ``main()`` function is registered as a console script in
``pyproject.toml``::

    [project.scripts]
    impact-analysis = "impact_analysis.cli:main"

Usage examples::

    impact-analysis analyze "Replace the city's diesel buses with electric buses"
    impact-analysis analyze --file proposal.md --title "Electric buses" --json
    impact-analysis score 12 3
    impact-analysis pricing
    impact-analysis info
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

EXIT_ERROR = 1
EXIT_INSUFFICIENT_BALANCE = 2
EXIT_INTERRUPTED = 130


def _build_parser() -> argparse.ArgumentParser:
    """Build the top-level argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="impact-analysis",
        description=(
            "Sustainability impact analysis -- break a proposal into impact "
            "statements, expand, categorize, score and summarize them."
        ),
    )
    parser.add_argument(
        "--version",
        action="store_true",
        default=False,
        help="Show package version and exit.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Log debug output (retries, usage records, stage timings).",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available subcommands")

    # -- analyze -----------------------------------------------------------
    analyze_parser = subparsers.add_parser(
        "analyze",
        help="Analyze a proposal.",
        description="Run the full five-stage analysis on a proposal.",
    )
    analyze_parser.add_argument(
        "proposal",
        nargs="?",
        default=None,
        help="Proposal text.  Omit when using --file.",
    )
    analyze_parser.add_argument(
        "--title",
        type=str,
        default="",
        help="Optional proposal title.",
    )
    analyze_parser.add_argument(
        "--file",
        type=str,
        default=None,
        help="Read the proposal text from this file ('-' for stdin).",
    )
    analyze_parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Pipeline configuration file (.json, .yaml or .yml).",
    )
    analyze_parser.add_argument(
        "--user",
        type=str,
        default="cli-user",
        help="User id charged for the analysis. (default: cli-user)",
    )
    analyze_parser.add_argument(
        "--balance",
        type=float,
        default=None,
        help="Starting balance in USD.  Defaults to the configured initial credit.",
    )
    analyze_parser.add_argument(
        "--json",
        action="store_true",
        default=False,
        help="Print the result as JSON instead of tables.",
    )

    # -- score -------------------------------------------------------------
    score_parser = subparsers.add_parser(
        "score",
        help="Score a vote tally.",
        description="Compute the confidence-weighted impact score for U up and D down votes.",
    )
    score_parser.add_argument("upvotes", type=int, help="Number of up votes.")
    score_parser.add_argument("downvotes", type=int, help="Number of down votes.")
    score_parser.add_argument(
        "--json",
        action="store_true",
        default=False,
        help="Print the score as JSON.",
    )

    # -- pricing -----------------------------------------------------------
    pricing_parser = subparsers.add_parser(
        "pricing",
        help="List model prices.",
        description="Show the per-million-token prices used for cost accounting.",
    )
    pricing_parser.add_argument(
        "--json",
        action="store_true",
        default=False,
        help="Print prices as JSON.",
    )

    # -- info --------------------------------------------------------------
    subparsers.add_parser(
        "info",
        help="Show package version and provider integration status.",
        description="Display version, default stage models and installed integrations.",
    )

    return parser


# =========================================================================
# Subcommand handlers
# =========================================================================

def _read_proposal(args: argparse.Namespace) -> str:
    if args.file is not None:
        if args.file == "-":
            return sys.stdin.read()
        return Path(args.file).read_text(encoding="utf-8")
    if args.proposal:
        return args.proposal
    raise ValueError("a proposal is required (pass text or --file)")


def _cmd_analyze(args: argparse.Namespace, provider: Any = None) -> int:
    """Handle the ``analyze`` subcommand."""
    from impact_analysis.domain.values import Proposal
    from impact_analysis.graph.builder import AnalysisBuilder
    from impact_analysis.infrastructure.balance_store import InMemoryBalanceStore
    from impact_analysis.infrastructure.config import PipelineConfig, load_config
    from impact_analysis.infrastructure.serialization import (
        state_to_dict,
        usage_summary_to_dict,
    )
    from impact_analysis.presentation.console import AnalysisConsole
    from impact_analysis.services.observers import LoggingObserver

    config = load_config(args.config) if args.config else PipelineConfig()
    proposal = Proposal(text=_read_proposal(args), title=args.title)

    builder = AnalysisBuilder().with_config(config).with_observer(LoggingObserver())
    if provider is not None:
        builder.with_provider(provider)

    initial = config.cost.initial_credit if args.balance is None else args.balance
    store = InMemoryBalanceStore(initial_credit=initial)
    service = builder.build_service(balance_store=store)

    outcome = asyncio.run(service.analyze(args.user, proposal))

    if args.json:
        payload = {
            "analysis": state_to_dict(outcome.state),
            "usage": usage_summary_to_dict(outcome.usage),
            "charged": outcome.charged,
            "balance": outcome.balance,
        }
        print(json.dumps(payload, indent=2))
    else:
        console = AnalysisConsole()
        console.print_analysis(outcome.state, outcome.usage)
        console.console.print(
            f"Charged {outcome.charged:.6f} USD; remaining balance {outcome.balance:.6f} USD"
        )
    return 0


def _cmd_score(args: argparse.Namespace) -> int:
    """Handle the ``score`` subcommand."""
    from impact_analysis.services.scoring import impact_band, score

    impact = score(args.upvotes, args.downvotes)
    if args.json:
        band = impact_band(impact)
        print(
            json.dumps(
                {
                    "raw": impact.raw,
                    "normalized": impact.normalized,
                    "percentage": impact.percentage,
                    "confidence": impact.confidence,
                    "band": band.label,
                },
                indent=2,
            )
        )
        return 0

    from impact_analysis.presentation.console import AnalysisConsole

    AnalysisConsole().print_score(args.upvotes, args.downvotes, impact)
    return 0


def _cmd_pricing(args: argparse.Namespace) -> int:
    """Handle the ``pricing`` subcommand."""
    from impact_analysis.infrastructure.pricing import PricingTable

    pricing = PricingTable().all_pricing()
    if args.json:
        print(
            json.dumps(
                [
                    {
                        "model": p.model_name,
                        "provider": p.provider,
                        "input_price_per_million": p.input_price_per_million,
                        "output_price_per_million": p.output_price_per_million,
                    }
                    for p in pricing
                ],
                indent=2,
            )
        )
        return 0

    from impact_analysis.presentation.console import AnalysisConsole

    AnalysisConsole().print_pricing(pricing)
    return 0


def _cmd_info(args: argparse.Namespace) -> int:
    """Handle the ``info`` subcommand."""
    import importlib.util

    from impact_analysis import __version__
    from impact_analysis.infrastructure.config import PipelineConfig

    print(f"impact-analysis v{__version__}")
    print()

    integrations = {
        "langchain_anthropic": "Claude models (claude-*)",
        "langchain_openai": "OpenAI models (gpt-*)",
        "langchain_google_genai": "Google models (gemini-*)",
    }
    print("Provider integrations:")
    for module, desc in integrations.items():
        status = "installed" if importlib.util.find_spec(module) is not None else "missing"
        print(f"  [{status}] {module} -- {desc}")
    print()

    config = PipelineConfig()
    print("Default stage models:")
    for stage in ("extract", "expand", "categorize", "research", "evaluate", "summarize"):
        models = getattr(config, stage)
        print(
            f"  {stage}: {models.primary_model} -> {', '.join(models.fallback_models)} "
            f"(temperature {models.temperature:g})"
        )
    print()
    print(
        f"Retry: {config.retry.max_retries} attempts per model, "
        f"base delay {config.retry.base_delay:g}s"
    )
    print(
        f"Cost: {config.cost.estimated_cost:.2f} USD held per analysis, "
        f"{config.cost.initial_credit:.2f} USD initial credit"
    )
    return 0


# =========================================================================
# Main entry point
# =========================================================================

def main(argv: list[str] | None = None, *, provider: Any = None) -> None:
    """CLI entry point.

    Parameters
    ----------
    argv:
        Command-line arguments.  Defaults to ``sys.argv[1:]``.
    provider:
        Model provider used by ``analyze`` instead of the LangChain default.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Handle --version at top level
    if args.version:
        from impact_analysis import __version__
        print(f"impact-analysis {__version__}")
        sys.exit(0)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    handlers: dict[str, Any] = {
        "analyze": lambda a: _cmd_analyze(a, provider=provider),
        "score": _cmd_score,
        "pricing": _cmd_pricing,
        "info": _cmd_info,
    }

    handler = handlers.get(args.command)
    if handler is None:
        parser.print_help()
        sys.exit(EXIT_ERROR)

    from impact_analysis.domain.exceptions import InsufficientBalance

    try:
        exit_code = handler(args)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        exit_code = EXIT_INTERRUPTED
    except InsufficientBalance as exc:
        print(
            f"Error: insufficient balance for {exc.user_id}: "
            f"{exc.balance:.2f} available, {exc.required:.2f} required",
            file=sys.stderr,
        )
        exit_code = EXIT_INSUFFICIENT_BALANCE
    except Exception as exc:
        print(f"Error: {exc}", file=sys.stderr)
        exit_code = EXIT_ERROR

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
