"""JSON-friendly conversion of pipeline values.

Used by the JSONL usage sink and by the CLI's ``--json`` output.  All
``*_to_dict`` helpers return plain ``dict``/``list``/scalar structures that
``json.dumps`` accepts without a custom encoder.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, is_dataclass
from typing import Any

from impact_analysis.domain.values import (
    AnalysisUsageSummary,
    Proposal,
    Recommendation,
    UsageRecord,
)


def _safe_dataclass_dict(obj: Any) -> dict[str, Any]:
    if is_dataclass(obj) and not isinstance(obj, type):
        return asdict(obj)
    raise TypeError(f"{obj!r} is not a dataclass instance")


# =========================================================================== #
#  Value objects                                                               #
# =========================================================================== #

def usage_record_to_dict(record: UsageRecord) -> dict[str, Any]:
    return _safe_dataclass_dict(record)


def usage_record_from_dict(data: Mapping[str, Any]) -> UsageRecord:
    kwargs: dict[str, Any] = {
        "model": str(data["model"]),
        "input_tokens": int(data.get("input_tokens", 0)),
        "output_tokens": int(data.get("output_tokens", 0)),
        "cost": float(data.get("cost", 0.0)),
        "success": bool(data.get("success", True)),
        "error_message": data.get("error_message"),
        "user_id": str(data.get("user_id", "")),
        "analysis_id": str(data.get("analysis_id", "")),
    }
    if "timestamp" in data:
        kwargs["timestamp"] = float(data["timestamp"])
    if "record_id" in data:
        kwargs["record_id"] = str(data["record_id"])
    return UsageRecord(**kwargs)


def recommendation_to_dict(rec: Recommendation) -> dict[str, Any]:
    return {
        "acceptable": rec.acceptable,
        "positive_total": rec.positive_total,
        "negative_total": rec.negative_total,
        "ratio": rec.ratio,
        "margin": rec.margin,
    }


def usage_summary_to_dict(summary: AnalysisUsageSummary) -> dict[str, Any]:
    data = _safe_dataclass_dict(summary)
    data["model_usages"] = [dict(m) for m in data["model_usages"]]
    return data


def proposal_to_dict(proposal: Proposal) -> dict[str, Any]:
    return {"title": proposal.title, "text": proposal.text}


# =========================================================================== #
#  Analysis state                                                              #
# =========================================================================== #

def state_to_dict(state: Mapping[str, Any]) -> dict[str, Any]:
    """Convert a finished ``AnalysisState`` into plain JSON types.

    Stage events are omitted; they are diagnostics, not analysis output.
    """
    proposal = state.get("proposal")
    recommendation = state.get("recommendation")
    return {
        "analysis_id": state.get("analysis_id", ""),
        "user_id": state.get("user_id", ""),
        "proposal": proposal_to_dict(proposal) if isinstance(proposal, Proposal) else proposal,
        "extracted_statements": list(state.get("extracted_statements", [])),
        "downstream_impacts": list(state.get("downstream_impacts", [])),
        "grouped_categories": {
            name: list(impacts)
            for name, impacts in state.get("grouped_categories", {}).items()
        },
        "research_findings": dict(state.get("research_findings", {})),
        "evaluated_scores": dict(state.get("evaluated_scores", {})),
        "final_summary": state.get("final_summary", ""),
        "recommendation": (
            recommendation_to_dict(recommendation)
            if isinstance(recommendation, Recommendation)
            else None
        ),
    }
