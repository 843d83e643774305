"""End-to-end tests for the compiled analysis graph."""

from __future__ import annotations

import asyncio

import pytest

from impact_analysis.domain.events import StageCompleted
from impact_analysis.domain.exceptions import FatalConfigError, TransientProviderError
from impact_analysis.domain.values import Proposal
from impact_analysis.graph.graph import STAGE_ORDER
from impact_analysis.infrastructure.event_bus import EventBus, EventLog
from impact_analysis.infrastructure.usage_sink import InMemoryUsageSink
from impact_analysis.services.observers import EventBusObserver
from impact_analysis.services.summary import SUMMARY_ERROR
from impact_analysis.testing import PipelineScript, ScriptedProvider, stage_of


class TestRunAnalysis:

    def test_example_proposal(
        self, make_builder, example_script, example_proposal, example_statements
    ) -> None:
        provider = ScriptedProvider(example_script)
        orchestrator = make_builder(provider).build()

        state = orchestrator.run_analysis_sync(example_proposal, analysis_id="run-1")

        assert state["extracted_statements"] == example_statements
        assert sorted(state["downstream_impacts"]) == sorted(
            [
                "Lower tailpipe emissions",
                "Job losses for drivers",
                "Stranded rail assets",
                "Better access to services",
            ]
        )
        assert set(state["grouped_categories"]) == {"Environmental", "Labor & Social", "Economic"}
        assert state["evaluated_scores"] == {
            "Environmental": 0.8,
            "Labor & Social": -0.4,
            "Economic": -0.2,
        }
        assert state["research_findings"]["Economic"] == "Research on Economic."
        assert state["final_summary"] == "The proposal should not proceed as-is."
        assert not state["recommendation"].acceptable
        assert state["analysis_id"] == "run-1"
        assert isinstance(state["proposal"], Proposal)

    def test_stages_run_in_order(self, make_builder, example_script, example_proposal) -> None:
        provider = ScriptedProvider(example_script)
        state = make_builder(provider).build().run_analysis_sync(example_proposal)

        stages = [stage_of(call.prompt) for call in provider.calls]
        assert stages[0] == "extract"
        assert stages[1:4] == ["expand"] * 3
        assert stages[4] == "categorize"
        assert stages[5:11] == ["research", "evaluate"] * 3
        assert stages[11] == "summarize"

        events = [e for e in state["events"] if isinstance(e, StageCompleted)]
        assert [e.stage for e in events] == list(STAGE_ORDER)
        assert not any(e.degraded for e in events)

    def test_repeat_runs_are_identical(
        self, make_builder, example_script, example_proposal
    ) -> None:
        orchestrator = make_builder(ScriptedProvider(example_script)).build()
        first = orchestrator.run_analysis_sync(example_proposal, analysis_id="same")
        second = orchestrator.run_analysis_sync(example_proposal, analysis_id="same")
        for key in (
            "extracted_statements",
            "downstream_impacts",
            "grouped_categories",
            "evaluated_scores",
            "research_findings",
            "final_summary",
            "recommendation",
        ):
            assert first[key] == second[key]

    def test_reused_id_starts_from_fresh_state(
        self, make_builder, example_script, example_proposal
    ) -> None:
        orchestrator = make_builder(ScriptedProvider(example_script)).build()
        for _ in range(2):
            state = orchestrator.run_analysis_sync(example_proposal, analysis_id="same")
            events = [e for e in state["events"] if isinstance(e, StageCompleted)]
            assert [e.stage for e in events] == list(STAGE_ORDER)
        assert orchestrator.app.checkpointer is None

    def test_literal_transit_proposal(self, make_builder, example_script) -> None:
        provider = ScriptedProvider(example_script)
        state = make_builder(provider).build().run_analysis_sync(
            "Build a fleet of electric driverless vehicles for our city and replace "
            "trains to provide efficient transport for remote areas"
        )

        assert state["extracted_statements"] == [
            "Build a fleet of electric driverless vehicles",
            "Replace existing trains",
            "Provide efficient transport for remote areas",
        ]
        assert "Build a fleet of electric driverless vehicles for our city" in (
            provider.calls[0].prompt
        )

    def test_never_aborts_when_every_call_fails(self, make_builder) -> None:
        provider = ScriptedProvider.from_replies([FatalConfigError("bad key")] * 4)
        sink = InMemoryUsageSink()
        state = make_builder(provider).with_usage_sink(sink).build().run_analysis_sync(
            "Plant trees"
        )

        assert state["extracted_statements"] == []
        assert state["downstream_impacts"] == []
        assert state["grouped_categories"] == {}
        assert state["evaluated_scores"] == {}
        assert state["final_summary"] == SUMMARY_ERROR
        assert state["recommendation"].acceptable
        # Extract and summarize each try the primary and one fallback.
        assert len(provider.calls) == 4
        assert len(sink) == 4
        degraded = {e.stage for e in state["events"] if e.degraded}
        assert degraded == {"extract", "summarize"}

    def test_partial_failures_degrade_locally(self, make_builder, example_proposal) -> None:
        script = PipelineScript(
            statements=["a", "b"],
            impacts={"a": ["a1"], "b": TransientProviderError("503")},
            categories={"Environmental": ["a1"]},
            scores={"Environmental": 0.4},
        )
        state = make_builder(ScriptedProvider(script)).build().run_analysis_sync(example_proposal)

        assert state["downstream_impacts"] == ["a1"]
        assert state["evaluated_scores"] == {"Environmental": 0.4}
        assert state["recommendation"].acceptable
        expand = next(e for e in state["events"] if e.stage == "expand")
        assert expand.failed_items == 1

    def test_observer_receives_stage_events(
        self, make_builder, example_script, example_proposal
    ) -> None:
        bus = EventBus()
        log = EventLog()
        bus.subscribe(StageCompleted, log)
        builder = make_builder(ScriptedProvider(example_script)).with_observer(
            EventBusObserver(bus)
        )
        builder.build().run_analysis_sync(example_proposal, analysis_id="run-9")

        assert [e.stage for e in log.events] == list(STAGE_ORDER)
        assert all(e.analysis_id == "run-9" for e in log.events)

    def test_accepts_mapping_proposal(self, make_builder, example_script) -> None:
        provider = ScriptedProvider(example_script)
        state = asyncio.run(
            make_builder(provider)
            .build()
            .run_analysis({"title": "Transit", "text": "Electric vehicles"}, user_id="alice")
        )
        assert state["user_id"] == "alice"
        assert provider.calls[0].prompt.count("Transit\n\nElectric vehicles") == 1

    def test_empty_proposal_rejected(self, make_builder) -> None:
        orchestrator = make_builder(ScriptedProvider.from_replies([])).build()
        with pytest.raises(ValueError):
            orchestrator.run_analysis_sync("   ")
