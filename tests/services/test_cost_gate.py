"""Tests for the balance gate and the analysis service around it."""

from __future__ import annotations

import asyncio

import pytest

from impact_analysis.domain.exceptions import InsufficientBalance
from impact_analysis.domain.values import UsageRecord
from impact_analysis.infrastructure.balance_store import InMemoryBalanceStore
from impact_analysis.infrastructure.usage_sink import InMemoryUsageSink
from impact_analysis.services.analysis_service import AnalysisService
from impact_analysis.services.cost_gate import CostGate
from impact_analysis.testing import ScriptedProvider, stage_of


class _StallingProvider(ScriptedProvider):
    """Answers from the script until the expand stage, which never returns."""

    def __init__(self, responder, reached: asyncio.Event) -> None:
        super().__init__(responder)
        self._reached = reached

    async def send(self, model_name, prompt, temperature):
        if stage_of(prompt) == "expand":
            self._reached.set()
            await asyncio.Event().wait()
        return await super().send(model_name, prompt, temperature)


class TestCostGate:

    def test_reserve_holds_estimate(self) -> None:
        store = InMemoryBalanceStore(initial_credit=10.0)
        gate = CostGate(store)
        reservation = gate.reserve("alice", 1.0)
        assert reservation.amount == 1.0
        assert store.get_balance("alice") == pytest.approx(9.0)

    def test_reserve_refused_when_short(self) -> None:
        store = InMemoryBalanceStore(initial_credit=0.5)
        gate = CostGate(store)
        assert not gate.has_sufficient_balance("alice", 1.0)
        with pytest.raises(InsufficientBalance) as exc_info:
            gate.reserve("alice", 1.0)
        assert exc_info.value.required == 1.0
        assert store.get_balance("alice") == pytest.approx(0.5)

    def test_settle_refunds_unused_hold(self) -> None:
        store = InMemoryBalanceStore(initial_credit=10.0)
        sink = InMemoryUsageSink()
        gate = CostGate(store, sink)
        reservation = gate.reserve("alice", 1.0)
        records = [UsageRecord(model="m", cost=0.2), UsageRecord(model="m", cost=0.05)]

        balance = gate.settle(reservation, records)

        assert balance == pytest.approx(9.75)
        assert store.get_balance("alice") == pytest.approx(9.75)
        assert sink.records == tuple(records)
        kinds = [t.transaction_type for t in store.transactions("alice")]
        assert kinds == ["debit", "credit"]
        assert {t.reference_id for t in store.transactions("alice")} == {
            reservation.reference_id
        }

    def test_settle_debits_overrun_unconditionally(self) -> None:
        store = InMemoryBalanceStore(initial_credit=1.0)
        gate = CostGate(store)
        reservation = gate.reserve("alice", 1.0)

        balance = gate.settle(reservation, [UsageRecord(model="m", cost=1.5)])

        assert balance == pytest.approx(-0.5)

    def test_settle_exact_estimate(self) -> None:
        store = InMemoryBalanceStore(initial_credit=10.0)
        gate = CostGate(store)
        reservation = gate.reserve("alice", 0.5)
        assert gate.settle(reservation, [UsageRecord(model="m", cost=0.5)]) == pytest.approx(9.5)
        assert len(store.transactions("alice")) == 1


class TestAnalysisService:

    def test_charges_actual_cost(self, make_builder, example_script, example_proposal) -> None:
        provider = ScriptedProvider(example_script)
        store = InMemoryBalanceStore(initial_credit=10.0)
        sink = InMemoryUsageSink()
        service = make_builder(provider).build_service(balance_store=store, usage_sink=sink)

        outcome = asyncio.run(service.analyze("alice", example_proposal, analysis_id="run-1"))

        # extract + 3 expand + categorize + 3 x (research + evaluate) + summarize
        assert outcome.usage.total_calls == 12
        assert len(provider.calls) == 12
        assert outcome.charged == pytest.approx(outcome.usage.total_cost)
        assert outcome.charged > 0
        assert outcome.balance == pytest.approx(10.0 - outcome.charged)
        assert len(sink) == 12
        assert all(r.user_id == "alice" and r.analysis_id == "run-1" for r in sink.records)
        assert outcome.state["analysis_id"] == "run-1"

    def test_insufficient_balance_makes_no_calls(
        self, make_builder, example_script, example_proposal
    ) -> None:
        provider = ScriptedProvider(example_script)
        store = InMemoryBalanceStore(initial_credit=0.0)
        sink = InMemoryUsageSink()
        service = make_builder(provider).build_service(balance_store=store, usage_sink=sink)

        with pytest.raises(InsufficientBalance):
            asyncio.run(service.analyze("alice", example_proposal))

        assert provider.calls == []
        assert len(sink) == 0
        assert store.get_balance("alice") == 0.0

    def test_runs_do_not_share_ledgers(
        self, make_builder, example_script, example_proposal
    ) -> None:
        provider = ScriptedProvider(example_script)
        service = make_builder(provider).build_service()

        async def both():
            return await asyncio.gather(
                service.analyze("alice", example_proposal, analysis_id="a"),
                service.analyze("bob", example_proposal, analysis_id="b"),
            )

        first, second = asyncio.run(both())
        assert first.usage.total_calls == 12
        assert second.usage.total_calls == 12
        assert first.usage.analysis_id == "a"
        assert second.usage.analysis_id == "b"

    def test_settles_when_pipeline_raises(self) -> None:
        store = InMemoryBalanceStore(initial_credit=10.0)
        gate = CostGate(store)
        seen = []

        class Boom:
            async def run_analysis(self, proposal, *, analysis_id=None, user_id=""):
                raise RuntimeError("graph crashed")

        def factory(ledger):
            seen.append(ledger)
            ledger.record(UsageRecord(model="m", cost=0.3))
            return Boom()

        service = AnalysisService(gate, factory, estimated_cost=1.0)
        with pytest.raises(RuntimeError, match="graph crashed"):
            asyncio.run(service.analyze("alice", "Plant trees"))

        assert len(seen) == 1
        assert store.get_balance("alice") == pytest.approx(9.7)

    def test_settles_when_cancelled_mid_run(
        self, make_builder, example_script, example_proposal
    ) -> None:
        store = InMemoryBalanceStore(initial_credit=10.0)
        sink = InMemoryUsageSink()

        async def cancel_during_expand():
            reached = asyncio.Event()
            provider = _StallingProvider(example_script, reached)
            service = make_builder(provider).build_service(balance_store=store, usage_sink=sink)
            task = asyncio.create_task(
                service.analyze("alice", example_proposal, analysis_id="run-c")
            )
            await reached.wait()
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(cancel_during_expand())

        # Only the extract call completed before the cancellation.
        assert len(sink) == 1
        assert sink.records[0].analysis_id == "run-c"
        assert sink.records[0].cost > 0
        assert store.get_balance("alice") == pytest.approx(10.0 - sink.records[0].cost)
