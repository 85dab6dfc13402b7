"""Component tests for the orchestration layer.

Covers CalculatorExecutor and MetricsRuntime. No API keys, no network — the
runtime runs against an in-memory provider and a fresh MetricsStore per test.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from core.executor import CalculatorCall, CalculatorExecutor
from core.runtime import MetricsRuntime
from core.store import (
    CHANGE_FAILURE_RATE,
    DEPLOYMENT_FREQUENCY,
    LEAD_TIME_FOR_CHANGES,
    MetricsStore,
)
from integrations.base import DeliveryHistoryProvider, ProviderError
from schemas.history import IncidentRecord, PipelineRun, RunOutcome
from schemas.result import MetricSnapshot

NOW = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)


# ── Shared helpers ────────────────────────────────────────────────────────────

class StubProvider(DeliveryHistoryProvider):
    def __init__(self, runs_by_branch=None, incidents=None):
        self.runs_by_branch = runs_by_branch or {}
        self.incidents = incidents or []

    async def list_runs(self, repository, branch, status=None):
        await asyncio.sleep(0)
        runs = self.runs_by_branch.get(branch, [])
        if status == "success":
            return [r for r in runs if r.outcome is RunOutcome.SUCCESS]
        return list(runs)

    async def list_incidents(self, repository, since):
        await asyncio.sleep(0)
        return list(self.incidents)


class FailingProvider(DeliveryHistoryProvider):
    """Raises on every call — ProviderError or anything else."""

    def __init__(self, error: Exception):
        self.error = error

    async def list_runs(self, repository, branch, status=None):
        raise self.error

    async def list_incidents(self, repository, since):
        raise self.error


class IncidentsOnlyFailProvider(StubProvider):
    async def list_incidents(self, repository, since):
        raise RuntimeError("unexpected shape")


def make_runs(branch="main", successes=7, failures=3, minutes=10.0):
    runs = []
    for i in range(successes + failures):
        created = NOW - timedelta(days=i + 1)
        runs.append(PipelineRun(
            created_at=created,
            completed_at=created + timedelta(minutes=minutes),
            outcome=RunOutcome.SUCCESS if i < successes else RunOutcome.FAILURE,
            branch=branch,
        ))
    return runs


def make_incident(hours=4.0, body="main went down"):
    created = NOW - timedelta(days=3)
    return IncidentRecord(
        created_at=created,
        closed_at=created + timedelta(hours=hours),
        body=body,
        labels=frozenset({"incident"}),
    )


# ── CalculatorExecutor ────────────────────────────────────────────────────────

async def _value(v):
    return v


async def _crash():
    raise RuntimeError("calculator bug")


async def _hang():
    await asyncio.sleep(999)


class TestCalculatorExecutor:
    async def test_successful_calls_return_results(self):
        executor = CalculatorExecutor()
        results = await executor.execute([
            CalculatorCall(name="a", run=lambda: _value(1.5), default=0.0),
            CalculatorCall(name="b", run=lambda: _value(2.5), default=0.0),
        ])
        assert results == {"a": 1.5, "b": 2.5}

    async def test_crashing_call_gets_default(self):
        executor = CalculatorExecutor()
        results = await executor.execute([
            CalculatorCall(name="ok", run=lambda: _value(1.0), default=0.0),
            CalculatorCall(name="bad", run=_crash, default=-1.0),
        ])
        assert results == {"ok": 1.0, "bad": -1.0}

    async def test_timed_out_call_gets_default(self):
        executor = CalculatorExecutor(timeout_seconds=0.05)
        results = await executor.execute([
            CalculatorCall(name="slow", run=_hang, default=0.0),
            CalculatorCall(name="fast", run=lambda: _value(3.0), default=0.0),
        ])
        assert results == {"slow": 0.0, "fast": 3.0}

    async def test_calls_run_concurrently(self):
        executor = CalculatorExecutor()
        started: list[str] = []
        gate = asyncio.Event()

        async def wait_for_both(name):
            started.append(name)
            if len(started) == 2:
                gate.set()
            await asyncio.wait_for(gate.wait(), timeout=1)
            return name

        results = await executor.execute([
            CalculatorCall(name="x", run=lambda: wait_for_both("x"), default=None),
            CalculatorCall(name="y", run=lambda: wait_for_both("y"), default=None),
        ])
        assert results == {"x": "x", "y": "y"}

    async def test_empty_call_list_returns_empty(self):
        assert await CalculatorExecutor().execute([]) == {}


# ── MetricsRuntime ────────────────────────────────────────────────────────────

class TestMetricsRuntime:
    async def test_compute_returns_full_snapshot(self):
        provider = StubProvider(
            runs_by_branch={"main": make_runs(minutes=15)},
            incidents=[make_incident(hours=2), make_incident(hours=4)],
        )
        runtime = MetricsRuntime(provider, MetricsStore())

        snapshot = await runtime.compute("acme/api", "main", now=NOW)

        assert isinstance(snapshot, MetricSnapshot)
        assert snapshot.branch == "main"
        assert snapshot.deployment_frequency == pytest.approx(10 / 30)
        assert snapshot.successful_count == 7
        assert snapshot.failed_count == 3
        assert snapshot.change_failure_rate == pytest.approx(0.3)
        assert snapshot.lead_time_minutes == pytest.approx(15.0)
        assert snapshot.restore_time_hours == pytest.approx(3.0)

    async def test_compute_records_snapshot_in_store(self):
        store = MetricsStore()
        runtime = MetricsRuntime(StubProvider(runs_by_branch={"main": make_runs()}), store)

        await runtime.compute("acme/api", "main", now=NOW)

        export = store.export()
        assert export[(DEPLOYMENT_FREQUENCY, "main")] == pytest.approx(10 / 30)
        assert export[(CHANGE_FAILURE_RATE, "main")] == pytest.approx(0.3)

    async def test_branch_with_no_runs_is_all_zero(self):
        runtime = MetricsRuntime(StubProvider(), MetricsStore())
        snapshot = await runtime.compute("acme/api", "empty", now=NOW)
        assert snapshot.deployment_frequency == 0.0
        assert snapshot.change_failure_rate == 0.0
        assert snapshot.lead_time_minutes == 0.0
        assert snapshot.restore_time_hours == 0.0

    async def test_provider_errors_do_not_fail_compute(self):
        store = MetricsStore()
        runtime = MetricsRuntime(FailingProvider(ProviderError("503")), store)

        snapshot = await runtime.compute("acme/api", "main", now=NOW)

        assert snapshot.deployment_frequency == 0.0
        assert snapshot.successful_count == 0
        assert len(store) == 1

    async def test_unexpected_errors_fall_back_to_defaults(self):
        runtime = MetricsRuntime(FailingProvider(RuntimeError("bad json")), MetricsStore())
        snapshot = await runtime.compute("acme/api", "main", now=NOW)
        assert snapshot.change_failure_rate == 0.0
        assert snapshot.failed_count == 0

    async def test_one_failing_calculator_does_not_zero_the_others(self):
        provider = IncidentsOnlyFailProvider(runs_by_branch={"main": make_runs()})
        runtime = MetricsRuntime(provider, MetricsStore())

        snapshot = await runtime.compute("acme/api", "main", now=NOW)

        assert snapshot.restore_time_hours == 0.0
        assert snapshot.successful_count == 7
        assert snapshot.change_failure_rate == pytest.approx(0.3)

    async def test_new_snapshot_replaces_old_one(self):
        store = MetricsStore()
        provider = StubProvider(runs_by_branch={"main": make_runs(minutes=10)})
        runtime = MetricsRuntime(provider, store)

        await runtime.compute("acme/api", "main", now=NOW)
        provider.runs_by_branch["main"] = make_runs(successes=1, failures=0, minutes=40)
        await runtime.compute("acme/api", "main", now=NOW)

        export = store.export()
        assert export[(LEAD_TIME_FOR_CHANGES, "main")] == pytest.approx(40.0)
        assert export[(CHANGE_FAILURE_RATE, "main")] == 0.0

    async def test_concurrent_computes_for_two_branches_stay_separate(self):
        store = MetricsStore()
        provider = StubProvider(runs_by_branch={
            "a": make_runs(branch="a", successes=10, failures=0),
            "b": make_runs(branch="b", successes=0, failures=5),
        })
        runtime = MetricsRuntime(provider, store)

        snap_a, snap_b = await asyncio.gather(
            runtime.compute("acme/api", "a", now=NOW),
            runtime.compute("acme/api", "b", now=NOW),
        )

        assert snap_a.change_failure_rate == 0.0
        assert snap_b.change_failure_rate == 1.0
        export = store.export()
        assert export[(CHANGE_FAILURE_RATE, "a")] == 0.0
        assert export[(CHANGE_FAILURE_RATE, "b")] == 1.0
