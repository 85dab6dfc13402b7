"""Metrics runtime — the computation orchestrator.

MetricsRuntime is the single entry point for computing DORA metrics. It is
built once at startup with a provider and a store, then compute() is called
once per webhook that resolves to a (repository, branch). Each call is fully
independent: it re-derives everything from the provider's trailing window
and keeps no state of its own.

Pipeline order inside compute():
    1. Build one CalculatorCall per DORA metric
    2. Execute all four concurrently via CalculatorExecutor
    3. Assemble a MetricSnapshot from the results
    4. Record the snapshot in the MetricsStore
    5. Return the snapshot to the caller
"""

import logging
from datetime import datetime

from calculators import (
    change_failure_rate,
    deployment_frequency,
    lead_time_for_changes,
    time_to_restore_service,
)
from core.executor import DEFAULT_TIMEOUT_SECONDS, CalculatorCall, CalculatorExecutor
from core.store import MetricsStore
from integrations.base import DeliveryHistoryProvider
from schemas.result import DeploymentFrequencyResult, MetricSnapshot

logger = logging.getLogger(__name__)


class MetricsRuntime:
    """Orchestrates the four calculators for one (repository, branch).

    Attributes:
        _provider: Upstream source of runs and incidents, shared by all
            calculators.
        _store: Where every computed snapshot is published.
        _executor: Runs calculators concurrently with per-calculator
            timeouts and fault isolation.
    """

    def __init__(
        self,
        provider: DeliveryHistoryProvider,
        store: MetricsStore,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._provider = provider
        self._store = store
        self._executor = CalculatorExecutor(timeout_seconds=timeout_seconds)

    @property
    def store(self) -> MetricsStore:
        return self._store

    async def compute(
        self,
        repository: str,
        branch: str,
        now: datetime | None = None,
    ) -> MetricSnapshot:
        """Compute, publish and return the DORA snapshot for a branch.

        Never raises because of an upstream failure: each calculator that
        fails contributes its zero result and the rest of the snapshot is
        still computed and recorded.

        Args:
            repository: Full repository name, "owner/name".
            branch: Branch to compute metrics for.
            now: Window anchor for all four calculators. Defaults to the
                current UTC time, evaluated by each calculator.

        Returns:
            The snapshot that was just recorded in the store.
        """
        logger.info("Calculating DORA metrics for %s on branch %s", repository, branch)

        provider = self._provider
        calls = [
            CalculatorCall(
                name="deployment_frequency",
                run=lambda: deployment_frequency(provider, repository, branch, now),
                default=DeploymentFrequencyResult(),
            ),
            CalculatorCall(
                name="lead_time_for_changes",
                run=lambda: lead_time_for_changes(provider, repository, branch, now),
                default=0.0,
            ),
            CalculatorCall(
                name="time_to_restore_service",
                run=lambda: time_to_restore_service(provider, repository, branch, now),
                default=0.0,
            ),
            CalculatorCall(
                name="change_failure_rate",
                run=lambda: change_failure_rate(provider, repository, branch, now),
                default=0.0,
            ),
        ]
        results = await self._executor.execute(calls)

        frequency: DeploymentFrequencyResult = results["deployment_frequency"]
        snapshot = MetricSnapshot(
            deployment_frequency=frequency.frequency,
            lead_time_minutes=results["lead_time_for_changes"],
            restore_time_hours=results["time_to_restore_service"],
            change_failure_rate=results["change_failure_rate"],
            successful_count=frequency.successful_count,
            failed_count=frequency.failed_count,
            branch=branch,
        )

        self._store.record(snapshot)
        logger.info(
            "Recorded DORA metrics for %s@%s: %d successful, %d failed, CFR %.2f.",
            repository,
            branch,
            snapshot.successful_count,
            snapshot.failed_count,
            snapshot.change_failure_rate,
        )
        return snapshot
