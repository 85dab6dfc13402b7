"""Metrics store.

MetricsStore is the process-wide table of the latest DORA readings, one gauge
value per (metric, branch). It is created once at startup and handed to both
the runtime (which writes to it) and the /metrics endpoint (which reads it).

It is not a database. Nothing persists between restarts and no history is
kept: recording a snapshot overwrites the branch's previous six values.

Each store owns its own prometheus_client CollectorRegistry rather than
registering on the global default, so two stores (or two test cases) never
collide on metric names.

Concurrency:
    Individual Gauge.set() calls are atomic in prometheus_client. On top of
    that, record() holds the store lock across all six writes and export()
    reads under the same lock, so a reader never sees a half-written
    snapshot and concurrent records for different branches cannot touch
    each other's values.
"""

import threading
from typing import Callable

from prometheus_client import CollectorRegistry, Gauge, generate_latest

from schemas.result import MetricSnapshot

DEPLOYMENT_FREQUENCY = "dora_deployment_frequency"
LEAD_TIME_FOR_CHANGES = "dora_lead_time_for_changes_minutes"
TIME_TO_RESTORE_SERVICE = "dora_time_to_restore_service"
CHANGE_FAILURE_RATE = "dora_change_failure_rate"
SUCCESSFUL_DEPLOYMENTS = "dora_successful_deployments"
FAILED_DEPLOYMENTS = "dora_failed_deployments"

# metric name -> (help text, how to read the value from a snapshot)
_GAUGES: dict[str, tuple[str, Callable[[MetricSnapshot], float]]] = {
    DEPLOYMENT_FREQUENCY: (
        "Deployment Frequency metric (runs per day)",
        lambda s: s.deployment_frequency,
    ),
    LEAD_TIME_FOR_CHANGES: (
        "Lead Time for Changes metric (in minutes)",
        lambda s: s.lead_time_minutes,
    ),
    TIME_TO_RESTORE_SERVICE: (
        "Time to Restore Service metric (in hours)",
        lambda s: s.restore_time_hours,
    ),
    CHANGE_FAILURE_RATE: (
        "Change Failure Rate metric",
        lambda s: s.change_failure_rate,
    ),
    SUCCESSFUL_DEPLOYMENTS: (
        "Number of successful deployments in the last 30 days",
        lambda s: float(s.successful_count),
    ),
    FAILED_DEPLOYMENTS: (
        "Number of failed deployments in the last 30 days",
        lambda s: float(s.failed_count),
    ),
}

METRIC_NAMES = tuple(_GAUGES)


class MetricsStore:
    """Latest DORA gauge values per branch, exposed in Prometheus format.

    Attributes:
        registry: The CollectorRegistry holding this store's six gauges.
            render() serializes exactly this registry.
    """

    def __init__(self) -> None:
        self.registry = CollectorRegistry()
        self._lock = threading.Lock()
        self._gauges = {
            name: Gauge(name, help_text, ["branch"], registry=self.registry)
            for name, (help_text, _) in _GAUGES.items()
        }
        # branch -> {metric name -> value}; mirrors what the gauges hold.
        self._values: dict[str, dict[str, float]] = {}

    def record(self, snapshot: MetricSnapshot) -> None:
        """Overwrite the six gauge values for snapshot.branch.

        Args:
            snapshot: A freshly computed snapshot. Values for other branches
                are left untouched.
        """
        values = {name: read(snapshot) for name, (_, read) in _GAUGES.items()}
        with self._lock:
            for name, value in values.items():
                self._gauges[name].labels(branch=snapshot.branch).set(value)
            self._values[snapshot.branch] = values

    def export(self) -> dict[tuple[str, str], float]:
        """Return every current reading keyed on (metric name, branch).

        Returns a fresh dict so callers cannot mutate the store's state.
        Empty until the first record().
        """
        with self._lock:
            return {
                (name, branch): value
                for branch, values in self._values.items()
                for name, value in values.items()
            }

    def branches(self) -> list[str]:
        """Return the branches that have at least one recorded snapshot."""
        with self._lock:
            return sorted(self._values)

    def render(self) -> bytes:
        """Serialize the store in the Prometheus text exposition format."""
        with self._lock:
            return generate_latest(self.registry)

    def __len__(self) -> int:
        with self._lock:
            return len(self._values)
