"""Upstream provider abstract base classes.

Defines the two interfaces the calculators query. The calculators depend only
on these interfaces — never on a concrete provider — so tests can inject a
stub provider without touching calculator logic, and swapping GitHub for
another platform means writing one new class.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from schemas.history import IncidentRecord, PipelineRun


class ProviderError(Exception):
    """Raised when an upstream provider query fails.

    Covers transport errors, timeouts, non-2xx responses, and bodies that do
    not decode into the expected shape. Calculators catch this and degrade
    to their zero result.
    """


class PipelineHistoryProvider(ABC):
    """Source of historical pipeline runs for a repository."""

    @abstractmethod
    async def list_runs(
        self,
        repository: str,
        branch: str,
        status: str | None = None,
    ) -> list[PipelineRun]:
        """Return recent pipeline runs on a branch, newest first.

        Args:
            repository: Full repository name, "owner/name".
            branch: Branch to filter on, server-side.
            status: Optional server-side status filter (e.g. "success").
                None returns runs of every status.

        Returns:
            The runs the provider returned. Only a bounded page is fetched,
            so the list may be truncated for busy repositories.

        Raises:
            ProviderError: If the query fails for any reason.
        """
        ...


class IncidentProvider(ABC):
    """Source of closed incident issues for a repository."""

    @abstractmethod
    async def list_incidents(self, repository: str, since: datetime) -> list[IncidentRecord]:
        """Return closed issues labelled "incident" updated since a moment.

        Raises:
            ProviderError: If the query fails for any reason.
        """
        ...


class DeliveryHistoryProvider(PipelineHistoryProvider, IncidentProvider):
    """A provider that serves both pipeline runs and incidents.

    GitHub is one: Actions for runs, Issues for incidents. The runtime takes
    a single DeliveryHistoryProvider and hands it to all four calculators.
    """
