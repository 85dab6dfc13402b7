"""Time to restore service calculator.

Incidents are closed GitHub issues labelled "incident". An incident belongs
to a branch when the branch name appears anywhere in the issue body. The
match is a plain substring test, so "main" also matches an issue that only
mentions "maintenance" — there is no structured link between issues and
branches to do better with.
"""

import logging
from datetime import datetime

from calculators.window import in_window, mean, window_start
from integrations.base import IncidentProvider, ProviderError

logger = logging.getLogger(__name__)


async def time_to_restore_service(
    provider: IncidentProvider,
    repository: str,
    branch: str,
    now: datetime | None = None,
) -> float:
    """Return the mean open-to-close time of branch incidents, in hours.

    Returns 0.0 when no incident qualifies or the provider query fails.
    """
    logger.info("Calculating Time to Restore Service for %s on branch %s", repository, branch)

    start = window_start(now)
    try:
        incidents = await provider.list_incidents(repository, since=start)
    except ProviderError as exc:
        logger.warning("Error fetching issues for %s: %s", repository, exc)
        return 0.0

    hours = [
        (incident.closed_at - incident.created_at).total_seconds() / 3600.0
        for incident in incidents
        if incident.is_incident
        and incident.closed_at is not None
        and in_window(incident.created_at, start)
        and branch in incident.body
    ]

    restore_time = mean(hours)
    logger.info("Calculated Time to Restore Service: %f hours", restore_time)
    return restore_time
