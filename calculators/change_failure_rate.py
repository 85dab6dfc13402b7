"""Change failure rate calculator."""

import logging
from datetime import datetime

from calculators.window import in_window, window_start
from integrations.base import PipelineHistoryProvider, ProviderError
from schemas.history import RunOutcome

logger = logging.getLogger(__name__)


async def change_failure_rate(
    provider: PipelineHistoryProvider,
    repository: str,
    branch: str,
    now: datetime | None = None,
) -> float:
    """Return failed runs over all runs on the branch in the window.

    Only an explicit failure conclusion counts as failed here. Cancelled and
    in-progress runs add to the total but not to the failures, unlike
    deployment_frequency() which counts them as failed.

    Returns 0.0 when the window holds no runs or the provider query fails.
    """
    logger.info("Calculating Change Failure Rate for %s on branch %s", repository, branch)

    try:
        runs = await provider.list_runs(repository, branch)
    except ProviderError as exc:
        logger.warning("Error fetching workflow runs for %s@%s: %s", repository, branch, exc)
        return 0.0

    start = window_start(now)
    recent = [run for run in runs if in_window(run.created_at, start)]
    if not recent:
        return 0.0

    failed = sum(1 for run in recent if run.outcome is RunOutcome.FAILURE)
    rate = failed / len(recent)
    logger.info("Calculated Change Failure Rate: %f", rate)
    return rate
