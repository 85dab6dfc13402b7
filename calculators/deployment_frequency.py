"""Deployment frequency calculator.

Counts every workflow run on the branch created in the last 30 days and
divides by 30. A run counts as successful only when it concluded with
success; everything else — failures, cancellations, runs still in progress —
counts as failed. Change failure rate classifies runs more narrowly, see
change_failure_rate.py.
"""

import logging
from datetime import datetime

from calculators.window import WINDOW_DAYS, in_window, window_start
from integrations.base import PipelineHistoryProvider, ProviderError
from schemas.history import RunOutcome
from schemas.result import DeploymentFrequencyResult

logger = logging.getLogger(__name__)


async def deployment_frequency(
    provider: PipelineHistoryProvider,
    repository: str,
    branch: str,
    now: datetime | None = None,
) -> DeploymentFrequencyResult:
    """Return runs per day on the branch over the trailing window.

    Args:
        provider: Source of pipeline runs.
        repository: Full repository name, "owner/name".
        branch: Branch to measure.
        now: Window anchor. Defaults to the current UTC time.

    Returns:
        Frequency plus the successful/failed split. All zero when the
        branch has no runs in the window or the provider query fails.
    """
    logger.info("Calculating Deployment Frequency for %s on branch %s", repository, branch)

    try:
        runs = await provider.list_runs(repository, branch)
    except ProviderError as exc:
        logger.warning("Error fetching workflow runs for %s@%s: %s", repository, branch, exc)
        return DeploymentFrequencyResult()

    start = window_start(now)
    successful = failed = 0
    for run in runs:
        if not in_window(run.created_at, start):
            continue
        if run.outcome is RunOutcome.SUCCESS:
            successful += 1
        else:
            failed += 1

    frequency = (successful + failed) / float(WINDOW_DAYS)
    logger.info("Calculated Deployment Frequency: %f", frequency)
    return DeploymentFrequencyResult(
        frequency=frequency,
        successful_count=successful,
        failed_count=failed,
    )
