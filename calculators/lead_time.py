"""Lead time for changes calculator.

Lead time is approximated by how long a successful workflow run took, from
creation to completion. It does not follow a commit from authoring to
production — that would need deployment records GitHub Actions does not keep.
"""

import logging
from datetime import datetime

from calculators.window import in_window, mean, window_start
from integrations.base import PipelineHistoryProvider, ProviderError

logger = logging.getLogger(__name__)

SUCCESS_STATUS = "success"


async def lead_time_for_changes(
    provider: PipelineHistoryProvider,
    repository: str,
    branch: str,
    now: datetime | None = None,
) -> float:
    """Return the mean duration of successful runs in the window, in minutes.

    Runs are filtered to status "success" server-side, then to the window
    client-side. Runs missing either timestamp are skipped. Returns 0.0 when
    no run qualifies or the provider query fails.
    """
    logger.info("Calculating Lead Time for Changes for %s on branch %s", repository, branch)

    try:
        runs = await provider.list_runs(repository, branch, status=SUCCESS_STATUS)
    except ProviderError as exc:
        logger.warning("Error fetching workflow runs for %s@%s: %s", repository, branch, exc)
        return 0.0

    start = window_start(now)
    durations = [
        (run.completed_at - run.created_at).total_seconds() / 60.0
        for run in runs
        if run.completed_at is not None and in_window(run.created_at, start)
    ]

    lead_time = mean(durations)
    logger.info("Calculated Lead Time for Changes: %.2f minutes", lead_time)
    return lead_time
