"""Parallel calculator executor.

CalculatorExecutor runs a set of named calculator coroutines concurrently and
collects their results. It handles timeouts and fault isolation so the
runtime does not have to.

The key guarantee: one calculator failing never causes the others to be
skipped. Each calculator runs in its own task with its own exception
boundary, and a failed calculator is replaced by its default result.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


@dataclass
class CalculatorCall:
    """One unit of work for the executor.

    Attributes:
        name: Label used in logs and as the key of the result dict.
        run: Zero-argument callable returning the calculator coroutine.
            A callable rather than a coroutine so nothing starts running
            before the executor schedules it.
        default: Result substituted when the calculator raises or times out.
    """

    name: str
    run: Callable[[], Awaitable[Any]]
    default: Any


class CalculatorExecutor:
    """Runs calculators concurrently and returns one result per calculator.

    Uses asyncio.TaskGroup to schedule every calculator at once. Calculators
    already degrade to zero on provider errors; the executor is the second
    line for anything they do not catch — bugs, unexpected response shapes,
    or a provider that never answers.

    Attributes:
        timeout_seconds: Maximum time to wait for a single calculator before
            cancelling it and using its default.
    """

    def __init__(self, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        self.timeout_seconds = timeout_seconds

    async def execute(self, calls: list[CalculatorCall]) -> dict[str, Any]:
        """Run all calls concurrently.

        Args:
            calls: The calculators to run. Names must be unique.

        Returns:
            Dict of call name to result. Every call has an entry — the
            default for those that failed.
        """
        if not calls:
            return {}

        async with asyncio.TaskGroup() as tg:
            tasks = {
                call.name: tg.create_task(self._run_safely(call), name=call.name)
                for call in calls
            }

        return {name: task.result() for name, task in tasks.items()}

    async def _run_safely(self, call: CalculatorCall) -> Any:
        """Run one calculator with timeout and exception handling.

        This method never raises. All failures are caught, logged, and
        replaced by call.default, which keeps one failing calculator from
        propagating into the TaskGroup and cancelling the others.
        """
        start = time.perf_counter()
        try:
            result = await asyncio.wait_for(call.run(), timeout=self.timeout_seconds)
            logger.debug(
                "Calculator '%s' finished in %.0fms.",
                call.name,
                (time.perf_counter() - start) * 1000,
            )
            return result

        except asyncio.TimeoutError:
            logger.error(
                "Calculator '%s' timed out after %.1fs — using default.",
                call.name,
                time.perf_counter() - start,
            )
            return call.default

        except Exception as exc:
            logger.error(
                "Calculator '%s' raised after %.0fms — using default. Error: %s",
                call.name,
                (time.perf_counter() - start) * 1000,
                exc,
            )
            return call.default
