"""DORA exporter — one-shot CLI.

Computes the DORA snapshot for one branch against the live GitHub API and
renders it as a table in the terminal. Uses the same runtime and calculators
as the webhook server, with a throwaway store.

Usage:
    uv run python cli.py acme/api main
    uv run python cli.py acme/api release/1.2 --pages 3
"""

import argparse
import asyncio
import sys
from dataclasses import replace

from rich.console import Console
from rich.table import Table

from config import ConfigError, Settings, load_settings
from core.normalizer import split_repository
from core.runtime import MetricsRuntime
from core.store import MetricsStore
from integrations.github import GitHubClient
from schemas.result import MetricSnapshot

console = Console()


# ── Results table ─────────────────────────────────────────────────────────────

def _print_snapshot(repository: str, snapshot: MetricSnapshot) -> None:
    """Render the four indicators and the run counts."""
    table = Table(title=f"DORA metrics — {repository}@{snapshot.branch}",
                  show_lines=True, border_style="bright_black")
    table.add_column("Metric", style="bold", min_width=28)
    table.add_column("Value",  width=14, justify="right")
    table.add_column("Unit",   style="dim", min_width=12)

    cfr = snapshot.change_failure_rate
    cfr_color = "green" if cfr <= 0.15 else "yellow" if cfr <= 0.3 else "red"

    table.add_row("Deployment Frequency",  f"{snapshot.deployment_frequency:.3f}", "runs/day")
    table.add_row("Lead Time for Changes", f"{snapshot.lead_time_minutes:.1f}",    "minutes")
    table.add_row("Time to Restore",       f"{snapshot.restore_time_hours:.1f}",   "hours")
    table.add_row("Change Failure Rate",   f"[{cfr_color}]{cfr:.0%}[/{cfr_color}]", "of runs")
    table.add_row("Successful runs",       str(snapshot.successful_count),          "last 30 days")
    table.add_row("Failed runs",           str(snapshot.failed_count),              "last 30 days")

    console.print()
    console.print(table)
    console.print()


# ── Entry point ───────────────────────────────────────────────────────────────

async def _run(settings: Settings, repository: str, branch: str) -> MetricSnapshot:
    async with GitHubClient(
        token=settings.github_token,
        base_url=settings.github_api_url,
        timeout=settings.github_timeout_seconds,
        max_pages=settings.github_max_pages,
    ) as github:
        runtime = MetricsRuntime(
            provider=github,
            store=MetricsStore(),
            timeout_seconds=settings.calculator_timeout_seconds,
        )
        return await runtime.compute(repository, branch)


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Compute DORA metrics for one branch.")
    parser.add_argument("repository", help="full repository name, owner/name")
    parser.add_argument("branch", help="branch to measure")
    parser.add_argument("--pages", type=int, default=None,
                        help="pages of history to fetch per query (default: GITHUB_MAX_PAGES)")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    try:
        split_repository(args.repository)
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        return 2

    try:
        settings = load_settings(require_webhook_secret=False)
    except ConfigError as exc:
        console.print(f"[red]{exc}[/red]")
        return 1

    if args.pages is not None:
        settings = replace(settings, github_max_pages=max(1, args.pages))

    console.rule("[bold]DORA Exporter[/bold]")
    snapshot = asyncio.run(_run(settings, args.repository, args.branch))
    _print_snapshot(args.repository, snapshot)
    return 0


if __name__ == "__main__":
    sys.exit(main())
