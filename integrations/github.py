"""GitHub integration.

Responsible for three things:
1. Validating the HMAC signature on incoming GitHub webhooks
2. Parsing a verified webhook body into a DeliveryEvent
3. Querying the GitHub REST API for workflow runs and incident issues

The client is the live DeliveryHistoryProvider. It makes exactly the requests
it is asked for: no caching, no retries, no backoff. Any transport error,
timeout, non-2xx status, or undecodable body surfaces as ProviderError and the
calling calculator degrades to zero. A single record without a readable
created_at is dropped from the result instead.

GitHub API reference: https://docs.github.com/en/rest
"""

import hashlib
import hmac
import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from integrations.base import DeliveryHistoryProvider, ProviderError
from schemas.events import (
    DeliveryEvent,
    HeartbeatEvent,
    OtherEvent,
    PushEvent,
    WorkflowCompletionEvent,
)
from schemas.history import INCIDENT_LABEL, IncidentRecord, PipelineRun, RunOutcome

logger = logging.getLogger(__name__)

GITHUB_API_BASE = "https://api.github.com"
DEFAULT_PER_PAGE = 100


# ---------------------------------------------------------------------------
# Signature validation
# ---------------------------------------------------------------------------

_SIGNATURE_ALGORITHMS = {
    "sha256": hashlib.sha256,
    "sha1": hashlib.sha1,
}


def verify_github_signature(body: bytes, header_signature: str, secret: str) -> bool:
    """Verify the HMAC signature GitHub attaches to every webhook.

    GitHub sends the signature as "<algorithm>=<hexdigest>" in either the
    X-Hub-Signature-256 header (sha256) or the legacy X-Hub-Signature header
    (sha1). Both forms are accepted; the algorithm is taken from the prefix.

    Args:
        body:             Raw request body bytes — must be read before any
                          JSON parsing, since HMAC is computed over raw bytes.
        header_signature: Value of the signature header, prefix included.
        secret:           The webhook secret configured on the repository.

    Returns:
        True if the signature is valid, False otherwise — including when the
        header is empty or names an algorithm GitHub does not use.
    """
    algorithm, _, digest = (header_signature or "").partition("=")
    digestmod = _SIGNATURE_ALGORITHMS.get(algorithm)
    if digestmod is None or not digest:
        return False

    expected = hmac.new(
        key=secret.encode("utf-8"),
        msg=body,
        digestmod=digestmod,
    ).hexdigest()
    return hmac.compare_digest(expected, digest)


# ---------------------------------------------------------------------------
# Webhook payload parser
# ---------------------------------------------------------------------------

def parse_webhook_payload(event_type: str, raw: dict) -> DeliveryEvent:
    """Turn a verified webhook body into a DeliveryEvent.

    The event type comes from the X-GitHub-Event header, not the body —
    GitHub payloads do not name their own type.

    push:
    {"ref": "refs/heads/main", "repository": {"full_name": "acme/api"}, ...}

    workflow_run:
    {"action": "completed",
     "workflow_run": {"head_branch": "main", ...},
     "repository": {"full_name": "acme/api"}, ...}

    check_run / check_suite payloads are parsed as OtherEvent with the head
    branch attached, so the handler can log them.

    Args:
        event_type: Value of the X-GitHub-Event header.
        raw:        Parsed JSON body.

    Returns:
        The matching DeliveryEvent variant.

    Raises:
        KeyError: If a push or workflow_run payload is missing a required
            field. The webhook handler catches this and returns HTTP 400.
    """
    if event_type == "push":
        return PushEvent(repository=_full_name(raw), ref=raw["ref"])

    if event_type == "workflow_run":
        return WorkflowCompletionEvent(
            repository=_full_name(raw),
            head_branch=raw["workflow_run"]["head_branch"],
        )

    if event_type == "ping":
        return HeartbeatEvent()

    repository = (raw.get("repository") or {}).get("full_name")
    branch = None
    if event_type == "check_run":
        branch = ((raw.get("check_run") or {}).get("check_suite") or {}).get("head_branch")
    elif event_type == "check_suite":
        branch = (raw.get("check_suite") or {}).get("head_branch")

    return OtherEvent(name=event_type, repository=repository, branch=branch)


def _full_name(raw: dict) -> str:
    return raw["repository"]["full_name"]


# ---------------------------------------------------------------------------
# REST client
# ---------------------------------------------------------------------------

class GitHubClient(DeliveryHistoryProvider):
    """DeliveryHistoryProvider backed by the GitHub REST API.

    Holds one httpx.AsyncClient for the life of the process so concurrent
    webhook handlers share a connection pool. Close it with aclose() or use
    the client as an async context manager.

    Example usage:
        async with GitHubClient(token=settings.github_token) as github:
            runs = await github.list_runs("acme/api", "main")

    Attributes:
        max_pages: How many pages a single query may fetch. The default of
            1 inspects only the newest DEFAULT_PER_PAGE records.
        per_page: Page size requested from GitHub (100 is the API maximum).
    """

    def __init__(
        self,
        token: str,
        base_url: str = GITHUB_API_BASE,
        timeout: float = 15.0,
        max_pages: int = 1,
        per_page: int = DEFAULT_PER_PAGE,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialise the client.

        Args:
            token: GitHub token with read access to Actions and Issues.
            base_url: REST API base URL.
            timeout: Per-request timeout in seconds.
            max_pages: Page cap per query. Must be at least 1.
            per_page: Records requested per page.
            transport: Optional httpx transport. Tests pass an
                httpx.MockTransport here.

        Raises:
            ValueError: If token is empty or max_pages is below 1.
        """
        if not token:
            raise ValueError("token is required")
        if max_pages < 1:
            raise ValueError("max_pages must be at least 1")

        self.max_pages = max_pages
        self.per_page = per_page
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={
                "Accept": "application/vnd.github+json",
                "Authorization": f"Bearer {token}",
                "X-GitHub-Api-Version": "2022-11-28",
            },
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def list_runs(
        self,
        repository: str,
        branch: str,
        status: str | None = None,
    ) -> list[PipelineRun]:
        """Fetch workflow runs on a branch via GET /repos/{owner}/{repo}/actions/runs."""
        params: dict[str, Any] = {"branch": branch}
        if status is not None:
            params["status"] = status

        runs = []
        async for page in self._pages(f"/repos/{repository}/actions/runs", params):
            if not isinstance(page, dict) or not isinstance(page.get("workflow_runs"), list):
                raise ProviderError(f"Unexpected workflow runs response for {repository}")
            items = page["workflow_runs"]
            runs.extend(
                run for run in (_run_from_json(item, branch) for item in items) if run is not None
            )
            if len(items) < self.per_page:
                break

        logger.debug("Fetched %d workflow runs for %s@%s.", len(runs), repository, branch)
        return runs

    async def list_incidents(self, repository: str, since: datetime) -> list[IncidentRecord]:
        """Fetch closed incident issues via GET /repos/{owner}/{repo}/issues.

        The issues endpoint also returns pull requests; those are dropped.
        Issues with no closed_at are kept (closed_at=None) and left for the
        calculator to exclude.
        """
        params = {
            "state": "closed",
            "labels": INCIDENT_LABEL,
            "since": since.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        }

        incidents = []
        async for page in self._pages(f"/repos/{repository}/issues", params):
            if not isinstance(page, list):
                raise ProviderError(f"Unexpected issues response for {repository}")
            for item in page:
                if isinstance(item, dict) and "pull_request" in item:
                    continue
                incident = _incident_from_json(item)
                if incident is not None:
                    incidents.append(incident)
            if len(page) < self.per_page:
                break

        logger.debug("Fetched %d incident issues for %s.", len(incidents), repository)
        return incidents

    async def _pages(self, path: str, params: dict[str, Any]):
        """Yield decoded JSON pages, up to max_pages of them."""
        for page in range(1, self.max_pages + 1):
            yield await self._get(path, {**params, "per_page": self.per_page, "page": page})

    async def _get(self, path: str, params: dict[str, Any]) -> Any:
        try:
            resp = await self._client.get(path, params=params)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as exc:
            raise ProviderError(
                f"GitHub returned {exc.response.status_code} for {path}"
            ) from exc
        except httpx.HTTPError as exc:
            raise ProviderError(f"GitHub request to {path} failed: {exc!r}") from exc
        except ValueError as exc:
            raise ProviderError(f"GitHub returned a non-JSON body for {path}") from exc


# ---------------------------------------------------------------------------
# Response mapping
# ---------------------------------------------------------------------------

def parse_github_datetime(value: str | None) -> datetime | None:
    """Parse GitHub ISO timestamps like '2026-01-12T10:11:12Z' to aware datetime."""
    if not value:
        return None
    # GitHub uses 'Z' for UTC. Older interpreters' fromisoformat expects '+00:00'.
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def _optional_datetime(value: Any) -> datetime | None:
    try:
        return parse_github_datetime(value)
    except (AttributeError, TypeError, ValueError):
        return None


_OUTCOMES = {
    "success": RunOutcome.SUCCESS,
    "failure": RunOutcome.FAILURE,
}


def _run_from_json(item: Any, branch: str) -> PipelineRun | None:
    """Map one workflow_runs entry to a PipelineRun, or None if it is unusable.

    GitHub has no completion timestamp on a run. updated_at stops moving
    once the run completes, so it stands in for completed_at on completed
    runs; in-progress runs get None. A run without a readable created_at
    is skipped.
    """
    if not isinstance(item, dict):
        logger.debug("Skipping non-object workflow run record: %r", item)
        return None
    try:
        completed = item.get("status") == "completed"
        return PipelineRun(
            created_at=parse_github_datetime(item.get("created_at")),
            completed_at=_optional_datetime(item.get("updated_at")) if completed else None,
            outcome=_OUTCOMES.get(item.get("conclusion"), RunOutcome.OTHER),
            branch=item.get("head_branch") or branch,
        )
    except (AttributeError, TypeError, ValueError) as exc:
        logger.debug("Skipping workflow run %s: %s", item.get("id"), exc)
        return None


def _incident_from_json(item: Any) -> IncidentRecord | None:
    if not isinstance(item, dict):
        logger.debug("Skipping non-object issue record: %r", item)
        return None
    try:
        return IncidentRecord(
            created_at=parse_github_datetime(item.get("created_at")),
            closed_at=_optional_datetime(item.get("closed_at")),
            body=item.get("body") or "",
            labels=frozenset(
                label["name"] for label in item.get("labels") or [] if isinstance(label, dict)
            ),
        )
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        logger.debug("Skipping issue #%s: %s", item.get("number"), exc)
        return None
