"""DORA exporter — webhook entry point and metrics feed.

This file handles two concerns:

1. Intake — receives GitHub webhooks, validates them, and computes the DORA
   snapshot for the branch the event touched. The snapshot is returned in
   the response body so the delivery log on GitHub shows what was computed.

2. Export — serves the latest snapshot of every branch in the Prometheus
   text format for a scraper to poll.

Flow after a webhook arrives:
    POST /webhook
        → validate signature (X-Hub-Signature-256, or legacy X-Hub-Signature)
        → parse payload into a DeliveryEvent
        → ping:        200 "Pong!"
        → push / workflow_run:
              normalize to (repository, branch)
              → MetricsRuntime.compute() → four calculators, concurrently
              → MetricsStore.record()
              → 200 + snapshot JSON
        → anything else: log and 200 with no body

    scraper polls:
        GET /metrics → every gauge in the MetricsStore

Run locally:
    uv run python main.py
"""

import json
import logging
import logging.handlers
import pathlib
from contextlib import asynccontextmanager

import uvicorn
from fastapi import APIRouter, FastAPI, Header, HTTPException, Request
from fastapi.responses import PlainTextResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST

from config import ConfigError, Settings, load_settings
from core.normalizer import normalize_event
from core.runtime import MetricsRuntime
from core.store import MetricsStore
from integrations.base import DeliveryHistoryProvider
from integrations.github import GitHubClient, parse_webhook_payload, verify_github_signature
from schemas.events import HeartbeatEvent, OtherEvent
from schemas.result import MetricSnapshot

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

LOG_FILE = pathlib.Path(__file__).parent / "dora_exporter.log"
LOG_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

_file_handler = logging.handlers.RotatingFileHandler(
    LOG_FILE, maxBytes=1_000_000, backupCount=3, encoding="utf-8",
)
_file_handler.setFormatter(_formatter)

_console_handler = logging.StreamHandler()
_console_handler.setFormatter(_formatter)

_root_logger = logging.getLogger()
_root_logger.setLevel(logging.INFO)
_root_logger.addHandler(_file_handler)
_root_logger.addHandler(_console_handler)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

router = APIRouter()


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/metrics")
def metrics(request: Request) -> Response:
    """Serve the MetricsStore in the Prometheus text exposition format."""
    store: MetricsStore = request.app.state.store
    logger.debug("Serving metrics for %d branch(es): %s", len(store), ", ".join(store.branches()))
    return Response(content=store.render(), media_type=CONTENT_TYPE_LATEST)


@router.post("/webhook")
async def github_webhook(
    request: Request,
    x_github_event: str | None = Header(default=None),
    x_hub_signature_256: str | None = Header(default=None),
    x_hub_signature: str | None = Header(default=None),
):
    """Receive a GitHub webhook and compute metrics for the touched branch.

    Returns:
        The computed MetricSnapshot as JSON for push and workflow_run events,
        "Pong!" for ping, and an empty 200 for everything else.

    Raises:
        HTTPException: 401 for a missing or invalid signature, 400 for a
            missing event header or a malformed body.
    """
    body = await request.body()
    settings: Settings = request.app.state.settings

    # Signature verification
    signature = x_hub_signature_256 or x_hub_signature
    if not signature or not verify_github_signature(body, signature, settings.webhook_secret):
        logger.warning("Rejected webhook: missing or invalid signature.")
        raise HTTPException(status_code=401, detail="Invalid signature.")

    if not x_github_event:
        logger.warning("Rejected webhook: no X-GitHub-Event header.")
        raise HTTPException(status_code=400, detail="Missing X-GitHub-Event header.")

    # Parse payload
    try:
        raw = json.loads(body)
        if not isinstance(raw, dict):
            raise ValueError("payload is not a JSON object")
        event = parse_webhook_payload(x_github_event, raw)
    except (KeyError, TypeError, ValueError) as exc:
        logger.error("Failed to parse %s webhook payload: %s", x_github_event, exc)
        raise HTTPException(status_code=400, detail=f"Malformed payload: {exc}")

    if isinstance(event, HeartbeatEvent):
        return PlainTextResponse("Pong!")

    target = normalize_event(event)
    if target is None:
        if isinstance(event, OtherEvent) and event.branch:
            logger.info(
                "Received %s event for %s on branch %s — not computing metrics.",
                event.name,
                event.repository,
                event.branch,
            )
        else:
            logger.info("Received unhandled event type: %s", x_github_event)
        return Response(status_code=200)

    repository, branch = target
    logger.info("Received %s event for %s on branch %s", x_github_event, repository, branch)

    runtime: MetricsRuntime = request.app.state.runtime
    snapshot: MetricSnapshot = await runtime.compute(repository, branch)
    return snapshot


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------

def create_app(
    settings: Settings | None = None,
    provider: DeliveryHistoryProvider | None = None,
    store: MetricsStore | None = None,
) -> FastAPI:
    """Wire settings, provider, store and runtime into a FastAPI app.

    Args:
        settings: Runtime settings. Loaded from the environment when None,
            which raises ConfigError if credentials are missing.
        provider: Upstream history provider. A GitHubClient is built from
            settings when None, and closed when the app shuts down.
        store: Metrics store shared by the runtime and /metrics. A fresh
            one is created when None.
    """
    settings = settings or load_settings()
    store = store or MetricsStore()
    owns_provider = provider is None
    if provider is None:
        provider = GitHubClient(
            token=settings.github_token,
            base_url=settings.github_api_url,
            timeout=settings.github_timeout_seconds,
            max_pages=settings.github_max_pages,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if owns_provider:
            await provider.aclose()

    app = FastAPI(title="DORA Exporter", lifespan=lifespan, docs_url=None, redoc_url=None)
    app.state.settings = settings
    app.state.store = store
    app.state.runtime = MetricsRuntime(
        provider=provider,
        store=store,
        timeout_seconds=settings.calculator_timeout_seconds,
    )
    app.include_router(router)
    return app


def main() -> None:
    try:
        settings = load_settings()
    except ConfigError as exc:
        logger.critical("%s", exc)
        raise SystemExit(1)

    logging.getLogger().setLevel(settings.log_level)
    logger.info("Server is running on %s:%d", settings.host, settings.port)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
