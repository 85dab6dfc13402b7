"""Process configuration.

Reads settings from the environment, after loading a local .env file if one
exists. GITHUB_TOKEN and WEBHOOK_SECRET are required; the service refuses to
start without them. Everything else has a default.
"""

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

DEFAULT_GITHUB_API_URL = "https://api.github.com"
DEFAULT_PORT = 4040


class ConfigError(Exception):
    """Raised when required configuration is missing or malformed."""


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the exporter.

    Attributes:
        github_token: Token used for every GitHub API call.
        webhook_secret: Shared secret GitHub signs webhook bodies with.
        github_api_url: REST API base URL. Override for GitHub Enterprise.
        host: Interface the HTTP server binds to.
        port: Port the HTTP server listens on.
        github_timeout_seconds: Per-request HTTP timeout for GitHub calls.
        calculator_timeout_seconds: Budget for one calculator, all of its
            requests included. A calculator over budget reports zero.
        github_max_pages: Pages fetched per provider query. 1 keeps the
            first-page-only behaviour.
        log_level: Root log level name.
    """

    github_token: str
    webhook_secret: str
    github_api_url: str = DEFAULT_GITHUB_API_URL
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    github_timeout_seconds: float = 15.0
    calculator_timeout_seconds: float = 30.0
    github_max_pages: int = 1
    log_level: str = "INFO"


def load_settings(require_webhook_secret: bool = True) -> Settings:
    """Build Settings from the environment.

    Args:
        require_webhook_secret: False for callers that never verify a
            webhook (the CLI). WEBHOOK_SECRET is then allowed to be empty.

    Raises:
        ConfigError: If a required variable is unset, a numeric variable
            does not parse, or LOG_LEVEL is not a logging level name.
    """
    load_dotenv()

    token = os.environ.get("GITHUB_TOKEN", "").strip()
    secret = os.environ.get("WEBHOOK_SECRET", "").strip()
    if not token:
        raise ConfigError("GITHUB_TOKEN must be set")
    if require_webhook_secret and not secret:
        raise ConfigError("WEBHOOK_SECRET must be set")

    return Settings(
        github_token=token,
        webhook_secret=secret,
        github_api_url=os.environ.get("GITHUB_API_URL", DEFAULT_GITHUB_API_URL).rstrip("/"),
        host=os.environ.get("HOST", "0.0.0.0"),
        port=_env_number("PORT", DEFAULT_PORT, int),
        github_timeout_seconds=_env_number("GITHUB_TIMEOUT_SECONDS", 15.0, float),
        calculator_timeout_seconds=_env_number("CALCULATOR_TIMEOUT_SECONDS", 30.0, float),
        github_max_pages=max(1, _env_number("GITHUB_MAX_PAGES", 1, int)),
        log_level=_env_log_level("LOG_LEVEL", "INFO"),
    )


def _env_log_level(name: str, default: str) -> str:
    raw = os.environ.get(name, "").strip().upper()
    if not raw:
        return default
    if raw not in logging.getLevelNamesMapping():
        raise ConfigError(f"{name} must be a logging level name, got {raw!r}")
    return raw


def _env_number(name: str, default, cast):
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc
