"""Send a signed demo push webhook to a local server and print the metrics feed.

Reads WEBHOOK_SECRET from the environment (or .env) so the signature matches
the running server.

Usage:
    uv run python scripts/demo_webhook.py acme/api main
"""

import hashlib
import hmac
import json
import os
import sys

import httpx
from dotenv import load_dotenv

BASE_URL = os.environ.get("DORA_EXPORTER_URL", "http://127.0.0.1:4040")
TIMEOUT_SECONDS = 60


def _sign(body: bytes, secret: str) -> str:
    return "sha256=" + hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def main(argv: list[str]) -> int:
    load_dotenv()
    secret = os.environ.get("WEBHOOK_SECRET")
    if not secret:
        print("WEBHOOK_SECRET must be set to sign the demo webhook.", file=sys.stderr)
        return 1

    repository = argv[1] if len(argv) > 1 else "octocat/Hello-World"
    branch = argv[2] if len(argv) > 2 else "main"

    body = json.dumps({
        "ref": f"refs/heads/{branch}",
        "repository": {"full_name": repository},
    }).encode("utf-8")
    headers = {
        "Content-Type": "application/json",
        "X-GitHub-Event": "push",
        "X-Hub-Signature-256": _sign(body, secret),
    }

    try:
        with httpx.Client(base_url=BASE_URL, timeout=TIMEOUT_SECONDS) as client:
            print(f"Posting demo push for {repository}@{branch} to /webhook ...")
            resp = client.post("/webhook", content=body, headers=headers)
            resp.raise_for_status()
            print(json.dumps(resp.json(), indent=2))

            print("\nMetrics feed:")
            feed = client.get("/metrics")
            feed.raise_for_status()
            print(feed.text)
    except httpx.ConnectError as exc:
        print(f"Failed to reach API at {BASE_URL}: {exc}", file=sys.stderr)
        print("Start it first with: python main.py", file=sys.stderr)
        return 1
    except httpx.HTTPStatusError as exc:
        print(f"Server returned {exc.response.status_code}: {exc.response.text}", file=sys.stderr)
        return 2

    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv))
