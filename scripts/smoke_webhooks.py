"""
Smoke tests against a running instance.

Runs lightweight HTTP checks:
- GET /health
- POST /api/telegram/webhook with a /help message

Only checks for 2xx responses, so it passes even when the Telegram Bot API
is unreachable from the shell.
"""

from __future__ import annotations

import os
import sys
from datetime import datetime, timezone
from pathlib import Path

import httpx

# allow running from any directory (e.g. `python scripts/smoke_webhooks.py`)
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from app.core.logging import get_logger, setup_logging  # noqa: E402


logger = get_logger(__name__)


def _base_url() -> str:
    port = os.environ.get("PORT", "8000")
    return os.environ.get("BASE_URL", f"http://127.0.0.1:{port}").rstrip("/")


def _timeout_seconds() -> float:
    return float(os.environ.get("SMOKE_TIMEOUT_SECONDS", "10"))


def _webhook_headers() -> dict[str, str]:
    secret = os.environ.get("TELEGRAM_WEBHOOK_SECRET_TOKEN", "")
    return {"X-Telegram-Bot-Api-Secret-Token": secret} if secret else {}


def _telegram_payload() -> dict:
    return {
        "update_id": 1,
        "message": {
            "message_id": 1,
            "chat": {"id": 12345, "type": "private"},
            "text": "/help",
            "date": 1700000000,
            "from": {"id": 12345, "first_name": "Smoke"},
        },
    }


def _check_status(resp: httpx.Response, expected_family: int = 2) -> None:
    family = resp.status_code // 100
    if family != expected_family:
        raise RuntimeError(
            f"Unexpected status {resp.status_code} for {resp.request.method} {resp.request.url}. "
            f"Body: {(resp.text or '')[:500]}"
        )


def main() -> None:
    setup_logging(level="INFO", json_format=False, app_name="sale-broker-bot-smoke")

    base_url = _base_url()
    timeout = _timeout_seconds()

    logger.info("Starting smoke tests", extra_data={"base_url": base_url, "timeout_seconds": timeout})

    with httpx.Client(timeout=timeout) as client:
        health_url = f"{base_url}/health"
        logger.info(
            "Checking health endpoint",
            extra_data={"url": health_url, "timestamp": datetime.now(timezone.utc).isoformat()},
        )
        resp = client.get(health_url)
        _check_status(resp, expected_family=2)

        telegram_url = f"{base_url}/api/telegram/webhook"
        logger.info("Posting telegram webhook payload", extra_data={"url": telegram_url})
        resp = client.post(telegram_url, json=_telegram_payload(), headers=_webhook_headers())
        _check_status(resp, expected_family=2)

    logger.info("Smoke tests completed successfully")


if __name__ == "__main__":
    main()
