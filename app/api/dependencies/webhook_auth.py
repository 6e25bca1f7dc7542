"""
Verification of inbound Telegram webhook requests.

Telegram sends the ``X-Telegram-Bot-Api-Secret-Token`` header with every
webhook request when ``secret_token`` was passed to ``setWebhook``.
This dependency checks the header against the configured token.

Usage:
    @router.post("/webhook")
    async def telegram_webhook(
        ...,
        _: None = Depends(verify_telegram_webhook_token),
    ):
        ...
"""
import hmac

from fastapi import Header, HTTPException, status

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)


async def verify_telegram_webhook_token(
    x_telegram_bot_api_secret_token: str | None = Header(None),
) -> None:
    """
    Verify ``X-Telegram-Bot-Api-Secret-Token`` on Telegram webhook requests.

    - ``TELEGRAM_WEBHOOK_SECRET_TOKEN`` unset: no check (warned at startup).
    - header missing or different: 403 Forbidden.
    """
    expected = settings.TELEGRAM_WEBHOOK_SECRET_TOKEN
    if not expected:
        return

    if not x_telegram_bot_api_secret_token:
        logger.warning("Webhook request without X-Telegram-Bot-Api-Secret-Token header")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Missing webhook secret token",
        )

    # constant-time comparison
    if not hmac.compare_digest(x_telegram_bot_api_secret_token, expected):
        logger.warning("Webhook request with wrong secret token")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid webhook secret token",
        )
