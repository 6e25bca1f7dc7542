"""
Broadcast Service - admin announcement to every known user
"""
import asyncio
from dataclasses import dataclass
from typing import Optional, Sequence

from app.core.config import settings
from app.core.logging import get_logger, log_async_operation
from app.core.validation import TextSanitizer
from app.domain.services.telegram_gateway import TelegramGateway, deliver_best_effort
from app.state_machine.states import CMD_BROADCAST

logger = get_logger(__name__)

USAGE_TEXT = f"Usage: {CMD_BROADCAST} Your message here"
NOT_ADMIN_TEXT = "Only admin can use this command."


@dataclass
class BroadcastReport:
    attempted: int
    sent: int

    @property
    def failed(self) -> int:
        return self.attempted - self.sent


def extract_broadcast_text(text: str) -> str:
    """'/broadcast hello world' -> 'hello world'"""
    parts = (text or "").strip().split(maxsplit=1)
    return parts[1].strip() if len(parts) > 1 else ""


class BroadcastService:
    """Sequential, paced fan-out of one announcement"""

    def __init__(self, gateway: TelegramGateway, delay_seconds: Optional[float] = None):
        self.gateway = gateway
        self.delay_seconds = settings.BROADCAST_DELAY_SECONDS if delay_seconds is None else delay_seconds

    @log_async_operation("broadcast")
    async def broadcast(self, user_ids: Sequence[int], text: str) -> BroadcastReport:
        """Send to each user in turn; one failed recipient does not stop the rest"""
        message = f"📣 Broadcast:\n\n{TextSanitizer.sanitize_for_html(text)}"
        sent = 0
        for index, user_id in enumerate(user_ids):
            if index and self.delay_seconds:
                await asyncio.sleep(self.delay_seconds)
            delivered = await deliver_best_effort(
                self.gateway.send_message(user_id, message),
                operation="broadcast",
                user_id=user_id,
            )
            if delivered:
                sent += 1

        report = BroadcastReport(attempted=len(user_ids), sent=sent)
        logger.info(
            "Broadcast finished",
            extra_data={"attempted": report.attempted, "sent": report.sent, "failed": report.failed},
        )
        return report

    async def run(self, admin_chat_id: int, user_ids: Sequence[int], text: str) -> BroadcastReport:
        """Broadcast and report the count back to the admin"""
        report = await self.broadcast(user_ids, text)
        await deliver_best_effort(
            self.gateway.send_message(admin_chat_id, f"Broadcast sent to ~{report.sent} users."),
            operation="broadcast_report",
        )
        return report
