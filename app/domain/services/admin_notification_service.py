"""
Admin Notification Service - Notify the admin about sale events

All sends are best-effort: a failure is logged and reported as False, the
caller's committed state is never touched.
"""
from typing import Mapping, Optional

from app.core.config import settings
from app.core.logging import get_logger
from app.core.validation import TextSanitizer
from app.db.models.transaction import Transaction
from app.db.models.user import User
from app.domain.services.account_details import format_account_details
from app.domain.services.telegram_gateway import (
    InlineKeyboard,
    TelegramGateway,
    deliver_best_effort,
)
from app.state_machine.attachments import DOCUMENT, PHOTO, Attachment

logger = get_logger(__name__)

# Telegram albums take 2-10 items of a single kind (photos or documents)
MEDIA_GROUP_LIMIT = 10

# Longer captions are refused by sendPhoto/sendDocument
CAPTION_LIMIT = 1024


def decision_keyboard(transaction_id: int) -> InlineKeyboard:
    return [[
        ("✅ Approve", f"approve:{transaction_id}"),
        ("❌ Reject", f"reject:{transaction_id}"),
    ]]


def _details_block(details: Mapping[str, str]) -> str:
    return TextSanitizer.sanitize_for_html(format_account_details(details))


class AdminNotificationService:
    """Sends transaction cards and audit summaries to the admin chat"""

    def __init__(self, gateway: TelegramGateway, admin_chat_id: Optional[int] = None):
        self.gateway = gateway
        self.admin_chat_id = admin_chat_id if admin_chat_id is not None else settings.TELEGRAM_ADMIN_CHAT_ID

    # ──────────────────────────────────────────────
    #  New transaction → evidence + Approve/Reject
    # ──────────────────────────────────────────────

    @staticmethod
    def build_transaction_card(transaction: Transaction, user: Optional[User]) -> str:
        who = user.display_name if user is not None else str(transaction.user_id)
        return (
            f"🆕 <b>New transaction</b>\n\n"
            f"<b>ID:</b> {transaction.id}\n"
            f"<b>User:</b> {TextSanitizer.sanitize_for_html(who)} (id: {transaction.user_id})\n"
            f"<b>Type:</b> {transaction.type.value}\n"
            f"<b>Amount:</b> {TextSanitizer.sanitize_for_html(transaction.amount)}\n"
            f"<b>Currency/Card:</b> {TextSanitizer.sanitize_for_html(transaction.currency_or_card)}\n"
            f"<b>Proof files:</b> {len(transaction.proof_files or [])}"
        )

    async def notify_new_transaction(self, transaction: Transaction, user: Optional[User]) -> bool:
        """
        Deliver a new pending transaction to the admin.

        One attachment goes out as a single media message whose caption is the
        card and which carries the decision buttons. Several attachments, or a
        card too long for a caption, go out as media followed by the card with
        the buttons as a text message.
        """
        if not self.admin_chat_id:
            logger.warning(
                "Admin chat not configured; new transaction not announced",
                extra_data={"transaction_id": transaction.id},
            )
            return False

        card = self.build_transaction_card(transaction, user)
        keyboard = decision_keyboard(transaction.id)
        attachments = [Attachment.from_dict(item) for item in transaction.proof_files or []]

        if len(attachments) == 1 and len(card) <= CAPTION_LIMIT:
            item = attachments[0]
            send = self.gateway.send_document if item.file_type == DOCUMENT else self.gateway.send_photo
            return await deliver_best_effort(
                send(self.admin_chat_id, item.file_id, caption=card, inline_keyboard=keyboard),
                operation="notify_new_transaction",
                transaction_id=transaction.id,
            )

        await self._send_albums(attachments, transaction.id)
        return await deliver_best_effort(
            self.gateway.send_message(self.admin_chat_id, card, inline_keyboard=keyboard),
            operation="notify_new_transaction",
            transaction_id=transaction.id,
        )

    async def _send_albums(self, attachments: list[Attachment], transaction_id: int) -> None:
        for kind in (PHOTO, DOCUMENT):
            items = [a for a in attachments if a.file_type == kind]
            for start in range(0, len(items), MEDIA_GROUP_LIMIT):
                chunk = items[start:start + MEDIA_GROUP_LIMIT]
                if len(chunk) == 1:
                    send = self.gateway.send_document if kind == DOCUMENT else self.gateway.send_photo
                    sending = send(self.admin_chat_id, chunk[0].file_id)
                else:
                    media = [{"type": kind, "media": a.file_id} for a in chunk]
                    sending = self.gateway.send_media_group(self.admin_chat_id, media)
                await deliver_best_effort(
                    sending,
                    operation="send_transaction_evidence",
                    transaction_id=transaction_id,
                    kind=kind,
                )

    # ──────────────────────────────────────────────
    #  Decision and settlement audit messages
    # ──────────────────────────────────────────────

    async def send_approval_summary(
        self,
        transaction: Transaction,
        saved_details: Mapping[str, str],
    ) -> bool:
        if saved_details:
            text = (
                f"Transaction {transaction.id} approved. User saved account details:\n"
                f"{_details_block(saved_details)}"
            )
        else:
            text = (
                f"Transaction {transaction.id} approved. "
                "User has no saved account details and will be prompted."
            )
        evidence = ", ".join(transaction.proof_file_ids) or "none"
        text += f"\nEvidence files: {TextSanitizer.sanitize_for_html(evidence)}"
        return await self._send_admin_text(text, "send_approval_summary", transaction.id)

    async def notify_transaction_completed(
        self,
        transaction_id: int,
        user_id: int,
        details: Mapping[str, str],
        confirmed_saved: bool,
    ) -> bool:
        if confirmed_saved:
            text = (
                f"User {user_id} confirmed saved details for transaction {transaction_id}:\n"
                f"{_details_block(details)}"
            )
        else:
            text = (
                f"User {user_id} provided account details for transaction {transaction_id}:\n"
                f"{_details_block(details)}"
            )
        return await self._send_admin_text(text, "notify_transaction_completed", transaction_id)

    async def _send_admin_text(self, text: str, operation: str, transaction_id: int) -> bool:
        if not self.admin_chat_id:
            logger.warning(
                "Admin chat not configured; message dropped",
                extra_data={"operation": operation, "transaction_id": transaction_id},
            )
            return False
        return await deliver_best_effort(
            self.gateway.send_message(self.admin_chat_id, text),
            operation=operation,
            transaction_id=transaction_id,
        )
