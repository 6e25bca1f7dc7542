"""
Transaction Approval Service - admin decisions on pending transactions
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    NotAdminError,
    TransactionNotFoundError,
    TransactionStatusError,
)
from app.core.logging import get_logger
from app.db.models.transaction import (
    Transaction,
    TransactionStatus,
    is_valid_status_transition,
)
from app.domain.services.account_details import format_account_details
from app.domain.services.admin_notification_service import AdminNotificationService
from app.domain.services.telegram_gateway import TelegramGateway, deliver_best_effort
from app.domain.services.transaction_store import TransactionStore
from app.core.validation import TextSanitizer

logger = get_logger(__name__)

APPROVE = "approve"
REJECT = "reject"

_TARGET_STATUS = {
    APPROVE: TransactionStatus.APPROVED,
    REJECT: TransactionStatus.REJECTED,
}


@dataclass
class ApprovalResult:
    """Outcome of an approve/reject action; message is shown to the admin"""
    success: bool
    message: str
    transaction: Optional[Transaction] = None
    alert: bool = False
    saved_details: dict[str, str] = field(default_factory=dict)


def parse_decision(data: Optional[str]) -> Optional[tuple[str, int]]:
    """'approve:12' -> ('approve', 12); anything else -> None"""
    if not data or ":" not in data:
        return None
    action, _, raw_id = data.partition(":")
    if action not in _TARGET_STATUS:
        return None
    try:
        return action, int(raw_id)
    except ValueError:
        return None


class TransactionApprovalService:
    """Single place that validates and applies admin decisions"""

    @staticmethod
    async def approve(db: AsyncSession, transaction_id: int, actor_id: int) -> ApprovalResult:
        return await TransactionApprovalService._decide(db, transaction_id, actor_id, APPROVE)

    @staticmethod
    async def reject(db: AsyncSession, transaction_id: int, actor_id: int) -> ApprovalResult:
        return await TransactionApprovalService._decide(db, transaction_id, actor_id, REJECT)

    @staticmethod
    async def _load_pending(
        store: TransactionStore, transaction_id: int, actor_id: int, action: str
    ) -> Transaction:
        if not settings.is_admin(actor_id):
            raise NotAdminError(actor_id, f"{action} transactions")

        transaction = await store.get_transaction(transaction_id)
        if transaction is None:
            raise TransactionNotFoundError(transaction_id)

        if not is_valid_status_transition(transaction.status, _TARGET_STATUS[action]):
            raise TransactionStatusError(
                transaction_id, transaction.status.value, TransactionStatus.PENDING.value
            )
        return transaction

    @staticmethod
    async def _decide(
        db: AsyncSession, transaction_id: int, actor_id: int, action: str
    ) -> ApprovalResult:
        store = TransactionStore(db)
        try:
            transaction = await TransactionApprovalService._load_pending(
                store, transaction_id, actor_id, action
            )
        except NotAdminError:
            logger.warning(
                "Non-admin attempted a transaction decision",
                extra_data={"actor_id": actor_id, "transaction_id": transaction_id, "action": action},
            )
            return ApprovalResult(False, "Only admin can perform this action.", alert=True)
        except TransactionNotFoundError:
            return ApprovalResult(False, "Transaction not found.", alert=True)
        except TransactionStatusError as e:
            current = e.details["current_status"]
            return ApprovalResult(False, f"Transaction {transaction_id} is already {current}.")

        verb = "Approved" if action == APPROVE else "Rejected"
        note = f"{verb} by admin {actor_id} at {datetime.now(timezone.utc).isoformat()}"
        await store.set_status(transaction_id, _TARGET_STATUS[action], note)

        saved_details: dict[str, str] = {}
        if action == APPROVE:
            owner = await store.get_user(transaction.user_id)
            if owner is not None:
                saved_details = owner.saved_account_details

        logger.info(
            f"Transaction {verb.lower()}",
            extra_data={"transaction_id": transaction_id, "actor_id": actor_id},
        )
        return ApprovalResult(True, f"{verb}.", transaction, saved_details=saved_details)

    @staticmethod
    async def notify_after_decision(
        gateway: TelegramGateway,
        result: ApprovalResult,
        action: str,
        admin_chat_id: Optional[int] = None,
        admin_message_id: Optional[int] = None,
        admin_message_has_media: bool = False,
    ) -> None:
        """
        Messages after a successful decision:
        1. the admin's transaction card is updated with the outcome
        2. the owner is told the result (approve: saved details or a prompt)
        3. on approve, an audit summary goes to the admin
        """
        transaction = result.transaction
        if not result.success or transaction is None:
            return

        if admin_chat_id is not None and admin_message_id is not None:
            status_line = f"Transaction {transaction.id} has been {transaction.status.value.upper()} by admin."
            edit = gateway.edit_message_caption if admin_message_has_media else gateway.edit_message_text
            await deliver_best_effort(
                edit(admin_chat_id, admin_message_id, status_line),
                operation="update_admin_view",
                transaction_id=transaction.id,
            )

        if action == REJECT:
            await deliver_best_effort(
                gateway.send_message(
                    transaction.user_id,
                    f"Your transaction (ID: {transaction.id}) was rejected by the admin. "
                    "You may contact support for details.",
                ),
                operation="notify_user_rejected",
                transaction_id=transaction.id,
            )
            return

        if result.saved_details:
            details = TextSanitizer.sanitize_for_html(format_account_details(result.saved_details))
            user_text = (
                f"Your transaction (ID: {transaction.id}) has been approved by admin.\n"
                f"We have these account details saved:\n{details}\n\n"
                f'Reply "{settings.CONFIRMATION_TOKEN}" to use these details, '
                "or send new details in the format key:value each on its own line."
            )
        else:
            user_text = (
                f"Your transaction (ID: {transaction.id}) has been approved by admin.\n"
                "Please send your account details in the format key:value each on its own line, e.g.\n"
                "account_name: John Doe\naccount_number: 0123456789\nbank: Example Bank"
            )
        await deliver_best_effort(
            gateway.send_message(transaction.user_id, user_text),
            operation="notify_user_approved",
            transaction_id=transaction.id,
        )
        await AdminNotificationService(gateway, admin_chat_id).send_approval_summary(
            transaction, result.saved_details
        )
