"""
Post-Approval Reconciler - settle approved transactions with account details

Runs only for text that no other handler claimed. A user with an approved,
not yet completed transaction either confirms the details already on file
or sends fresh ``key: value`` lines; either way the most recently created
approved transaction becomes completed.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.logging import get_logger
from app.core.validation import TextSanitizer
from app.db.models.transaction import TransactionStatus
from app.domain.services.account_details import (
    format_account_details,
    looks_like_account_details,
    parse_account_details,
)
from app.domain.services.transaction_store import TransactionStore
from app.state_machine.responses import MessageResponse
from app.state_machine.states import MAIN_MENU_KEYBOARD

logger = get_logger(__name__)

PARSE_FAILURE_TEXT = "Could not parse account details. Use format key:value each on its own line."


@dataclass
class ReconcileOutcome:
    """What the reconciler did with a message it claimed"""

    response: MessageResponse
    transaction_id: int
    completed: bool = False
    confirmed_saved: bool = False
    details: dict[str, str] = field(default_factory=dict)


class PostApprovalReconciler:
    """Consumes free text from users who owe account details"""

    def __init__(self, db: AsyncSession, confirmation_token: Optional[str] = None):
        self.store = TransactionStore(db)
        self.confirmation_token = confirmation_token or settings.CONFIRMATION_TOKEN

    def _is_confirmation(self, text: str) -> bool:
        return text.strip().casefold() == self.confirmation_token.casefold()

    async def handle(self, user_id: int, text: str) -> Optional[ReconcileOutcome]:
        """
        Returns None when the message is not for the reconciler: the user has
        no approved unsettled transaction, or the text is neither the
        confirmation token (with details on file) nor looks like details.
        """
        transaction = await self.store.get_latest_approved_unsettled(user_id)
        if transaction is None:
            return None

        user = await self.store.get_user(user_id)
        saved = user.saved_account_details if user is not None else {}

        if saved and self._is_confirmation(text):
            now = datetime.now(timezone.utc).isoformat()
            await self.store.set_status(
                transaction.id,
                TransactionStatus.COMPLETED,
                f"User confirmed saved details at {now}",
            )
            logger.info(
                "Transaction settled with saved details",
                extra_data={"transaction_id": transaction.id, "user_id": user_id},
            )
            return await self._completed(user_id, transaction.id, saved, confirmed_saved=True)

        if not looks_like_account_details(text):
            return None

        details = parse_account_details(text)
        if not details:
            return ReconcileOutcome(
                response=MessageResponse(PARSE_FAILURE_TEXT),
                transaction_id=transaction.id,
            )

        await self.store.set_account_details(user_id, details)
        now = datetime.now(timezone.utc).isoformat()
        await self.store.set_status(
            transaction.id,
            TransactionStatus.COMPLETED,
            f"User provided details at {now}",
        )
        logger.info(
            "Transaction settled with new details",
            extra_data={"transaction_id": transaction.id, "user_id": user_id, "keys": len(details)},
        )
        return await self._completed(user_id, transaction.id, details, confirmed_saved=False)

    async def _completed(
        self,
        user_id: int,
        transaction_id: int,
        details: dict[str, str],
        confirmed_saved: bool,
    ) -> ReconcileOutcome:
        if confirmed_saved:
            text = f"Thanks! Transaction {transaction_id} is completed using your saved details."
        else:
            text = (
                f"Thanks! Your account details were saved and transaction {transaction_id} is completed.\n"
                f"{TextSanitizer.sanitize_for_html(format_account_details(details))}"
            )

        remaining = await self.store.count_approved_unsettled(user_id)
        if remaining:
            text += (
                f"\n\nYou have {remaining} more approved transaction(s) awaiting account details. "
                f'Reply "{self.confirmation_token}" or send details again to settle the next one.'
            )

        return ReconcileOutcome(
            response=MessageResponse(text, keyboard=MAIN_MENU_KEYBOARD),
            transaction_id=transaction_id,
            completed=True,
            confirmed_saved=confirmed_saved,
            details=dict(details),
        )
