"""
Transaction Store - durable record of users and sale submissions

Each write touches exactly one row and commits immediately. The store does
not enforce the status transition table; the approval and reconciliation
services are its only status writers and check transitions themselves.
"""
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    EmptyProofError,
    ErrorCode,
    NotFoundException,
    TransactionNotFoundError,
)
from app.core.logging import get_logger
from app.db.models.transaction import Transaction, TransactionStatus, TransactionType
from app.db.models.user import User
from app.state_machine.attachments import Attachment

logger = get_logger(__name__)


@dataclass
class TransactionDraft:
    """Everything a finished flow hands over to become a Transaction"""

    user_id: int
    category: TransactionType
    amount: str
    counterparty: str
    attachments: list[Attachment] = field(default_factory=list)


class TransactionStore:
    """Row-level access to the users and transactions tables"""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== Transactions ====================

    async def create_transaction(self, draft: TransactionDraft) -> int:
        """Insert a pending transaction and return its id"""
        if not draft.attachments:
            raise EmptyProofError(draft.user_id)

        transaction = Transaction(
            user_id=draft.user_id,
            type=draft.category,
            amount=draft.amount,
            currency_or_card=draft.counterparty,
            status=TransactionStatus.PENDING,
            proof_files=[a.to_dict() for a in draft.attachments],
        )
        self.db.add(transaction)
        await self.db.commit()
        await self.db.refresh(transaction)

        logger.info(
            "Transaction created",
            extra_data={
                "transaction_id": transaction.id,
                "user_id": draft.user_id,
                "type": draft.category.value,
                "attachments": len(draft.attachments),
            },
        )
        return transaction.id

    async def get_transaction(self, transaction_id: int) -> Optional[Transaction]:
        result = await self.db.execute(
            select(Transaction).where(Transaction.id == transaction_id)
        )
        return result.scalar_one_or_none()

    async def get_latest_approved_unsettled(self, user_id: int) -> Optional[Transaction]:
        """Most recently created approved (not yet completed) transaction of a user"""
        result = await self.db.execute(
            select(Transaction)
            .where(
                Transaction.user_id == user_id,
                Transaction.status == TransactionStatus.APPROVED,
            )
            .order_by(Transaction.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def count_approved_unsettled(self, user_id: int) -> int:
        result = await self.db.execute(
            select(func.count(Transaction.id)).where(
                Transaction.user_id == user_id,
                Transaction.status == TransactionStatus.APPROVED,
            )
        )
        return int(result.scalar_one())

    async def set_status(
        self,
        transaction_id: int,
        status: TransactionStatus,
        note: Optional[str],
    ) -> None:
        """Overwrite status and admin_note of one transaction"""
        transaction = await self.get_transaction(transaction_id)
        if transaction is None:
            raise TransactionNotFoundError(transaction_id)

        transaction.status = status
        transaction.admin_note = note
        await self.db.commit()

        logger.info(
            "Transaction status updated",
            extra_data={"transaction_id": transaction_id, "status": status.value},
        )

    # ==================== Users ====================

    async def get_user(self, user_id: int) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def upsert_user_seen(
        self,
        user_id: int,
        username: Optional[str] = None,
        full_name: Optional[str] = None,
    ) -> User:
        """Insert the user on first sight; an existing row is left untouched"""
        user = await self.get_user(user_id)
        if user is not None:
            return user

        user = User(id=user_id, username=username, full_name=full_name or None)
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)

        logger.info("User first seen", extra_data={"user_id": user_id})
        return user

    async def set_account_details(self, user_id: int, details: dict[str, str]) -> None:
        """Replace the stored account details (no merge with the previous mapping)"""
        user = await self.get_user(user_id)
        if user is None:
            raise NotFoundException("User", user_id, error_code=ErrorCode.USER_NOT_FOUND)
        # new dict instance so the JSON column is flagged dirty
        user.account_details = dict(details)
        await self.db.commit()

    async def list_all_user_ids(self) -> list[int]:
        result = await self.db.execute(select(User.id).order_by(User.id))
        return [row for row in result.scalars().all()]
