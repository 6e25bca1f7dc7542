"""
Transaction Model - Sale submissions and their approval lifecycle
"""
import enum
from datetime import datetime
from sqlalchemy import Column, Integer, BigInteger, DateTime, Enum as SQLEnum, ForeignKey, Text, JSON

from app.db.database import Base


class TransactionType(str, enum.Enum):
    CRYPTO = "crypto"
    GIFTCARD = "giftcard"


class TransactionStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


# pending -> approved | rejected, approved -> completed; rejected/completed are terminal
ALLOWED_STATUS_TRANSITIONS: dict[TransactionStatus, frozenset[TransactionStatus]] = {
    TransactionStatus.PENDING: frozenset({TransactionStatus.APPROVED, TransactionStatus.REJECTED}),
    TransactionStatus.APPROVED: frozenset({TransactionStatus.COMPLETED}),
    TransactionStatus.REJECTED: frozenset(),
    TransactionStatus.COMPLETED: frozenset(),
}


def is_valid_status_transition(current: TransactionStatus, target: TransactionStatus) -> bool:
    return target in ALLOWED_STATUS_TRANSITIONS.get(current, frozenset())


def _enum_values(enum_cls):
    # store 'pending' rather than 'PENDING'
    return [e.value for e in enum_cls]


class Transaction(Base):
    """One sale submission"""

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(BigInteger, ForeignKey("users.id"), nullable=False, index=True)

    type = Column(
        SQLEnum(TransactionType, name="transaction_type", native_enum=False, values_callable=_enum_values),
        nullable=False,
    )
    # Free text exactly as typed by the user
    amount = Column(Text, nullable=False)
    currency_or_card = Column(Text, nullable=False)

    status = Column(
        SQLEnum(TransactionStatus, name="transaction_status", native_enum=False, values_callable=_enum_values),
        nullable=False,
        default=TransactionStatus.PENDING,
        index=True,
    )

    # [{"file_id": ..., "file_type": "photo", "date": "<iso>"}, ...]
    proof_files = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime, default=datetime.utcnow)
    admin_note = Column(Text, nullable=True)

    @property
    def proof_file_ids(self) -> list[str]:
        return [p.get("file_id", "") for p in (self.proof_files or []) if isinstance(p, dict)]
