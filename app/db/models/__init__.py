"""
Database Models
"""
from app.db.models.user import User
from app.db.models.transaction import Transaction, TransactionStatus, TransactionType

__all__ = [
    "User",
    "Transaction",
    "TransactionStatus",
    "TransactionType",
]
