"""
User Model - Chat participants seen by the bot
"""
from datetime import datetime
from sqlalchemy import Column, BigInteger, String, DateTime, JSON

from app.db.database import Base


class User(Base):
    """Telegram user; the primary key is the Telegram user id"""

    __tablename__ = "users"

    id = Column(BigInteger, primary_key=True, autoincrement=False)
    username = Column(String(64), nullable=True)
    full_name = Column(String(150), nullable=True)

    # Settlement information as a flat {key: value} mapping, replaced wholesale
    account_details = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    @property
    def display_name(self) -> str:
        """Best-effort label, e.g. 'John Doe (@john)'"""
        name = (self.full_name or "").strip()
        handle = f"@{self.username}" if self.username else "@no_username"
        return f"{name} ({handle})" if name else handle

    @property
    def saved_account_details(self) -> dict[str, str]:
        """Stored details as a str->str mapping; empty when none are saved"""
        details = self.account_details
        if not isinstance(details, dict):
            return {}
        return {str(k): str(v) for k, v in details.items()}
