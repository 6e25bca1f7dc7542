"""
Pytest Configuration and Fixtures

Provides fixtures for:
- Database sessions (async, in-memory SQLite)
- A recording Telegram gateway in place of the Bot API
- The per-test flow registry
- Test data factories
"""
# The settings validator requires an admin id when DEBUG=False; set it before importing app
import os
os.environ.setdefault("TELEGRAM_ADMIN_CHAT_ID", "424242")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("TELEGRAM_WEBHOOK_SECRET_TOKEN", "")

import pytest
from dataclasses import dataclass, field
from typing import Any, AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import settings
from app.core.exceptions import TelegramError
from app.db.database import Base, get_db
from app.db.models.transaction import Transaction, TransactionStatus, TransactionType
from app.db.models.user import User
from app.domain.services.telegram_gateway import TelegramGateway, get_telegram_gateway
from app.domain.services.transaction_store import TransactionStore
from app.state_machine.attachments import Attachment
from app.state_machine.manager import FlowRegistry, get_flow_registry
from app.main import app


# Test database URL (SQLite in memory for fast tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

ADMIN_ID = settings.TELEGRAM_ADMIN_CHAT_ID
USER_ID = 1001
OTHER_USER_ID = 1002


@pytest.fixture(scope="function")
async def async_engine():
    """Create async test database engine"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
async def db_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create async database session for tests"""
    async_session_maker = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )

    async with async_session_maker() as session:
        yield session
        await session.rollback()


# ============================================================================
# Recording Telegram gateway
# ============================================================================

@dataclass
class SentCall:
    method: str
    chat_id: Any = None
    payload: dict[str, Any] = field(default_factory=dict)


class RecordingGateway(TelegramGateway):
    """Records every outbound call; chat ids in fail_chat_ids raise TelegramError"""

    def __init__(self) -> None:
        self.calls: list[SentCall] = []
        self.fail_chat_ids: set[Any] = set()
        self.fail_methods: set[str] = set()

    def _record(self, method: str, chat_id: Any = None, **payload: Any) -> None:
        self.calls.append(SentCall(method, chat_id, payload))
        if method in self.fail_methods or (chat_id is not None and chat_id in self.fail_chat_ids):
            raise TelegramError(f"{method} failed", details={"chat_id": chat_id})

    async def send_message(self, chat_id, text, keyboard=None, inline_keyboard=None):
        self._record("send_message", chat_id, text=text, keyboard=keyboard, inline_keyboard=inline_keyboard)
        return {"message_id": len(self.calls)}

    async def send_photo(self, chat_id, file_id, caption=None, inline_keyboard=None):
        self._record("send_photo", chat_id, file_id=file_id, caption=caption, inline_keyboard=inline_keyboard)
        return {"message_id": len(self.calls)}

    async def send_document(self, chat_id, file_id, caption=None, inline_keyboard=None):
        self._record("send_document", chat_id, file_id=file_id, caption=caption, inline_keyboard=inline_keyboard)
        return {"message_id": len(self.calls)}

    async def send_media_group(self, chat_id, media):
        self._record("send_media_group", chat_id, media=media)
        return [{"message_id": len(self.calls)}]

    async def edit_message_text(self, chat_id, message_id, text):
        self._record("edit_message_text", chat_id, message_id=message_id, text=text)

    async def edit_message_caption(self, chat_id, message_id, caption):
        self._record("edit_message_caption", chat_id, message_id=message_id, caption=caption)

    async def answer_callback_query(self, callback_query_id, text=None, show_alert=False):
        self._record("answer_callback_query", None, callback_query_id=callback_query_id, text=text, show_alert=show_alert)

    # ---- helpers for assertions ----

    def messages_to(self, chat_id: Any) -> list[str]:
        return [c.payload["text"] for c in self.calls if c.method == "send_message" and c.chat_id == chat_id]

    def last_message_to(self, chat_id: Any) -> Optional[str]:
        messages = self.messages_to(chat_id)
        return messages[-1] if messages else None

    def calls_of(self, method: str) -> list[SentCall]:
        return [c for c in self.calls if c.method == method]

    def reset(self) -> None:
        self.calls.clear()


@pytest.fixture
def gateway() -> RecordingGateway:
    return RecordingGateway()


@pytest.fixture
def flow_registry() -> FlowRegistry:
    return FlowRegistry()


@pytest.fixture(scope="function")
async def test_client(db_session: AsyncSession, gateway: RecordingGateway, flow_registry: FlowRegistry):
    """Create test client with database, gateway and flow registry overrides"""
    from httpx import AsyncClient, ASGITransport

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_telegram_gateway] = lambda: gateway
    app.dependency_overrides[get_flow_registry] = lambda: flow_registry

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def no_broadcast_delay(monkeypatch):
    """Broadcast pacing is exercised explicitly where it matters"""
    monkeypatch.setattr(settings, "BROADCAST_DELAY_SECONDS", 0.0)
    yield


# ============================================================================
# Test Data Factories
# ============================================================================

@pytest.fixture
def store(db_session: AsyncSession) -> TransactionStore:
    return TransactionStore(db_session)


@pytest.fixture
def user_factory(db_session: AsyncSession):
    """Factory for creating test users"""
    async def _create_user(
        id: int = USER_ID,
        username: str | None = "seller",
        full_name: str | None = "Test Seller",
        account_details: dict[str, str] | None = None,
    ) -> User:
        user = User(
            id=id,
            username=username,
            full_name=full_name,
            account_details=account_details,
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _create_user


@pytest.fixture
def transaction_factory(db_session: AsyncSession):
    """Factory for creating test transactions"""
    async def _create_transaction(
        user_id: int = USER_ID,
        type: TransactionType = TransactionType.CRYPTO,
        amount: str = "$50",
        currency_or_card: str = "USDT",
        status: TransactionStatus = TransactionStatus.PENDING,
        file_ids: tuple[str, ...] = ("proof-1",),
    ) -> Transaction:
        transaction = Transaction(
            user_id=user_id,
            type=type,
            amount=amount,
            currency_or_card=currency_or_card,
            status=status,
            proof_files=[Attachment(file_id=f).to_dict() for f in file_ids],
        )
        db_session.add(transaction)
        await db_session.commit()
        await db_session.refresh(transaction)
        return transaction

    return _create_transaction
