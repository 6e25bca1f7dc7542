"""
Fixtures and helpers for end-to-end conversation tests.

Provides:
- Telegram payload builders (text, photo, image document, button press)
- Short send helpers that assert a 200 and return the JSON body
- DB assertions on transaction status
"""
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.transaction import Transaction, TransactionStatus


WEBHOOK_URL = "/api/telegram/webhook"

# ============================================================================
# Payload builders - Telegram
# ============================================================================

_update_counter = 0


def _next_update_id() -> int:
    """Unique update_id per payload"""
    global _update_counter
    _update_counter += 1
    return _update_counter


def _sender(chat_id: int, name: str, username: Optional[str]) -> dict:
    sender = {"id": chat_id, "first_name": name}
    if username:
        sender["username"] = username
    return sender


def build_tg_message(
    chat_id: int,
    text: str,
    *,
    name: str = "Test",
    username: Optional[str] = None,
) -> dict:
    """Text message payload"""
    uid = _next_update_id()
    return {
        "update_id": uid,
        "message": {
            "message_id": uid,
            "chat": {"id": chat_id, "type": "private"},
            "text": text,
            "date": 1700000000 + uid,
            "from": _sender(chat_id, name, username),
        },
    }


def build_tg_photo(
    chat_id: int,
    file_id: str = "test_photo_file_id",
    *,
    name: str = "Test",
) -> dict:
    """Compressed photo payload; Telegram lists sizes smallest first"""
    uid = _next_update_id()
    return {
        "update_id": uid,
        "message": {
            "message_id": uid,
            "chat": {"id": chat_id, "type": "private"},
            "date": 1700000000 + uid,
            "from": _sender(chat_id, name, None),
            "photo": [
                {"file_id": f"{file_id}_thumb", "file_unique_id": f"t_{uid}", "width": 90, "height": 90},
                {"file_id": file_id, "file_unique_id": f"u_{uid}", "width": 1280, "height": 960},
            ],
        },
    }


def build_tg_document(
    chat_id: int,
    file_id: str = "test_document_file_id",
    *,
    mime_type: str = "image/png",
    name: str = "Test",
) -> dict:
    """Uncompressed file payload"""
    uid = _next_update_id()
    return {
        "update_id": uid,
        "message": {
            "message_id": uid,
            "chat": {"id": chat_id, "type": "private"},
            "date": 1700000000 + uid,
            "from": _sender(chat_id, name, None),
            "document": {
                "file_id": file_id,
                "file_unique_id": f"d_{uid}",
                "file_name": "proof.png",
                "mime_type": mime_type,
            },
        },
    }


def build_tg_callback(
    chat_id: int,
    data: str,
    *,
    name: str = "Admin",
    message_has_photo: bool = False,
) -> dict:
    """Inline button press on a message in chat_id"""
    uid = _next_update_id()
    message = {
        "message_id": uid,
        "chat": {"id": chat_id, "type": "private"},
        "date": 1700000000 + uid,
    }
    if message_has_photo:
        message["photo"] = [{"file_id": "card", "file_unique_id": f"c_{uid}", "width": 10, "height": 10}]
        message["caption"] = "New transaction"
    else:
        message["text"] = "New transaction"
    return {
        "update_id": uid,
        "callback_query": {
            "id": f"cb-{uid}",
            "data": data,
            "from": {"id": chat_id, "first_name": name},
            "message": message,
        },
    }


# ============================================================================
# Send helpers
# ============================================================================

async def _post(client, payload: dict) -> dict:
    resp = await client.post(WEBHOOK_URL, json=payload)
    assert resp.status_code == 200, f"Telegram webhook returned {resp.status_code}: {resp.text}"
    return resp.json()


async def send_tg(client, chat_id: int, text: str, **kwargs) -> dict:
    """Send a text message to the webhook"""
    return await _post(client, build_tg_message(chat_id, text, **kwargs))


async def send_tg_photo(client, chat_id: int, file_id: str, **kwargs) -> dict:
    """Send a photo to the webhook"""
    return await _post(client, build_tg_photo(chat_id, file_id, **kwargs))


async def send_tg_document(client, chat_id: int, file_id: str, **kwargs) -> dict:
    """Send a file to the webhook"""
    return await _post(client, build_tg_document(chat_id, file_id, **kwargs))


async def send_tg_callback(client, chat_id: int, data: str, **kwargs) -> dict:
    """Press an inline button"""
    return await _post(client, build_tg_callback(chat_id, data, **kwargs))


async def sell(client, chat_id: int, intent: str, amount: str, counterparty: str, file_ids: list[str]) -> dict:
    """Walk a full sale and return the /done response"""
    await send_tg(client, chat_id, intent)
    await send_tg(client, chat_id, amount)
    await send_tg(client, chat_id, counterparty)
    for file_id in file_ids:
        await send_tg_photo(client, chat_id, file_id)
    return await send_tg(client, chat_id, "/done")


# ============================================================================
# DB assertions
# ============================================================================

async def get_transaction_status(db: AsyncSession, transaction_id: int) -> TransactionStatus:
    result = await db.execute(
        select(Transaction.status).where(Transaction.id == transaction_id)
    )
    return result.scalar_one()
