"""
Telegram Webhook Handler - Bot Gateway Layer

Every update is classified by exactly one route, checked in this order:
approve/reject buttons, /start, /help, /broadcast, /done, My Account,
sale intents, media, text inside an active flow, post-approval settlement,
and finally the guidance message.
"""
from dataclasses import dataclass
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies.webhook_auth import verify_telegram_webhook_token
from app.core.config import settings
from app.core.logging import get_logger, set_correlation_id
from app.core.validation import TextSanitizer
from app.db.database import get_db
from app.domain.services.account_details import format_account_details
from app.domain.services.admin_notification_service import AdminNotificationService
from app.domain.services.approval_service import (
    APPROVE,
    TransactionApprovalService,
    parse_decision,
)
from app.domain.services.broadcast_service import (
    NOT_ADMIN_TEXT,
    USAGE_TEXT,
    BroadcastService,
    extract_broadcast_text,
)
from app.domain.services.reconciliation_service import PostApprovalReconciler
from app.domain.services.telegram_gateway import (
    TelegramGateway,
    deliver_best_effort,
    get_telegram_gateway,
)
from app.domain.services.transaction_store import TransactionStore
from app.state_machine.attachments import DOCUMENT, PHOTO, Attachment, select_largest_variant
from app.state_machine.handlers import SaleFlowHandler
from app.state_machine.responses import MessageResponse
from app.state_machine.manager import FlowRegistry, get_flow_registry
from app.state_machine.states import (
    BTN_MY_ACCOUNT,
    CMD_BROADCAST,
    CMD_DONE,
    CMD_HELP,
    CMD_START,
    MAIN_MENU_KEYBOARD,
    match_command,
    match_intent,
)

logger = get_logger(__name__)

router = APIRouter()

WELCOME_TEXT = (
    "Welcome! What would you like to do?\n"
    'Tap "Sell Crypto" or "Sell Giftcard" to start a sale, '
    'or "My Account" to view your saved account details.'
)
HELP_TEXT = (
    "Commands:\n"
    "/start - show the main menu\n"
    "Sell Crypto / Sell Giftcard - start a sale\n"
    "My Account - view saved account details\n"
    "/done - submit your sale after uploading proof\n"
    "/help - show this message\n\n"
    "Admin commands:\n"
    "/broadcast &lt;message&gt; - message every user"
)
GUIDANCE_TEXT = (
    'Use "Sell Crypto" or "Sell Giftcard" to start a sale, '
    "or /help to see all commands."
)
NO_ACCOUNT_TEXT = (
    "No account details saved. You will be prompted after your first approved transaction."
)


class TelegramUser(BaseModel):
    id: int
    first_name: str = ""
    last_name: Optional[str] = None
    username: Optional[str] = None


class TelegramChat(BaseModel):
    id: int
    type: str = "private"


class TelegramPhotoSize(BaseModel):
    file_id: str
    file_unique_id: str = ""
    width: int = 0
    height: int = 0
    file_size: Optional[int] = None


class TelegramDocument(BaseModel):
    """Files sent without compression"""
    file_id: str
    file_unique_id: str = ""
    file_name: Optional[str] = None
    mime_type: Optional[str] = None


class TelegramMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message_id: int
    from_user: Optional[TelegramUser] = Field(default=None, alias="from")
    chat: TelegramChat
    text: Optional[str] = None
    caption: Optional[str] = None
    photo: Optional[List[TelegramPhotoSize]] = None
    document: Optional[TelegramDocument] = None
    date: int = 0

    @property
    def has_media(self) -> bool:
        return bool(self.photo or self.document)


class TelegramCallbackQuery(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    from_user: Optional[TelegramUser] = Field(default=None, alias="from")
    message: Optional[TelegramMessage] = None
    data: Optional[str] = None


class TelegramUpdate(BaseModel):
    update_id: int
    message: Optional[TelegramMessage] = None
    callback_query: Optional[TelegramCallbackQuery] = None


@dataclass(frozen=True)
class _InboundTelegramEvent:
    """Normalized inbound update (text, media or button press)"""

    chat_id: int
    user_id: int
    username: str | None
    full_name: str | None
    text: str
    attachment: Attachment | None
    is_callback: bool
    callback_query_id: str | None = None
    callback_message_id: int | None = None
    callback_message_has_media: bool = False
    unsupported_media: bool = False


def _full_name(user: TelegramUser) -> str | None:
    name = " ".join(part for part in (user.first_name, user.last_name) if part)
    return name or None


def _extract_attachment(message: TelegramMessage) -> Attachment | None:
    if message.photo:
        largest = select_largest_variant(message.photo)
        if largest is not None:
            return Attachment(file_id=largest.file_id, file_type=PHOTO)
    if (
        message.document
        and message.document.mime_type
        and message.document.mime_type.lower().startswith("image/")
    ):
        # uncompressed image sent as a file
        return Attachment(file_id=message.document.file_id, file_type=DOCUMENT)
    return None


def _parse_inbound_event(update: TelegramUpdate) -> _InboundTelegramEvent | None:
    if update.callback_query:
        callback = update.callback_query
        if callback.from_user is None:
            return None
        message = callback.message
        return _InboundTelegramEvent(
            chat_id=message.chat.id if message else callback.from_user.id,
            user_id=callback.from_user.id,
            username=callback.from_user.username,
            full_name=_full_name(callback.from_user),
            text=callback.data or "",
            attachment=None,
            is_callback=True,
            callback_query_id=callback.id,
            callback_message_id=message.message_id if message else None,
            callback_message_has_media=bool(message and message.has_media),
        )

    if update.message:
        message = update.message
        sender = message.from_user
        user_id = sender.id if sender else message.chat.id
        attachment = _extract_attachment(message)
        return _InboundTelegramEvent(
            chat_id=message.chat.id,
            user_id=user_id,
            username=sender.username if sender else None,
            full_name=_full_name(sender) if sender else None,
            text=TextSanitizer.remove_control_characters(message.text or "").strip(),
            attachment=attachment,
            is_callback=False,
            unsupported_media=message.has_media and attachment is None,
        )

    return None


async def _send_response(gateway: TelegramGateway, chat_id: int, response: MessageResponse) -> None:
    await deliver_best_effort(
        gateway.send_message(chat_id, response.text, keyboard=response.keyboard),
        operation="reply",
        chat_id=chat_id,
    )


def _queue_response_send(
    background_tasks: BackgroundTasks,
    gateway: TelegramGateway,
    chat_id: int,
    response: MessageResponse,
) -> None:
    background_tasks.add_task(_send_response, gateway, chat_id, response)


async def _answer_callback(
    gateway: TelegramGateway,
    callback_query_id: str,
    text: Optional[str] = None,
    show_alert: bool = False,
) -> None:
    await deliver_best_effort(
        gateway.answer_callback_query(callback_query_id, text, show_alert),
        operation="answer_callback_query",
    )


async def _handle_decision_callback(
    event: _InboundTelegramEvent,
    db: AsyncSession,
    gateway: TelegramGateway,
    background_tasks: BackgroundTasks,
) -> dict:
    decision = parse_decision(event.text)
    if decision is None:
        background_tasks.add_task(_answer_callback, gateway, event.callback_query_id)
        return {"ok": True}

    action, transaction_id = decision
    if action == APPROVE:
        result = await TransactionApprovalService.approve(db, transaction_id, event.user_id)
    else:
        result = await TransactionApprovalService.reject(db, transaction_id, event.user_id)

    background_tasks.add_task(
        _answer_callback, gateway, event.callback_query_id, result.message, result.alert
    )
    if result.success:
        background_tasks.add_task(
            TransactionApprovalService.notify_after_decision,
            gateway,
            result,
            action,
            admin_chat_id=event.chat_id,
            admin_message_id=event.callback_message_id,
            admin_message_has_media=event.callback_message_has_media,
        )
    return {
        "ok": True,
        "admin_action": action,
        "transaction_id": transaction_id,
        "applied": result.success,
    }


async def _handle_broadcast(
    event: _InboundTelegramEvent,
    store: TransactionStore,
    gateway: TelegramGateway,
    background_tasks: BackgroundTasks,
) -> dict:
    if not settings.is_admin(event.user_id):
        _queue_response_send(background_tasks, gateway, event.chat_id, MessageResponse(NOT_ADMIN_TEXT))
        return {"ok": True, "action": "broadcast", "accepted": False}

    text = extract_broadcast_text(event.text)
    if not text:
        _queue_response_send(background_tasks, gateway, event.chat_id, MessageResponse(USAGE_TEXT))
        return {"ok": True, "action": "broadcast", "accepted": False}

    user_ids = await store.list_all_user_ids()
    background_tasks.add_task(BroadcastService(gateway).run, event.chat_id, user_ids, text)
    return {"ok": True, "action": "broadcast", "accepted": True, "recipients": len(user_ids)}


async def _show_account(user_id: int, store: TransactionStore) -> MessageResponse:
    user = await store.get_user(user_id)
    details = user.saved_account_details if user is not None else {}
    if not details:
        return MessageResponse(NO_ACCOUNT_TEXT, keyboard=MAIN_MENU_KEYBOARD)
    rendered = TextSanitizer.sanitize_for_html(format_account_details(details))
    return MessageResponse(f"Saved account details:\n{rendered}", keyboard=MAIN_MENU_KEYBOARD)


@router.post(
    "/webhook",
    summary="Webhook - Telegram (inbound updates)",
    description=(
        "Entry point for Telegram Bot API updates: text, photos, "
        "image documents and callback queries (inline buttons)."
    ),
)
async def telegram_webhook(
    update: TelegramUpdate,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    flows: FlowRegistry = Depends(get_flow_registry),
    gateway: TelegramGateway = Depends(get_telegram_gateway),
    _: None = Depends(verify_telegram_webhook_token),
):
    """
    Handle one Telegram update.
    Replies are queued as background tasks so the webhook answers immediately.
    """
    set_correlation_id(f"tg-{update.update_id}")

    event = _parse_inbound_event(update)
    if event is None:
        if update.callback_query:
            background_tasks.add_task(_answer_callback, gateway, update.callback_query.id)
        logger.debug("Ignoring update without sender", extra_data={"update_id": update.update_id})
        return {"ok": True}

    store = TransactionStore(db)
    await store.upsert_user_seen(event.user_id, event.username, event.full_name)

    if event.is_callback:
        return await _handle_decision_callback(event, db, gateway, background_tasks)

    text = event.text
    sale = SaleFlowHandler(db, flows)

    if not text and event.attachment is None:
        if event.unsupported_media:
            response = sale.handle_unsupported_media(event.user_id)
            _queue_response_send(background_tasks, gateway, event.chat_id, response)
            return {"ok": True, "action": "unsupported_media"}
        return {"ok": True}

    if match_command(text, CMD_START):
        _queue_response_send(
            background_tasks, gateway, event.chat_id,
            MessageResponse(WELCOME_TEXT, keyboard=MAIN_MENU_KEYBOARD),
        )
        return {"ok": True, "action": "start"}

    if match_command(text, CMD_HELP):
        _queue_response_send(background_tasks, gateway, event.chat_id, MessageResponse(HELP_TEXT))
        return {"ok": True, "action": "help"}

    if match_command(text, CMD_BROADCAST):
        return await _handle_broadcast(event, store, gateway, background_tasks)

    if match_command(text, CMD_DONE):
        result = await sale.finish(event.user_id)
        _queue_response_send(background_tasks, gateway, event.chat_id, result.response)
        if result.transaction_id is not None:
            transaction = await store.get_transaction(result.transaction_id)
            user = await store.get_user(event.user_id)
            background_tasks.add_task(
                AdminNotificationService(gateway).notify_new_transaction, transaction, user
            )
        return {"ok": True, "action": "done", "transaction_id": result.transaction_id}

    if text.casefold() == BTN_MY_ACCOUNT.casefold():
        response = await _show_account(event.user_id, store)
        _queue_response_send(background_tasks, gateway, event.chat_id, response)
        return {"ok": True, "action": "my_account"}

    category = match_intent(text) if text else None
    if category is not None:
        response = sale.start_sale(event.user_id, category)
        _queue_response_send(background_tasks, gateway, event.chat_id, response)
        return {"ok": True, "action": "start_sale", "category": category.value}

    if event.attachment is not None:
        response = sale.handle_media(event.user_id, event.attachment)
        _queue_response_send(background_tasks, gateway, event.chat_id, response)
        return {"ok": True, "action": "media"}

    # an active flow always owns free text, even with approved transactions waiting
    if sale.has_active_flow(event.user_id):
        response = await sale.handle_text(event.user_id, text)
        _queue_response_send(background_tasks, gateway, event.chat_id, response)
        return {"ok": True, "action": "flow", "step": flows.current_step(event.user_id)}

    outcome = await PostApprovalReconciler(db).handle(event.user_id, text)
    if outcome is not None:
        _queue_response_send(background_tasks, gateway, event.chat_id, outcome.response)
        if outcome.completed:
            background_tasks.add_task(
                AdminNotificationService(gateway).notify_transaction_completed,
                outcome.transaction_id,
                event.user_id,
                outcome.details,
                outcome.confirmed_saved,
            )
        return {
            "ok": True,
            "action": "settlement",
            "transaction_id": outcome.transaction_id,
            "completed": outcome.completed,
        }

    _queue_response_send(
        background_tasks, gateway, event.chat_id,
        MessageResponse(GUIDANCE_TEXT, keyboard=MAIN_MENU_KEYBOARD),
    )
    return {"ok": True, "action": "guidance"}
