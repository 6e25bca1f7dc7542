"""
Telegram Gateway - outbound messaging primitives

The workflow services depend only on ``TelegramGateway``; ``TelegramBotGateway``
implements it over the Bot HTTP API. Every outbound notification goes through
``deliver_best_effort`` so a failed send (blocked bot, network error) is logged
and never undoes a state change that was already committed.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Any, Awaitable, Optional

import httpx

from app.core.config import settings
from app.core.exceptions import TelegramError
from app.core.logging import get_logger

logger = get_logger(__name__)

# [[(button text, callback data), ...], ...]
InlineKeyboard = list[list[tuple[str, str]]]
# [["Sell Crypto", "Sell Giftcard"], ["My Account"]]
ReplyKeyboard = list[list[str]]


class TelegramGateway(ABC):
    """
    Messaging primitives used by the bot.

    Implementations raise TelegramError when a call fails.
    """

    @abstractmethod
    async def send_message(
        self,
        chat_id: int | str,
        text: str,
        keyboard: Optional[ReplyKeyboard] = None,
        inline_keyboard: Optional[InlineKeyboard] = None,
    ) -> Optional[dict[str, Any]]:
        """Send an HTML text message, optionally with a reply or inline keyboard."""

    @abstractmethod
    async def send_photo(
        self,
        chat_id: int | str,
        file_id: str,
        caption: Optional[str] = None,
        inline_keyboard: Optional[InlineKeyboard] = None,
    ) -> Optional[dict[str, Any]]:
        """Send one photo by gateway file id."""

    @abstractmethod
    async def send_document(
        self,
        chat_id: int | str,
        file_id: str,
        caption: Optional[str] = None,
        inline_keyboard: Optional[InlineKeyboard] = None,
    ) -> Optional[dict[str, Any]]:
        """Send one document by gateway file id."""

    @abstractmethod
    async def send_media_group(
        self,
        chat_id: int | str,
        media: list[dict[str, str]],
    ) -> Optional[list[dict[str, Any]]]:
        """Send 2-10 items as an album; each item is {"type": ..., "media": file_id}."""

    @abstractmethod
    async def edit_message_text(
        self,
        chat_id: int | str,
        message_id: int,
        text: str,
    ) -> None:
        """Replace the text of a previously sent message."""

    @abstractmethod
    async def edit_message_caption(
        self,
        chat_id: int | str,
        message_id: int,
        caption: str,
    ) -> None:
        """Replace the caption of a previously sent media message."""

    @abstractmethod
    async def answer_callback_query(
        self,
        callback_query_id: str,
        text: Optional[str] = None,
        show_alert: bool = False,
    ) -> None:
        """Acknowledge a button press, optionally with a notice only the presser sees."""


def _inline_markup(inline_keyboard: InlineKeyboard) -> dict[str, Any]:
    return {
        "inline_keyboard": [
            [{"text": text, "callback_data": data} for text, data in row]
            for row in inline_keyboard
        ]
    }


class TelegramBotGateway(TelegramGateway):
    """TelegramGateway over the Telegram Bot HTTP API"""

    def __init__(
        self,
        token: Optional[str],
        base_url: str = "https://api.telegram.org",
        timeout: float = 30.0,
    ):
        self._token = token
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    async def _call(self, method: str, payload: dict[str, Any]) -> Any:
        if not self._token:
            logger.warning(
                "Telegram bot token not configured; skipping call",
                extra_data={"method": method},
            )
            return None

        url = f"{self._base_url}/bot{self._token}/{method}"
        async with httpx.AsyncClient() as client:
            response = await client.post(url, json=payload, timeout=self._timeout)

        if response.status_code != 200:
            raise TelegramError.from_response(method, response)

        body = response.json()
        if not body.get("ok", False):
            raise TelegramError.from_response(
                method, response, message=body.get("description") or f"{method} returned ok=false"
            )
        return body.get("result")

    async def send_message(self, chat_id, text, keyboard=None, inline_keyboard=None):
        payload: dict[str, Any] = {"chat_id": chat_id, "text": text, "parse_mode": "HTML"}
        if inline_keyboard:
            payload["reply_markup"] = _inline_markup(inline_keyboard)
        elif keyboard:
            payload["reply_markup"] = {"keyboard": keyboard, "resize_keyboard": True}
        return await self._call("sendMessage", payload)

    async def send_photo(self, chat_id, file_id, caption=None, inline_keyboard=None):
        payload: dict[str, Any] = {"chat_id": chat_id, "photo": file_id}
        if caption:
            payload["caption"] = caption
            payload["parse_mode"] = "HTML"
        if inline_keyboard:
            payload["reply_markup"] = _inline_markup(inline_keyboard)
        return await self._call("sendPhoto", payload)

    async def send_document(self, chat_id, file_id, caption=None, inline_keyboard=None):
        payload: dict[str, Any] = {"chat_id": chat_id, "document": file_id}
        if caption:
            payload["caption"] = caption
            payload["parse_mode"] = "HTML"
        if inline_keyboard:
            payload["reply_markup"] = _inline_markup(inline_keyboard)
        return await self._call("sendDocument", payload)

    async def send_media_group(self, chat_id, media):
        return await self._call("sendMediaGroup", {"chat_id": chat_id, "media": media})

    async def edit_message_text(self, chat_id, message_id, text):
        await self._call(
            "editMessageText",
            {"chat_id": chat_id, "message_id": message_id, "text": text, "parse_mode": "HTML"},
        )

    async def edit_message_caption(self, chat_id, message_id, caption):
        await self._call(
            "editMessageCaption",
            {"chat_id": chat_id, "message_id": message_id, "caption": caption, "parse_mode": "HTML"},
        )

    async def answer_callback_query(self, callback_query_id, text=None, show_alert=False):
        payload: dict[str, Any] = {"callback_query_id": callback_query_id}
        if text:
            payload["text"] = text
        if show_alert:
            payload["show_alert"] = True
        await self._call("answerCallbackQuery", payload)


async def deliver_best_effort(send: Awaitable[Any], *, operation: str, **context: Any) -> bool:
    """Await an outbound call; log and swallow any failure. Returns True on success."""
    try:
        await send
        return True
    except Exception as e:
        logger.error(
            "Telegram delivery failed",
            extra_data={"operation": operation, "error": str(e), **context},
            exc_info=True,
        )
        return False


@lru_cache
def get_telegram_gateway() -> TelegramGateway:
    """FastAPI dependency: the process-wide Bot API gateway"""
    return TelegramBotGateway(
        token=settings.TELEGRAM_BOT_TOKEN,
        base_url=settings.TELEGRAM_API_BASE_URL,
        timeout=settings.TELEGRAM_TIMEOUT_SECONDS,
    )
