"""Messaging gateway: the chat transport as seen by the bot."""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from .errors import GatewayError
from .models import InlineKeyboard, Keyboard, ReplyKeyboard

logger = logging.getLogger(__name__)

TELEGRAM_API = "https://api.telegram.org"


class MessagingGateway(Protocol):
    """Protocol for chat transports."""

    def send_message(self, chat_id: str, text: str, keyboard: Keyboard | None = None) -> int | None:
        """Send a message and return its message ID when the transport reports one."""
        ...

    def edit_message(self, chat_id: str, message_id: int, text: str) -> None:
        """Replace the text of a previously sent message."""
        ...

    def get_file_url(self, file_id: str) -> str | None:
        """Resolve an uploaded file to a downloadable URL."""
        ...

    def answer_callback(self, callback_id: str) -> None:
        """Acknowledge a button press."""
        ...


def serialize_keyboard(keyboard: Keyboard) -> dict[str, Any]:
    """Render a keyboard as a Telegram ``reply_markup`` object."""
    if isinstance(keyboard, ReplyKeyboard):
        return {
            "keyboard": [[{"text": label} for label in row] for row in keyboard.rows],
            "resize_keyboard": True,
        }
    if isinstance(keyboard, InlineKeyboard):
        return {
            "inline_keyboard": [
                [{"text": b.label, "callback_data": b.callback} for b in row]
                for row in keyboard.rows
            ]
        }
    raise TypeError(f"Unsupported keyboard: {type(keyboard).__name__}")


class TelegramGateway:
    """MessagingGateway over the Telegram Bot API."""

    def __init__(
        self,
        token: str,
        timeout: float = 10.0,
        base_url: str = TELEGRAM_API,
        transport: httpx.BaseTransport | None = None,
    ):
        self._token = token
        self._base_url = base_url.rstrip("/")
        self._client = httpx.Client(timeout=timeout, transport=transport)

    def close(self) -> None:
        self._client.close()

    def _call(self, method: str, payload: dict[str, Any]) -> Any:
        url = f"{self._base_url}/bot{self._token}/{method}"
        try:
            response = self._client.post(url, json=payload)
        except httpx.TimeoutException as e:
            raise GatewayError(method, "timed out") from e
        except httpx.HTTPError as e:
            raise GatewayError(method, str(e)) from e

        try:
            data = response.json()
        except ValueError:
            data = {}
        if response.status_code != 200 or not data.get("ok"):
            description = data.get("description") or f"HTTP {response.status_code}"
            raise GatewayError(method, description)
        return data.get("result")

    def send_message(self, chat_id: str, text: str, keyboard: Keyboard | None = None) -> int | None:
        payload: dict[str, Any] = {"chat_id": chat_id, "text": text}
        if keyboard is not None:
            payload["reply_markup"] = serialize_keyboard(keyboard)
        result = self._call("sendMessage", payload)
        return result.get("message_id") if isinstance(result, dict) else None

    def edit_message(self, chat_id: str, message_id: int, text: str) -> None:
        self._call(
            "editMessageText",
            {"chat_id": chat_id, "message_id": message_id, "text": text},
        )

    def get_file_url(self, file_id: str) -> str | None:
        result = self._call("getFile", {"file_id": file_id})
        path = result.get("file_path") if isinstance(result, dict) else None
        if not path:
            return None
        return f"{self._base_url}/file/bot{self._token}/{path}"

    def answer_callback(self, callback_id: str) -> None:
        self._call("answerCallbackQuery", {"callback_query_id": callback_id})
