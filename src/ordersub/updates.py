"""Translate Telegram update payloads into inbound events."""

from typing import Any

from .models import InboundEvent


def parse_update(update: dict[str, Any]) -> InboundEvent | None:
    """
    Build an InboundEvent from a Telegram update.

    Returns None for update types the bot doesn't handle (edited messages,
    channel posts, messages without a chat, ...).
    """
    query = update.get("callback_query")
    if query:
        message = query.get("message") or {}
        chat_id = (message.get("chat") or {}).get("id")
        if chat_id is None:
            return None
        return InboundEvent(
            chat_id=str(chat_id),
            callback_data=query.get("data") or "",
            callback_id=query.get("id"),
            message_id=message.get("message_id"),
        )

    message = update.get("message")
    if not message:
        return None
    chat_id = (message.get("chat") or {}).get("id")
    if chat_id is None:
        return None

    file_id = None
    photos = message.get("photo") or []
    if photos:
        # Telegram lists photo sizes ascending; keep the largest.
        file_id = photos[-1].get("file_id")
    elif message.get("document"):
        file_id = message["document"].get("file_id")

    return InboundEvent(
        chat_id=str(chat_id),
        text=(message.get("text") or message.get("caption") or "").strip(),
        file_id=file_id,
        message_id=message.get("message_id"),
    )
