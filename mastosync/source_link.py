from __future__ import annotations

from mastosync.models import ChatInfo, MessageEnvelope
from mastosync.text import AnnotatedText


def chat_display_name(chat: ChatInfo) -> str:
    if chat.title:
        return chat.title
    names = [name for name in (chat.first_name, chat.last_name) if name]
    if names:
        return " ".join(names)
    return "Untitled Chat"


def message_url(chat_id: int, username: str | None, message_id: int) -> str | None:
    handle = (username or "").strip().lstrip("@")
    if handle:
        return f"https://t.me/{handle}/{message_id}"

    abs_text = str(abs(chat_id))
    if chat_id < 0 and abs_text.startswith("100") and len(abs_text) > 3:
        return f"https://t.me/c/{abs_text[3:]}/{message_id}"
    return None


def message_public_url(chat: ChatInfo, message_id: int) -> str | None:
    if not chat.username:
        return None
    return message_url(chat.chat_id, chat.username, message_id)


def user_url(username: str | None) -> str | None:
    handle = (username or "").strip().lstrip("@")
    return f"https://t.me/{handle}" if handle else None


def build_source_footer(envelope: MessageEnvelope) -> AnnotatedText:
    """Describe where a message came from as a ``From: ...`` line."""

    footer = AnnotatedText("From: ")
    origin = envelope.forward_origin
    if origin is None:
        footer.append_text_link_fallback(
            chat_display_name(envelope.chat),
            message_public_url(envelope.chat, envelope.message_id),
        )
        return footer

    if origin.chat is not None:
        url = None
        if origin.message_id:
            url = message_public_url(origin.chat, origin.message_id)
        footer.append_text_link_fallback(chat_display_name(origin.chat), url or user_url(origin.chat.username))
        return footer

    name = origin.sender_name or origin.sender_username or "Unknown"
    footer.append_text_link_fallback(name, user_url(origin.sender_username))
    return footer
