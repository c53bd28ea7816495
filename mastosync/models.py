from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from mastosync.media import MediaItem, MediaKind, media_item_from_message
from mastosync.text import AnnotatedText, parse_entities


@dataclass(slots=True)
class ChatInfo:
    chat_id: int
    chat_type: str = ""
    title: str | None = None
    username: str | None = None
    first_name: str | None = None
    last_name: str | None = None

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "ChatInfo":
        return cls(
            chat_id=int(payload.get("id") or 0),
            chat_type=str(payload.get("type") or ""),
            title=payload.get("title"),
            username=payload.get("username"),
            first_name=payload.get("first_name"),
            last_name=payload.get("last_name"),
        )


@dataclass(slots=True)
class ForwardOrigin:
    sender_name: str | None = None
    sender_username: str | None = None
    chat: ChatInfo | None = None
    message_id: int | None = None

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "ForwardOrigin":
        origin_type = payload.get("type")
        if origin_type == "user":
            user = payload.get("sender_user") or {}
            names = [user.get("first_name"), user.get("last_name")]
            return cls(
                sender_name=" ".join(name for name in names if name) or None,
                sender_username=user.get("username"),
            )
        if origin_type == "hidden_user":
            return cls(sender_name=payload.get("sender_user_name"))
        chat = payload.get("chat") or payload.get("sender_chat") or {}
        return cls(
            chat=ChatInfo.from_api(chat),
            message_id=payload.get("message_id"),
        )


@dataclass(slots=True)
class MessageEnvelope:
    chat: ChatInfo
    message_id: int
    sender_id: int | None
    text: AnnotatedText
    media: MediaItem
    media_group_id: str | None = None
    forward_origin: ForwardOrigin | None = None
    reply_to: "MessageEnvelope | None" = None

    @property
    def chat_id(self) -> int:
        return self.chat.chat_id

    @classmethod
    def from_api(cls, message: dict[str, Any]) -> "MessageEnvelope":
        sender = message.get("from") or {}
        text = parse_entities(message.get("text") or "", message.get("entities"))
        forward = message.get("forward_origin")
        reply = message.get("reply_to_message")
        return cls(
            chat=ChatInfo.from_api(message.get("chat") or {}),
            message_id=int(message.get("message_id") or 0),
            sender_id=int(sender["id"]) if sender.get("id") else None,
            text=text,
            media=media_item_from_message(message),
            media_group_id=message.get("media_group_id"),
            forward_origin=ForwardOrigin.from_api(forward) if isinstance(forward, dict) else None,
            reply_to=cls.from_api(reply) if isinstance(reply, dict) else None,
        )

    def is_text_only(self) -> bool:
        return self.media.kind is MediaKind.TEXT


class Visibility(str, Enum):
    PUBLIC = "public"


@dataclass(slots=True)
class PendingPost:
    body: str
    language: str
    visibility: Visibility = Visibility.PUBLIC
    media_ids: list[str] = field(default_factory=list)
    sensitive: bool = False
    content_type: str = "text/plain"

    def as_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "status": self.body,
            "visibility": self.visibility.value,
            "language": self.language,
            "sensitive": self.sensitive,
            "content_type": self.content_type,
        }
        if self.media_ids:
            payload["media_ids"] = list(self.media_ids)
        return payload
