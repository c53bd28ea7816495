from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from mastosync.text import AnnotatedText, Span, parse_entities


class MediaKind(str, Enum):
    PHOTO = "photo"
    VIDEO = "video"
    ANIMATION = "animation"
    STICKER = "sticker"
    VIDEO_NOTE = "video_note"
    AUDIO = "audio"
    DOCUMENT = "document"
    VOICE = "voice"
    TEXT = "text"
    OTHER = "other"


SUPPORTED_MEDIA_KINDS: frozenset[MediaKind] = frozenset(
    {
        MediaKind.PHOTO,
        MediaKind.VIDEO,
        MediaKind.ANIMATION,
        MediaKind.STICKER,
        MediaKind.VIDEO_NOTE,
    }
)

# Animation before document: Telegram sends both fields for GIFs.
_FILE_FIELDS: tuple[tuple[str, MediaKind], ...] = (
    ("animation", MediaKind.ANIMATION),
    ("video", MediaKind.VIDEO),
    ("sticker", MediaKind.STICKER),
    ("video_note", MediaKind.VIDEO_NOTE),
    ("audio", MediaKind.AUDIO),
    ("voice", MediaKind.VOICE),
    ("document", MediaKind.DOCUMENT),
)
_OTHER_FIELDS: tuple[str, ...] = (
    "poll",
    "location",
    "contact",
    "venue",
    "game",
    "dice",
    "story",
    "migrate_to_chat_id",
    "migrate_from_chat_id",
)


@dataclass(frozen=True, slots=True)
class FileRef:
    file_id: str
    file_unique_id: str = ""
    file_size: int | None = None
    width: int | None = None
    height: int | None = None
    file_name: str | None = None
    mime_type: str | None = None

    @property
    def area(self) -> int:
        return (self.width or 0) * (self.height or 0)

    def as_json(self) -> dict[str, Any]:
        return {
            "file_id": self.file_id,
            "file_unique_id": self.file_unique_id,
            "file_size": self.file_size,
            "width": self.width,
            "height": self.height,
            "file_name": self.file_name,
            "mime_type": self.mime_type,
        }

    @classmethod
    def from_json(cls, payload: dict[str, Any]) -> "FileRef":
        return cls(
            file_id=str(payload["file_id"]),
            file_unique_id=str(payload.get("file_unique_id") or ""),
            file_size=payload.get("file_size"),
            width=payload.get("width"),
            height=payload.get("height"),
            file_name=payload.get("file_name"),
            mime_type=payload.get("mime_type"),
        )


@dataclass(frozen=True, slots=True)
class MediaItem:
    kind: MediaKind
    files: tuple[FileRef, ...] = ()
    caption: str | None = None
    caption_spans: tuple[Span, ...] = ()
    has_spoiler: bool = False

    @property
    def file(self) -> FileRef | None:
        if not self.files:
            return None
        if self.kind is MediaKind.PHOTO:
            return max(self.files, key=lambda variant: variant.area)
        return self.files[0]

    @property
    def supported(self) -> bool:
        return self.kind in SUPPORTED_MEDIA_KINDS

    def caption_text(self) -> AnnotatedText | None:
        if self.caption is None:
            return None
        return AnnotatedText(self.caption, list(self.caption_spans))

    def as_json(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "files": [item.as_json() for item in self.files],
            "caption": self.caption,
            "caption_spans": [span.as_json() for span in self.caption_spans],
            "has_spoiler": self.has_spoiler,
        }

    @classmethod
    def from_json(cls, payload: dict[str, Any]) -> "MediaItem":
        return cls(
            kind=MediaKind(payload["kind"]),
            files=tuple(FileRef.from_json(item) for item in payload.get("files") or []),
            caption=payload.get("caption"),
            caption_spans=tuple(Span.from_json(item) for item in payload.get("caption_spans") or []),
            has_spoiler=bool(payload.get("has_spoiler")),
        )


def _file_ref(payload: dict[str, Any]) -> FileRef:
    return FileRef(
        file_id=str(payload.get("file_id") or ""),
        file_unique_id=str(payload.get("file_unique_id") or ""),
        file_size=payload.get("file_size"),
        width=payload.get("width"),
        height=payload.get("height"),
        file_name=payload.get("file_name"),
        mime_type=payload.get("mime_type"),
    )


def media_item_from_message(message: dict[str, Any]) -> MediaItem:
    """Build a MediaItem from a Bot API message object."""

    caption: str | None = message.get("caption")
    caption_spans: tuple[Span, ...] = ()
    if caption is not None:
        caption_spans = tuple(parse_entities(caption, message.get("caption_entities")).spans)
    has_spoiler = bool(message.get("has_media_spoiler"))

    photos = message.get("photo")
    if isinstance(photos, list) and photos:
        return MediaItem(
            kind=MediaKind.PHOTO,
            files=tuple(_file_ref(size) for size in photos if isinstance(size, dict)),
            caption=caption,
            caption_spans=caption_spans,
            has_spoiler=has_spoiler,
        )

    for field_name, kind in _FILE_FIELDS:
        payload = message.get(field_name)
        if isinstance(payload, dict):
            return MediaItem(
                kind=kind,
                files=(_file_ref(payload),),
                caption=caption,
                caption_spans=caption_spans,
                has_spoiler=has_spoiler,
            )

    if "text" in message:
        text = parse_entities(message.get("text") or "", message.get("entities"))
        return MediaItem(kind=MediaKind.TEXT, caption=text.text, caption_spans=tuple(text.spans))

    if any(name in message for name in _OTHER_FIELDS):
        return MediaItem(kind=MediaKind.OTHER)
    return MediaItem(kind=MediaKind.OTHER, caption=caption, caption_spans=caption_spans)


@dataclass(slots=True)
class Media:
    """Every media item of one logical post, in arrival order."""

    items: list[MediaItem] = field(default_factory=list)
    group_id: str | None = None

    def caption(self) -> AnnotatedText | None:
        for item in self.items:
            text = item.caption_text()
            if text is not None:
                return text
        return None

    @property
    def sensitive(self) -> bool:
        return any(item.has_spoiler for item in self.items)

    def unsupported_kinds(self) -> list[MediaKind]:
        return [item.kind for item in self.items if not item.supported]
