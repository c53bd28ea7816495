from __future__ import annotations

from bisect import bisect_left
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any


class SpanKind(str, Enum):
    BOLD = "bold"
    ITALIC = "italic"
    UNDERLINE = "underline"
    STRIKETHROUGH = "strikethrough"
    SPOILER = "spoiler"
    CODE = "code"
    PRE = "pre"
    BLOCKQUOTE = "blockquote"
    EXPANDABLE_BLOCKQUOTE = "expandable_blockquote"
    TEXT_LINK = "text_link"
    TEXT_MENTION = "text_mention"
    MENTION = "mention"
    HASHTAG = "hashtag"
    CASHTAG = "cashtag"
    BOT_COMMAND = "bot_command"
    URL = "url"
    EMAIL = "email"
    PHONE_NUMBER = "phone_number"
    CUSTOM_EMOJI = "custom_emoji"


def utf16_len(text: str) -> int:
    # Characters outside the BMP take a surrogate pair in UTF-16.
    return len(text) + sum(1 for char in text if ord(char) > 0xFFFF)


@dataclass(frozen=True, slots=True)
class Span:
    kind: SpanKind
    offset: int
    length: int
    url: str | None = None

    @property
    def end(self) -> int:
        return self.offset + self.length

    def shifted(self, delta: int) -> "Span":
        return replace(self, offset=self.offset + delta)

    def as_json(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "type": self.kind.value,
            "offset": self.offset,
            "length": self.length,
        }
        if self.url is not None:
            payload["url"] = self.url
        return payload

    @classmethod
    def from_json(cls, payload: dict[str, Any]) -> "Span":
        return cls(
            kind=SpanKind(payload["type"]),
            offset=int(payload["offset"]),
            length=int(payload["length"]),
            url=payload.get("url"),
        )


@dataclass(frozen=True, slots=True)
class ResolvedSpan:
    span: Span
    start: int
    end: int


@dataclass(slots=True)
class AnnotatedText:
    """Text plus formatting spans addressed in UTF-16 code units.

    Spans keep append order. Every operation that moves text shifts the
    affected spans by the same number of code units, so each range stays
    valid against ``text``.
    """

    text: str = ""
    spans: list[Span] = field(default_factory=list)

    def __len__(self) -> int:
        return utf16_len(self.text)

    def is_empty(self) -> bool:
        return not self.text

    def copy(self) -> "AnnotatedText":
        return AnnotatedText(self.text, list(self.spans))

    def append(self, other: "AnnotatedText") -> None:
        delta = utf16_len(self.text)
        self.spans.extend(span.shifted(delta) for span in other.spans)
        self.text += other.text

    def prepend(self, other: "AnnotatedText") -> None:
        delta = utf16_len(other.text)
        self.spans = [*other.spans, *(span.shifted(delta) for span in self.spans)]
        self.text = other.text + self.text

    def append_text(self, text: str) -> None:
        self.text += text

    def prepend_text(self, text: str) -> None:
        self.prepend(AnnotatedText(text))

    def append_text_with_span(self, text: str, kind: SpanKind, url: str | None = None) -> None:
        self.append(_single_span(text, kind, url))

    def prepend_text_with_span(self, text: str, kind: SpanKind, url: str | None = None) -> None:
        self.prepend(_single_span(text, kind, url))

    def append_text_link(self, text: str, url: str) -> None:
        self.append_text_with_span(text, SpanKind.TEXT_LINK, url=url)

    def append_text_link_fallback(self, text: str, url: str | None) -> None:
        if url:
            self.append_text_link(text, url)
        else:
            self.append_text(text)

    def resolve_spans(self) -> list[ResolvedSpan]:
        """Map every span to Python string indices, keeping list order."""

        # boundaries[i] is the code-unit offset where character i starts.
        boundaries: list[int] = []
        position = 0
        for char in self.text:
            boundaries.append(position)
            position += 2 if ord(char) > 0xFFFF else 1

        resolved: list[ResolvedSpan] = []
        for span in self.spans:
            if span.offset < 0 or span.length < 0 or span.end > position:
                raise ValueError(f"span out of range: {span!r} for text of length {position}")
            start = bisect_left(boundaries, span.offset)
            end = bisect_left(boundaries, span.end)
            resolved.append(ResolvedSpan(span=span, start=start, end=end))
        return resolved


def _single_span(text: str, kind: SpanKind, url: str | None) -> AnnotatedText:
    return AnnotatedText(text, [Span(kind=kind, offset=0, length=utf16_len(text), url=url)])


def parse_entities(text: str, entities: list[dict[str, Any]] | None) -> AnnotatedText:
    """Build an AnnotatedText from a Bot API ``text``/``entities`` pair.

    Entity types this module does not know are skipped.
    """

    spans: list[Span] = []
    known = {kind.value for kind in SpanKind}
    for entity in entities or []:
        if not isinstance(entity, dict) or entity.get("type") not in known:
            continue
        spans.append(
            Span(
                kind=SpanKind(entity["type"]),
                offset=int(entity.get("offset") or 0),
                length=int(entity.get("length") or 0),
                url=entity.get("url"),
            )
        )
    return AnnotatedText(text or "", spans)
