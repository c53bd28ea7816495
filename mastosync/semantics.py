from __future__ import annotations

from mastosync.text import AnnotatedText, SpanKind

# Tokens that skew language detection without carrying prose.
NON_SEMANTIC_KINDS: frozenset[SpanKind] = frozenset(
    {
        SpanKind.MENTION,
        SpanKind.HASHTAG,
        SpanKind.CASHTAG,
        SpanKind.BOT_COMMAND,
        SpanKind.URL,
        SpanKind.EMAIL,
        SpanKind.PHONE_NUMBER,
        SpanKind.PRE,
        SpanKind.CUSTOM_EMOJI,
    }
)


def extract_semantics(text: AnnotatedText) -> str:
    """Return ``text`` with non-semantic spans cut out.

    Ranges are deleted back to front by offset, so every range not yet
    visited still sits at its original position.
    """

    ranges = sorted(
        (item.start, item.end)
        for item in text.resolve_spans()
        if item.span.kind in NON_SEMANTIC_KINDS and item.end > item.start
    )

    merged: list[list[int]] = []
    for start, end in ranges:
        if merged and start <= merged[-1][1]:
            merged[-1][1] = max(merged[-1][1], end)
        else:
            merged.append([start, end])

    result = text.text
    for start, end in reversed(merged):
        result = result[:start] + result[end:]
    return result


def has_signal(text: str) -> bool:
    return bool(text.strip())
