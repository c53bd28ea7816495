from __future__ import annotations

from mastosync.text import AnnotatedText, SpanKind

_URL_ESCAPES = str.maketrans({"(": "%28", ")": "%29", " ": "%20"})


def _escape_url(url: str) -> str:
    return url.translate(_URL_ESCAPES)


def render_markdown(text: AnnotatedText) -> tuple[str, bool]:
    """Render link spans as inline Markdown.

    Returns the rendered text and whether anything was formatted. Spans are
    walked in reverse list order. Other span kinds are dropped because
    Mastodon servers only render links reliably.
    """

    if not text.spans:
        return text.text, False

    resolved = text.resolve_spans()
    working = text.text
    # (original index, inserted length) for every insertion made so far.
    inserted: list[tuple[int, int]] = []
    formatted = False

    for item in reversed(resolved):
        span = item.span
        if span.kind is not SpanKind.TEXT_LINK or not span.url:
            continue

        # A suffix inserted at our start belongs before our prefix; a prefix
        # inserted at our end belongs after our suffix.
        start = item.start + sum(size for pos, size in inserted if pos <= item.start)
        end = item.end + sum(size for pos, size in inserted if pos < item.end)

        following = working[end] if end < len(working) else None
        suffix = f"]({_escape_url(span.url)})"
        if following is not None and not following.isspace():
            suffix += " "
        working = working[:end] + suffix + working[end:]

        preceding = working[start - 1] if start > 0 else None
        prefix = "[" if preceding is None or preceding.isspace() else " ["
        working = working[:start] + prefix + working[start:]

        inserted.append((item.end, len(suffix)))
        inserted.append((item.start, len(prefix)))
        formatted = True

    return working, formatted
