from mastosync.markdown import render_markdown
from mastosync.text import AnnotatedText, Span, SpanKind


def test_render_without_spans_returns_text_unchanged() -> None:
    text = AnnotatedText("plain *text* [not] a link")
    assert render_markdown(text) == ("plain *text* [not] a link", False)


def test_render_link_followed_by_text_gets_separating_space() -> None:
    text = AnnotatedText()
    text.append_text_link("link", "https://example.com/")
    text.append_text("def\n")

    assert render_markdown(text) == ("[link](https://example.com/) def\n", True)


def test_render_link_after_word_gets_leading_space() -> None:
    text = AnnotatedText("see")
    text.append_text_link("here", "https://example.com/")

    assert render_markdown(text) == ("see [here](https://example.com/)", True)


def test_render_link_after_space_and_before_newline() -> None:
    text = AnnotatedText("see ")
    text.append_text_link("here", "https://example.com/")
    text.append_text("\nbye")

    assert render_markdown(text) == ("see [here](https://example.com/)\nbye", True)


def test_render_drops_non_link_spans() -> None:
    text = AnnotatedText("bold #tag", [Span(SpanKind.BOLD, 0, 4), Span(SpanKind.HASHTAG, 5, 4)])
    assert render_markdown(text) == ("bold #tag", False)


def test_render_multiple_links_with_surrogate_pairs() -> None:
    text = AnnotatedText("🐱 ")
    text.append_text_link("cat", "https://http.cat/")
    text.append_text(" and 🥰 ")
    text.append_text_link("dog", "https://http.dog/")

    rendered, formatted = render_markdown(text)
    assert rendered == "🐱 [cat](https://http.cat/) and 🥰 [dog](https://http.dog/)"
    assert formatted is True


def test_render_footer_appended_after_body() -> None:
    body = AnnotatedText("Nice ")
    body.append_text_link("photo", "https://example.com/p")
    body.append_text("\n\n")
    footer = AnnotatedText("From: ")
    footer.append_text_link("My Channel", "https://t.me/mychannel/7")
    body.append(footer)

    rendered, _ = render_markdown(body)
    assert rendered == "Nice [photo](https://example.com/p)\n\nFrom: [My Channel](https://t.me/mychannel/7)"


def test_render_is_stable_when_list_order_differs_from_text_order() -> None:
    text = AnnotatedText(
        "ab cd",
        [
            Span(SpanKind.TEXT_LINK, 3, 2, url="https://two/"),
            Span(SpanKind.TEXT_LINK, 0, 2, url="https://one/"),
        ],
    )
    assert render_markdown(text) == ("[ab](https://one/) [cd](https://two/)", True)


def test_render_adjacent_links_are_separated_once() -> None:
    text = AnnotatedText()
    text.append_text_link("a", "https://a/")
    text.append_text_link("b", "https://b/")

    assert render_markdown(text) == ("[a](https://a/) [b](https://b/)", True)


def test_render_escapes_parentheses_in_link_url() -> None:
    text = AnnotatedText()
    text.append_text_link("wiki", "https://en.wikipedia.org/wiki/Mars_(planet)")

    assert render_markdown(text) == ("[wiki](https://en.wikipedia.org/wiki/Mars_%28planet%29)", True)
