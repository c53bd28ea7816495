from mastosync.models import ChatInfo, MessageEnvelope
from mastosync.source_link import build_source_footer, chat_display_name, message_url
from mastosync.text import Span, SpanKind


def test_message_url_prefers_username() -> None:
    assert message_url(-1001234, "@mychat", 5) == "https://t.me/mychat/5"


def test_message_url_for_private_supergroup() -> None:
    assert message_url(-1001234567, None, 9) == "https://t.me/c/1234567/9"
    assert message_url(42, None, 9) is None


def test_chat_display_name_fallbacks() -> None:
    assert chat_display_name(ChatInfo(1, title="News")) == "News"
    assert chat_display_name(ChatInfo(1, first_name="Ann", last_name="Lee")) == "Ann Lee"
    assert chat_display_name(ChatInfo(1)) == "Untitled Chat"


def test_footer_links_public_chat() -> None:
    envelope = MessageEnvelope.from_api(
        {"message_id": 3, "chat": {"id": -100777, "title": "News", "username": "news"}, "text": "x"}
    )
    footer = build_source_footer(envelope)
    assert footer.text == "From: News"
    assert footer.spans == [Span(SpanKind.TEXT_LINK, 6, 4, url="https://t.me/news/3")]


def test_footer_is_plain_for_private_chat() -> None:
    envelope = MessageEnvelope.from_api(
        {"message_id": 3, "chat": {"id": -100777, "title": "Secret"}, "text": "x"}
    )
    footer = build_source_footer(envelope)
    assert footer.text == "From: Secret"
    assert footer.spans == []


def test_footer_names_forwarded_channel() -> None:
    envelope = MessageEnvelope.from_api(
        {
            "message_id": 3,
            "chat": {"id": 42, "type": "private", "first_name": "Ann"},
            "text": "x",
            "forward_origin": {
                "type": "channel",
                "chat": {"id": -100555, "title": "Channel", "username": "chan"},
                "message_id": 88,
            },
        }
    )
    footer = build_source_footer(envelope)
    assert footer.text == "From: Channel"
    assert footer.spans[0].url == "https://t.me/chan/88"


def test_footer_names_hidden_forward_sender() -> None:
    envelope = MessageEnvelope.from_api(
        {
            "message_id": 3,
            "chat": {"id": 42, "type": "private"},
            "text": "x",
            "forward_origin": {"type": "hidden_user", "sender_user_name": "Someone"},
        }
    )
    footer = build_source_footer(envelope)
    assert footer.text == "From: Someone"
    assert footer.spans == []
