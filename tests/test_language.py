from mastosync.language import LangdetectDetector, detect_post_language, normalize_language_tag
from mastosync.text import AnnotatedText, Span, SpanKind


class _Detector:
    def __init__(self, result: str | None) -> None:
        self.result = result
        self.calls: list[str] = []

    def detect(self, text: str) -> str | None:
        self.calls.append(text)
        return self.result


def test_detect_post_language_feeds_semantic_text_to_detector() -> None:
    text = AnnotatedText("Bonjour #hello", [Span(SpanKind.HASHTAG, 8, 6)])
    detector = _Detector("fr")
    assert detect_post_language(text, detector, "en") == "fr"
    assert detector.calls == ["Bonjour "]


def test_detect_post_language_falls_back_without_signal() -> None:
    text = AnnotatedText("#tag", [Span(SpanKind.HASHTAG, 0, 4)])
    detector = _Detector("de")
    assert detect_post_language(text, detector, "en") == "en"
    assert detector.calls == []


def test_detect_post_language_falls_back_when_detector_is_unsure() -> None:
    assert detect_post_language(AnnotatedText("???"), _Detector(None), "ja") == "ja"


def test_normalize_language_tag() -> None:
    assert normalize_language_tag("zh-cn") == "zh"
    assert normalize_language_tag("EN") == "en"
    assert normalize_language_tag("") is None


def test_langdetect_detector_returns_none_for_blank_text() -> None:
    assert LangdetectDetector().detect("   ") is None


def test_langdetect_detector_detects_english() -> None:
    detector = LangdetectDetector()
    text = "The quick brown fox jumps over the lazy dog while the children watch from the window."
    assert detector.detect(text) == "en"
