from __future__ import annotations

import logging
from typing import Protocol

from langdetect import DetectorFactory, detect
from langdetect.lang_detect_exception import LangDetectException

from mastosync.semantics import extract_semantics, has_signal
from mastosync.text import AnnotatedText

logger = logging.getLogger(__name__)


class LanguageDetector(Protocol):
    def detect(self, text: str) -> str | None:
        ...


class LangdetectDetector:
    def __init__(self, seed: int = 0) -> None:
        # langdetect is randomized unless the factory is seeded.
        DetectorFactory.seed = seed

    def detect(self, text: str) -> str | None:
        if not has_signal(text):
            return None
        try:
            tag = detect(text)
        except LangDetectException:
            return None
        return normalize_language_tag(tag)


def normalize_language_tag(tag: str | None) -> str | None:
    if not tag:
        return None
    primary = tag.strip().lower().replace("_", "-").split("-", 1)[0]
    return primary or None


def detect_post_language(text: AnnotatedText, detector: LanguageDetector, default: str) -> str:
    semantics = extract_semantics(text)
    if not has_signal(semantics):
        return default
    language = detector.detect(semantics)
    if not language:
        logger.info("language_undetected", extra={"action": "language_detect", "reason": "no_signal"})
        return default
    return language
