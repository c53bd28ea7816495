from __future__ import annotations

import asyncio
import logging
import mimetypes
from collections.abc import AsyncIterator
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from mastosync.attachments import AttachmentPipeline
from mastosync.bot_api import TelegramFile
from mastosync.language import LanguageDetector, detect_post_language
from mastosync.markdown import render_markdown
from mastosync.mastodon import MastodonMediaProcessingError
from mastosync.media import Media, MediaItem, MediaKind
from mastosync.media_group import MediaGroupCache, MediaGroupCacheError
from mastosync.models import MessageEnvelope, PendingPost, Visibility
from mastosync.progress import NullProgress, ProgressReporter
from mastosync.source_link import build_source_footer
from mastosync.text import AnnotatedText

logger = logging.getLogger(__name__)

LINK_UNAVAILABLE = "*invisible*"


class PublishState(str, Enum):
    RESOLVING = "resolving"
    RENDERING = "rendering"
    UPLOADING = "uploading"
    SUBMITTING = "submitting"
    RETRY_WAITING = "retry_waiting"
    DONE = "done"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


class PublishError(Exception):
    state = PublishState.FAILED


class UnsupportedMediaError(PublishError):
    def __init__(self, kinds: list[MediaKind]) -> None:
        names = ", ".join(sorted({kind.value for kind in kinds}))
        super().__init__(f"Unsupported media: {names}.")
        self.kinds = kinds


class EmptyPostError(PublishError):
    def __init__(self) -> None:
        super().__init__("Nothing to post: the message has no text and no media.")


class AttachmentError(PublishError):
    def __init__(self, index: int, total: int, cause: BaseException) -> None:
        super().__init__(f"Failed to upload media {index}/{total}: {cause}")
        self.index = index


class PublishTimeoutError(PublishError):
    state = PublishState.TIMED_OUT

    def __init__(self) -> None:
        super().__init__("Timeout waiting for server processing media.")


class FileSource(Protocol):
    async def get_file(self, file_id: str) -> TelegramFile:
        ...

    def iter_download(self, file: TelegramFile) -> AsyncIterator[bytes]:
        ...


class StatusDestination(Protocol):
    async def upload_media(
        self,
        stream: AsyncIterator[bytes],
        *,
        filename: str,
        content_type: str | None = None,
        description: str | None = None,
    ) -> str:
        ...

    async def submit_status(self, post: PendingPost) -> str | None:
        ...


@dataclass(slots=True)
class PostOptions:
    append_source: bool = True

    @classmethod
    def parse(cls, arg: str, default_append_source: bool = True) -> "PostOptions":
        options = cls(append_source=default_append_source)
        for token in arg.split():
            if token == "+source":
                options.append_source = True
            elif token == "-source":
                options.append_source = False
            else:
                raise ValueError(f"unrecognized or ill-formed argument: {token}")
        return options


@dataclass(slots=True)
class PublishResult:
    url: str
    state: PublishState = PublishState.DONE
    attachments: int = 0


class PostPublisher:
    """Publishes one Telegram post (single message or album) to Mastodon."""

    def __init__(
        self,
        files: FileSource,
        media_groups: MediaGroupCache,
        detector: LanguageDetector,
        default_language: str = "en",
        retry_interval_sec: float = 1.0,
        timeout_sec: float = 60.0,
    ) -> None:
        self.files = files
        self.media_groups = media_groups
        self.detector = detector
        self.default_language = default_language
        self.retry_interval_sec = retry_interval_sec
        self.timeout_sec = timeout_sec

    async def publish(
        self,
        envelope: MessageEnvelope,
        destination: StatusDestination,
        options: PostOptions | None = None,
        progress: ProgressReporter | None = None,
    ) -> PublishResult:
        options = options or PostOptions()
        progress = progress or NullProgress()
        log_extra = {"chat_id": envelope.chat_id, "message_id": envelope.message_id}
        state = PublishState.RESOLVING
        try:
            self._log_state(state, log_extra)
            await progress.report("Resolving media")
            media = await self._resolve_media(envelope)

            state = PublishState.RENDERING
            self._log_state(state, log_extra)
            content = self._content_text(envelope, media)
            # The source footer is not part of the post language.
            language = detect_post_language(content, self.detector, self.default_language)
            body = self._compose_body(envelope, content, options)
            if body.is_empty() and not media.items:
                raise EmptyPostError()
            rendered, formatted = render_markdown(body)

            state = PublishState.UPLOADING
            media_ids: list[str] = []
            total = len(media.items)
            for index, item in enumerate(media.items, start=1):
                self._log_state(state, {**log_extra, "attachment": f"{index}/{total}"})
                await progress.report(f"Uploading media {index}/{total}")
                media_ids.append(await self._upload_one(destination, item, index, total))

            post = PendingPost(
                body=rendered,
                language=language,
                visibility=Visibility.PUBLIC,
                media_ids=media_ids,
                sensitive=media.sensitive,
                content_type="text/markdown" if formatted else "text/plain",
            )
            state = PublishState.SUBMITTING
            await progress.report("Posting status")
            try:
                url = await asyncio.wait_for(
                    self._submit_with_retry(destination, post, log_extra),
                    timeout=self.timeout_sec,
                )
            except (TimeoutError, asyncio.TimeoutError) as exc:
                raise PublishTimeoutError() from exc
        except PublishError as exc:
            self._log_state(exc.state, {**log_extra, "reason": str(exc)}, level=logging.WARNING)
            raise
        except Exception:
            logger.exception("publish_failed", extra={**log_extra, "state": state.value})
            raise

        self._log_state(PublishState.DONE, log_extra)
        return PublishResult(url=url or LINK_UNAVAILABLE, attachments=len(media_ids))

    async def _resolve_media(self, envelope: MessageEnvelope) -> Media:
        if envelope.media_group_id:
            try:
                items = await self.media_groups.resolve(envelope.media_group_id)
            except MediaGroupCacheError as exc:
                raise PublishError(str(exc)) from exc
            if not items:
                # The album was never cached; publish at least the target message.
                items = [envelope.media]
            media = Media(items=items, group_id=envelope.media_group_id)
        elif envelope.is_text_only():
            media = Media()
        else:
            media = Media(items=[envelope.media])

        unsupported = media.unsupported_kinds()
        if unsupported:
            raise UnsupportedMediaError(unsupported)
        return media

    @staticmethod
    def _content_text(envelope: MessageEnvelope, media: Media) -> AnnotatedText:
        caption = media.caption()
        if caption is not None:
            return caption.copy()
        return envelope.text.copy()

    @staticmethod
    def _compose_body(envelope: MessageEnvelope, content: AnnotatedText, options: PostOptions) -> AnnotatedText:
        body = content.copy()
        if options.append_source:
            if not body.is_empty():
                body.append_text("\n\n")
            body.append(build_source_footer(envelope))
        return body

    async def _upload_one(
        self,
        destination: StatusDestination,
        item: MediaItem,
        index: int,
        total: int,
    ) -> str:
        ref = item.file
        if ref is None:
            raise AttachmentError(index, total, ValueError("media has no file"))
        try:
            telegram_file = await self.files.get_file(ref.file_id)
            filename = ref.file_name or telegram_file.file_name
            content_type = ref.mime_type or mimetypes.guess_type(filename)[0]

            async def upload(stream: AsyncIterator[bytes], description: str | None) -> str:
                return await destination.upload_media(
                    stream,
                    filename=filename,
                    content_type=content_type,
                    description=description,
                )

            pipeline = AttachmentPipeline(upload)
            return await pipeline.stream_attach(self.files.iter_download(telegram_file))
        except Exception as exc:
            raise AttachmentError(index, total, exc) from exc

    async def _submit_with_retry(
        self,
        destination: StatusDestination,
        post: PendingPost,
        log_extra: dict[str, object],
    ) -> str | None:
        attempt = 0
        while True:
            attempt += 1
            self._log_state(PublishState.SUBMITTING, {**log_extra, "attempt": attempt})
            try:
                return await destination.submit_status(post)
            except (TimeoutError, asyncio.TimeoutError) as exc:
                # A request timeout is terminal; only the outer deadline means timed_out.
                raise PublishError(f"Mastodon request timed out: {exc!r}") from exc
            except MastodonMediaProcessingError:
                self._log_state(PublishState.RETRY_WAITING, {**log_extra, "attempt": attempt})
                await asyncio.sleep(self.retry_interval_sec)

    @staticmethod
    def _log_state(state: PublishState, extra: dict[str, object], level: int = logging.INFO) -> None:
        logger.log(level, "publish_state", extra={**extra, "action": "publish", "state": state.value})
