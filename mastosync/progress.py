from __future__ import annotations

import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class ProgressReporter(Protocol):
    async def report(self, status: str, save: bool = True) -> None:
        ...


class MessageSender(Protocol):
    async def send_message(self, chat_id: int | str, text: str, reply_to: int | None = None) -> int:
        ...

    async def edit_message_text(self, chat_id: int | str, message_id: int, text: str) -> None:
        ...

    async def delete_message(self, chat_id: int | str, message_id: int) -> None:
        ...


class NullProgress:
    async def report(self, status: str, save: bool = True) -> None:
        return None


class ProgressMessage:
    """A status message in the requester's chat, edited as steps complete."""

    def __init__(self, api: MessageSender, chat_id: int, reply_to: int | None, title: str) -> None:
        self.api = api
        self.chat_id = chat_id
        self.reply_to = reply_to
        self.title = title
        self.delete_on_close = True
        self.history: list[str] = []
        self._message_id: int | None = None
        self._last_unsaved: str | None = None

    async def report(self, status: str, save: bool = True) -> None:
        if save and self._last_unsaved is not None:
            self.history.append(self._last_unsaved)
            self._last_unsaved = None

        text = self.format(status)
        try:
            if self._message_id is None:
                message_id = await self.api.send_message(self.chat_id, text, reply_to=self.reply_to)
                self._message_id = message_id or None
            else:
                await self.api.edit_message_text(self.chat_id, self._message_id, text)
        except Exception:
            logger.exception("progress_update_failed", extra={"chat_id": self.chat_id})

        if save:
            self.history.append(status)
        else:
            self._last_unsaved = status

    async def close(self) -> None:
        if self._message_id is None:
            return
        try:
            if self.delete_on_close:
                await self.api.delete_message(self.chat_id, self._message_id)
            else:
                await self.api.edit_message_text(self.chat_id, self._message_id, self.format(None))
        except Exception:
            logger.exception("progress_close_failed", extra={"chat_id": self.chat_id})
        self._message_id = None

    def format(self, current: str | None) -> str:
        lines = [f"{self.title}\n"]
        lines.extend(f"- {item} done" for item in self.history)
        if current is not None:
            lines.append(f"- {current}")
        return "\n".join(lines)
