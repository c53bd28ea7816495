from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

from aiohttp import ClientSession, ClientTimeout

logger = logging.getLogger(__name__)


class TelegramApiError(Exception):
    def __init__(self, description: str) -> None:
        super().__init__(f"telegram_bot_api_error:{description}")
        self.description = description


@dataclass(slots=True)
class TelegramFile:
    file_id: str
    file_path: str
    file_size: int | None = None

    @property
    def file_name(self) -> str:
        return self.file_path.rsplit("/", 1)[-1] or self.file_id


class TelegramBotApi:
    def __init__(
        self,
        token: str,
        poll_timeout_sec: int = 30,
        download_timeout_sec: float = 600.0,
        chunk_size: int = 65536,
    ) -> None:
        token = (token or "").strip()
        if not token:
            raise ValueError("bot_token_required")
        self.token = token
        self.poll_timeout_sec = max(5, int(poll_timeout_sec))
        self.download_timeout_sec = download_timeout_sec
        self.chunk_size = chunk_size
        self._api_base = f"https://api.telegram.org/bot{self.token}"
        self._file_base = f"https://api.telegram.org/file/bot{self.token}"
        self._session: ClientSession | None = None

    async def start(self) -> None:
        if self._session is None:
            self._session = ClientSession(timeout=ClientTimeout(total=self.poll_timeout_sec + 20))

    async def close(self) -> None:
        if self._session:
            await self._session.close()
            self._session = None

    async def get_me(self) -> dict[str, Any]:
        result = await self._api_call("getMe", {})
        return result if isinstance(result, dict) else {}

    async def get_updates(self, offset: int) -> list[dict[str, Any]]:
        payload = {
            "timeout": self.poll_timeout_sec,
            "offset": offset,
            "allowed_updates": ["message", "edited_message"],
        }
        result = await self._api_call("getUpdates", payload)
        if isinstance(result, list):
            return [item for item in result if isinstance(item, dict)]
        return []

    async def send_message(self, chat_id: int | str, text: str, reply_to: int | None = None) -> int:
        payload: dict[str, Any] = {
            "chat_id": chat_id,
            "text": text,
            "disable_web_page_preview": True,
        }
        if reply_to:
            payload["reply_parameters"] = {"message_id": reply_to, "allow_sending_without_reply": True}
        result = await self._api_call("sendMessage", payload)
        return int((result or {}).get("message_id") or 0)

    async def edit_message_text(self, chat_id: int | str, message_id: int, text: str) -> None:
        payload = {
            "chat_id": chat_id,
            "message_id": message_id,
            "text": text,
            "disable_web_page_preview": True,
        }
        await self._api_call("editMessageText", payload)

    async def delete_message(self, chat_id: int | str, message_id: int) -> None:
        await self._api_call("deleteMessage", {"chat_id": chat_id, "message_id": message_id})

    async def get_file(self, file_id: str) -> TelegramFile:
        result = await self._api_call("getFile", {"file_id": file_id})
        file_path = str((result or {}).get("file_path") or "")
        if not file_path:
            raise TelegramApiError("file_path_missing")
        return TelegramFile(
            file_id=file_id,
            file_path=file_path,
            file_size=(result or {}).get("file_size"),
        )

    async def iter_download(self, file: TelegramFile) -> AsyncIterator[bytes]:
        if not self._session:
            raise RuntimeError("bot_api_not_started")
        url = f"{self._file_base}/{file.file_path}"
        timeout = ClientTimeout(total=self.download_timeout_sec)
        async with self._session.get(url, timeout=timeout) as response:
            response.raise_for_status()
            async for chunk in response.content.iter_chunked(self.chunk_size):
                yield chunk

    async def _api_call(self, method: str, payload: dict[str, Any]) -> Any:
        if not self._session:
            raise RuntimeError("bot_api_not_started")
        url = f"{self._api_base}/{method}"
        async with self._session.post(url, json=payload) as response:
            data = await response.json(content_type=None)
        if not data.get("ok"):
            description = str(data.get("description") or "unknown_error")
            raise TelegramApiError(description)
        return data.get("result")
