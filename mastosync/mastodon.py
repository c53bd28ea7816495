from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any

from aiohttp import ClientResponse, ClientSession, FormData

from mastosync.models import PendingPost

logger = logging.getLogger(__name__)

MEDIA_PROCESSING_ERROR = "Cannot attach files that have not finished processing. Try again in a moment!"


class MastodonApiError(Exception):
    def __init__(self, status: int, message: str) -> None:
        super().__init__(f"mastodon_api_error:{status}:{message}")
        self.status = status
        self.message = message


class MastodonMediaProcessingError(MastodonApiError):
    """Attachments are still being processed server side; retry later."""


def _raise_for_error(status: int, payload: Any) -> None:
    if 200 <= status < 300:
        return
    message = ""
    if isinstance(payload, dict):
        message = str(payload.get("error") or "")
    message = message or "unknown_error"
    if status == 422 and message == MEDIA_PROCESSING_ERROR:
        raise MastodonMediaProcessingError(status, message)
    raise MastodonApiError(status, message)


def normalize_domain(domain: str) -> str:
    value = domain.strip().lower()
    for prefix in ("https://", "http://"):
        if value.startswith(prefix):
            value = value[len(prefix):]
    return value.strip("/")


class MastodonClient:
    def __init__(self, session: ClientSession, domain: str, access_token: str) -> None:
        self.session = session
        self.domain = normalize_domain(domain)
        self._api_base = f"https://{self.domain}"
        self._headers = {"Authorization": f"Bearer {access_token}"}

    async def verify_credentials(self) -> str:
        data = await self._request("GET", "/api/v1/accounts/verify_credentials")
        return f"@{data.get('acct') or data.get('username') or '?'}@{self.domain}"

    async def upload_media(
        self,
        stream: AsyncIterator[bytes],
        *,
        filename: str,
        content_type: str | None = None,
        description: str | None = None,
    ) -> str:
        form = FormData()
        form.add_field(
            "file",
            stream,
            filename=filename,
            content_type=content_type or "application/octet-stream",
        )
        if description:
            form.add_field("description", description)
        data = await self._request("POST", "/api/v2/media", data=form)
        media_id = str(data.get("id") or "")
        if not media_id:
            raise MastodonApiError(500, "media_id_missing")
        logger.info(
            "mastodon_media_uploaded",
            extra={"action": "media_upload", "domain": self.domain, "status": "ok"},
        )
        return media_id

    async def submit_status(self, post: PendingPost) -> str | None:
        data = await self._request("POST", "/api/v1/statuses", json=post.as_payload())
        url = data.get("url")
        return str(url) if url else None

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        url = f"{self._api_base}{path}"
        async with self.session.request(method, url, headers=self._headers, **kwargs) as response:
            payload = await self._read_payload(response)
            _raise_for_error(response.status, payload)
        if not isinstance(payload, dict):
            raise MastodonApiError(response.status, "unexpected_response")
        return payload

    @staticmethod
    async def _read_payload(response: ClientResponse) -> Any:
        try:
            return await response.json(content_type=None)
        except ValueError:
            return {"error": (await response.text())[:200]}
