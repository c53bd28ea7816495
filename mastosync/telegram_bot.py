from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from contextlib import suppress

from aiohttp import ClientSession

from mastosync.bot_api import TelegramBotApi
from mastosync.config import Settings
from mastosync.mastodon import MastodonClient, normalize_domain
from mastosync.media_group import MediaGroupCache
from mastosync.message_queue import MessageQueue, Update
from mastosync.models import MessageEnvelope
from mastosync.progress import ProgressMessage
from mastosync.publisher import PostOptions, PostPublisher
from mastosync.storage.db import LoginRepository, MastodonLogin
from mastosync.workers import WorkerPool

logger = logging.getLogger(__name__)

ERROR_PREFIX = "⚠️ "


class CommandError(Exception):
    pass


CommandHandler = Callable[[MessageEnvelope, str], Awaitable["str | None"]]


class TelegramSyncBot:
    def __init__(
        self,
        settings: Settings,
        api: TelegramBotApi,
        queue: MessageQueue,
        media_groups: MediaGroupCache,
        logins: LoginRepository,
        publisher: PostPublisher,
        http: ClientSession,
    ) -> None:
        self.settings = settings
        self.api = api
        self.queue = queue
        self.media_groups = media_groups
        self.logins = logins
        self.publisher = publisher
        self.http = http
        self._offset = 0
        self._username: str | None = None
        self._stop = asyncio.Event()
        self._commands: dict[str, CommandHandler] = {
            "start": self._cmd_start,
            "help": self._cmd_start,
            "ping": self._cmd_ping,
            "auth": self._cmd_auth,
            "revoke": self._cmd_revoke,
            "post": self._cmd_post,
        }
        self.workers = WorkerPool(
            queue=queue,
            processor=self._process_update,
            worker_count=settings.worker_count,
            poll_timeout=settings.worker_poll_timeout,
        )

    async def start(self) -> None:
        await self.api.start()
        me = await self.api.get_me()
        self._username = me.get("username")
        await self.workers.start()
        logger.info("bot_started", extra={"action": "bot_start", "reason": f"@{self._username}"})
        await self._poll_loop()

    async def shutdown(self) -> None:
        self._stop.set()
        with suppress(Exception):
            await self.workers.stop()
        with suppress(Exception):
            await self.api.close()

    async def _poll_loop(self) -> None:
        while not self._stop.is_set():
            try:
                updates = await self.api.get_updates(self._offset)
                for update in updates:
                    update_id = int(update.get("update_id", 0) or 0)
                    if update_id > 0:
                        self._offset = update_id + 1
                    await self.queue.put(update)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("bot_poll_failed")
                await asyncio.sleep(2)

    async def _process_update(self, update: Update) -> None:
        edited = "message" not in update
        message = update.get("message") or update.get("edited_message")
        if not isinstance(message, dict):
            return

        envelope = MessageEnvelope.from_api(message)
        if envelope.media_group_id:
            # Edits overwrite the cached item of the same message.
            await self.media_groups.record(envelope.media_group_id, envelope.message_id, envelope.media)
        if edited:
            return

        text = envelope.text.text.strip()
        if not text.startswith("/"):
            return
        command, target, arg = self._parse_command(text)
        if target and self._username and target.lower() != self._username.lower():
            return
        handler = self._commands.get(command)
        if handler is None:
            return
        await self._dispatch(envelope, handler, arg)

    async def _dispatch(self, envelope: MessageEnvelope, handler: CommandHandler, arg: str) -> None:
        try:
            reply = await handler(envelope, arg)
            failed = False
        except CommandError as exc:
            reply = str(exc)
            failed = True
        if not reply:
            return
        text = f"{ERROR_PREFIX}{reply}" if failed else reply
        await self.api.send_message(envelope.chat_id, text, reply_to=envelope.message_id)

    async def _cmd_start(self, envelope: MessageEnvelope, arg: str) -> str:
        return self._help_text()

    async def _cmd_ping(self, envelope: MessageEnvelope, arg: str) -> str:
        raise CommandError("Pong!")

    async def _cmd_auth(self, envelope: MessageEnvelope, arg: str) -> str:
        user_id = self._require_user(envelope)
        if envelope.chat.chat_type != "private":
            raise CommandError("Please send /auth to me in a private chat.")

        parts = arg.split()
        if len(parts) != 2:
            login = await self.logins.fetch_login(user_id)
            if login is None:
                status = "You have not linked your mastodon account yet."
            else:
                status = f"You have already linked your mastodon account for domain '{login.domain}'."
            raise CommandError(f"{status}\n\nformat: /auth <domain> <access-token>")

        domain, token = normalize_domain(parts[0]), parts[1]
        logger.info("auth_attempt", extra={"action": "auth", "user_id": user_id, "domain": domain})
        client = MastodonClient(self.http, domain, token)
        try:
            account = await client.verify_credentials()
        except Exception as exc:
            logger.warning("auth_failed", extra={"action": "auth", "user_id": user_id, "domain": domain})
            raise CommandError(f"Failed to verify the access token for domain '{domain}'.\n\n{exc}") from exc

        await self.logins.upsert_login(MastodonLogin(tg_user_id=user_id, domain=domain, access_token=token))
        # The token should not linger in the chat history.
        with suppress(Exception):
            await self.api.delete_message(envelope.chat_id, envelope.message_id)
        logger.info("auth_ok", extra={"action": "auth", "user_id": user_id, "domain": domain, "status": "ok"})
        return f"Authorized successfully as {account}."

    async def _cmd_revoke(self, envelope: MessageEnvelope, arg: str) -> str:
        user_id = self._require_user(envelope)
        login = await self.logins.fetch_login(user_id)
        if login is None:
            raise CommandError("You have not linked your mastodon account yet.\n\nUse the /auth command to link one.")
        await self.logins.delete_login(user_id)
        logger.info("auth_revoked", extra={"action": "revoke", "user_id": user_id, "domain": login.domain})
        return "Revoked successfully."

    async def _cmd_post(self, envelope: MessageEnvelope, arg: str) -> str:
        user_id = self._require_user(envelope)
        if arg.strip() == "help":
            return self._post_help_text()
        try:
            options = PostOptions.parse(arg, default_append_source=self.settings.post_append_source)
        except ValueError as exc:
            raise CommandError(f"{exc}\n\n{self._post_help_text()}") from exc

        target = envelope.reply_to
        if target is None:
            raise CommandError("You should reply to a message to be synchronized to mastodon.")

        login = await self.logins.fetch_login(user_id)
        if login is None:
            raise CommandError("Please use /auth to link your mastodon account first.")

        logger.info(
            "post_requested",
            extra={"action": "post", "user_id": user_id, "chat_id": target.chat_id, "message_id": target.message_id},
        )
        progress = ProgressMessage(self.api, envelope.chat_id, envelope.message_id, "Synchronizing to Mastodon")
        destination = MastodonClient(self.http, login.domain, login.access_token)
        try:
            result = await self.publisher.publish(target, destination, options=options, progress=progress)
        except Exception as exc:
            raise CommandError(f"Failed to post status on mastodon.\n\n{exc}") from exc
        finally:
            await progress.close()
        return f"Synchronized successfully.\n\n{result.url}"

    @staticmethod
    def _require_user(envelope: MessageEnvelope) -> int:
        if envelope.sender_id is None:
            raise CommandError("No user.")
        return envelope.sender_id

    @staticmethod
    def _parse_command(text: str) -> tuple[str, str | None, str]:
        parts = text.strip().split(maxsplit=1)
        command_token = parts[0]
        arg = parts[1].strip() if len(parts) > 1 else ""
        command = command_token[1:]
        target = None
        if "@" in command:
            command, target = command.split("@", 1)
        return command.lower(), target, arg

    @staticmethod
    def _help_text() -> str:
        return (
            "Synchronizes Telegram messages to Mastodon.\n\n"
            "/auth <domain> <access-token> - link your mastodon account (private chat)\n"
            "/revoke - unlink your mastodon account\n"
            "/post - reply to a message to post it on mastodon (/post help for options)"
        )

    @staticmethod
    def _post_help_text() -> str:
        return (
            "Usage: reply to a message with /post [options]\n\n"
            "+source - append a line linking the original message\n"
            "-source - do not append the source line"
        )
