from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlsplit, urlunsplit

import asyncpg

_SAFE_DB_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}$")
_SCHEMA_PATH = Path(__file__).with_name("schema.sql")
logger = logging.getLogger(__name__)


def _extract_database_name_from_dsn(dsn: str) -> str | None:
    parsed = urlsplit(dsn)
    if not parsed.scheme or not parsed.netloc:
        return None
    path = (parsed.path or "").lstrip("/")
    if not path:
        return None
    # Postgres URL paths are usually "/<database>".
    return path.split("/", 1)[0] or None


def _replace_database_name_in_dsn(dsn: str, db_name: str) -> str:
    parsed = urlsplit(dsn)
    return urlunsplit((parsed.scheme, parsed.netloc, f"/{db_name}", parsed.query, parsed.fragment))


def _is_safe_database_name(db_name: str) -> bool:
    return bool(_SAFE_DB_NAME_RE.fullmatch(db_name))


class Postgres:
    def __init__(self, dsn: str) -> None:
        self.dsn = dsn
        self.pool: asyncpg.Pool | None = None

    async def connect(self) -> None:
        logger.info("database_connecting", extra={"action": "db_connect"})
        try:
            self.pool = await asyncpg.create_pool(dsn=self.dsn, min_size=1, max_size=4)
        except asyncpg.InvalidCatalogNameError:
            created = await self._create_database_if_missing()
            if not created:
                raise
            self.pool = await asyncpg.create_pool(dsn=self.dsn, min_size=1, max_size=4)
        logger.info("database_connected", extra={"action": "db_connect", "status": "ok"})

    async def close(self) -> None:
        if self.pool:
            await self.pool.close()

    async def apply_schema(self) -> None:
        if not self.pool:
            raise RuntimeError("db_not_connected")
        sql = _SCHEMA_PATH.read_text(encoding="utf-8")
        async with self.pool.acquire() as conn:
            await conn.execute(sql)

    async def _create_database_if_missing(self) -> bool:
        db_name = _extract_database_name_from_dsn(self.dsn)
        if not db_name:
            return False
        if db_name.lower() in {"postgres", "template0", "template1"}:
            return False
        if not _is_safe_database_name(db_name):
            logger.warning("database_name_unsafe_skip_autocreate", extra={"database": db_name})
            return False

        admin_dsn = _replace_database_name_in_dsn(self.dsn, "postgres")
        conn = await asyncpg.connect(dsn=admin_dsn)
        try:
            exists = await conn.fetchval("SELECT 1 FROM pg_database WHERE datname = $1", db_name)
            if exists:
                return True
            quoted = db_name.replace('"', '""')
            await conn.execute(f'CREATE DATABASE "{quoted}"')
            logger.info("database_auto_created", extra={"database": db_name})
            return True
        finally:
            await conn.close()


class PostgresMediaGroupStore:
    def __init__(self, db: Postgres) -> None:
        self.db = db

    async def put(self, group_id: str, sequence_no: int, payload: str) -> None:
        if not self.db.pool:
            raise RuntimeError("db_not_connected")
        query = """
        INSERT INTO telegram_media_group (group_id, msg_id, media_json, updated_at)
        VALUES ($1, $2, $3, NOW())
        ON CONFLICT (group_id, msg_id) DO UPDATE SET
            media_json = EXCLUDED.media_json,
            updated_at = NOW()
        """
        async with self.db.pool.acquire() as conn:
            await conn.execute(query, group_id, sequence_no, payload)

    async def fetch(self, group_id: str) -> list[tuple[int, str]]:
        if not self.db.pool:
            raise RuntimeError("db_not_connected")
        query = """
        SELECT msg_id, media_json
        FROM telegram_media_group
        WHERE group_id = $1
        ORDER BY msg_id
        """
        async with self.db.pool.acquire() as conn:
            rows = await conn.fetch(query, group_id)
        return [(int(row["msg_id"]), str(row["media_json"])) for row in rows]


@dataclass(slots=True)
class MastodonLogin:
    tg_user_id: int
    domain: str
    access_token: str


class LoginRepository:
    def __init__(self, db: Postgres) -> None:
        self.db = db

    async def fetch_login(self, tg_user_id: int) -> MastodonLogin | None:
        if not self.db.pool:
            raise RuntimeError("db_not_connected")
        query = """
        SELECT tg_user_id, domain, access_token
        FROM mastodon_login_user
        WHERE tg_user_id = $1
        """
        async with self.db.pool.acquire() as conn:
            row = await conn.fetchrow(query, tg_user_id)
        if not row:
            return None
        return MastodonLogin(
            tg_user_id=int(row["tg_user_id"]),
            domain=str(row["domain"]),
            access_token=str(row["access_token"]),
        )

    async def upsert_login(self, login: MastodonLogin) -> None:
        if not self.db.pool:
            raise RuntimeError("db_not_connected")
        query = """
        INSERT INTO mastodon_login_user (tg_user_id, domain, access_token, updated_at)
        VALUES ($1, $2, $3, NOW())
        ON CONFLICT (tg_user_id) DO UPDATE SET
            domain = EXCLUDED.domain,
            access_token = EXCLUDED.access_token,
            updated_at = NOW()
        """
        async with self.db.pool.acquire() as conn:
            await conn.execute(query, login.tg_user_id, login.domain, login.access_token)

    async def delete_login(self, tg_user_id: int) -> bool:
        if not self.db.pool:
            raise RuntimeError("db_not_connected")
        query = "DELETE FROM mastodon_login_user WHERE tg_user_id = $1"
        async with self.db.pool.acquire() as conn:
            status = await conn.execute(query, tg_user_id)
        return status.endswith("1")
