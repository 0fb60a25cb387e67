from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional
from uuid import uuid4

import aiosqlite
import structlog

from ..models import (
    Appeal,
    AppealAction,
    AppealActionStatus,
    AppealActionVia,
    Message,
    MessageType,
    OrganizationSettings,
    StepRecord,
    User,
    UserActionStatus,
    WebhookEndpoint,
)
from .base import StorageGateway

logger = structlog.get_logger(__name__)


SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT NOT NULL,
        organization_id TEXT NOT NULL,
        client_id TEXT NOT NULL,
        payment_account_id TEXT,
        email TEXT,
        PRIMARY KEY (organization_id, id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS organization_settings (
        organization_id TEXT PRIMARY KEY,
        payment_api_key TEXT,
        emails_enabled INTEGER NOT NULL DEFAULT 0,
        appeals_enabled INTEGER NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS webhook_endpoints (
        id TEXT PRIMARY KEY,
        organization_id TEXT NOT NULL,
        url TEXT NOT NULL,
        secret TEXT,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS user_actions (
        id TEXT PRIMARY KEY,
        organization_id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        status TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS appeals (
        id TEXT PRIMARY KEY,
        organization_id TEXT NOT NULL,
        user_action_id TEXT NOT NULL REFERENCES user_actions(id),
        action_status TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS appeal_actions (
        id TEXT PRIMARY KEY,
        organization_id TEXT NOT NULL,
        appeal_id TEXT NOT NULL REFERENCES appeals(id),
        status TEXT NOT NULL,
        via TEXT NOT NULL,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS messages (
        id TEXT PRIMARY KEY,
        organization_id TEXT NOT NULL,
        user_action_id TEXT NOT NULL,
        type TEXT NOT NULL,
        recipient_id TEXT NOT NULL,
        subject TEXT NOT NULL,
        text TEXT NOT NULL,
        created_at TEXT NOT NULL,
        dedupe_key TEXT UNIQUE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS workflow_steps (
        instance_id TEXT NOT NULL,
        step_name TEXT NOT NULL,
        status TEXT NOT NULL,
        result_json TEXT,
        error TEXT,
        attempts INTEGER NOT NULL,
        updated_at TEXT NOT NULL,
        PRIMARY KEY (instance_id, step_name)
    )
    """,
)


class SQLiteStorage(StorageGateway):
    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._conn: Optional[aiosqlite.Connection] = None
        self._write_lock = asyncio.Lock()

    async def connect(self) -> None:
        self._conn = await aiosqlite.connect(self._path)
        self._conn.row_factory = aiosqlite.Row
        await self._conn.execute("PRAGMA journal_mode=WAL")
        await self._conn.execute("PRAGMA foreign_keys=ON")
        for statement in SCHEMA:
            await self._conn.execute(statement)
        await self._conn.commit()
        logger.info("sqlite_connected", path=str(self._path))

    async def disconnect(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None

    async def _fetchone(self, query: str, params: tuple) -> Optional[aiosqlite.Row]:
        assert self._conn
        cursor = await self._conn.execute(query, params)
        row = await cursor.fetchone()
        await cursor.close()
        return row

    async def _fetchall(self, query: str, params: tuple) -> list[aiosqlite.Row]:
        assert self._conn
        cursor = await self._conn.execute(query, params)
        rows = await cursor.fetchall()
        await cursor.close()
        return list(rows)

    # users

    async def get_user(self, organization_id: str, user_id: str) -> Optional[User]:
        row = await self._fetchone(
            "SELECT * FROM users WHERE organization_id = ? AND id = ?",
            (organization_id, user_id),
        )
        if row is None:
            return None
        return User(
            id=row["id"],
            organization_id=row["organization_id"],
            client_id=row["client_id"],
            payment_account_id=row["payment_account_id"],
            email=row["email"],
        )

    async def upsert_user(self, user: User) -> None:
        assert self._conn
        async with self._write_lock:
            await self._conn.execute(
                """
                INSERT INTO users (id, organization_id, client_id, payment_account_id, email)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(organization_id, id) DO UPDATE SET
                    client_id=excluded.client_id,
                    payment_account_id=excluded.payment_account_id,
                    email=excluded.email
                """,
                (user.id, user.organization_id, user.client_id, user.payment_account_id, user.email),
            )
            await self._conn.commit()

    # organization settings

    async def get_organization_settings(self, organization_id: str) -> Optional[OrganizationSettings]:
        row = await self._fetchone(
            "SELECT * FROM organization_settings WHERE organization_id = ?",
            (organization_id,),
        )
        if row is None:
            return None
        return OrganizationSettings(
            organization_id=row["organization_id"],
            payment_api_key=row["payment_api_key"],
            emails_enabled=bool(row["emails_enabled"]),
            appeals_enabled=bool(row["appeals_enabled"]),
        )

    async def find_or_create_organization_settings(self, organization_id: str) -> OrganizationSettings:
        assert self._conn
        async with self._write_lock:
            cursor = await self._conn.execute(
                "INSERT OR IGNORE INTO organization_settings (organization_id) VALUES (?)",
                (organization_id,),
            )
            created = cursor.rowcount == 1
            await cursor.close()
            await self._conn.commit()
        if created:
            logger.info("organization_settings_created", organization_id=organization_id)
        settings = await self.get_organization_settings(organization_id)
        assert settings is not None
        return settings

    async def upsert_organization_settings(self, settings: OrganizationSettings) -> None:
        assert self._conn
        async with self._write_lock:
            await self._conn.execute(
                """
                INSERT INTO organization_settings (
                    organization_id, payment_api_key, emails_enabled, appeals_enabled
                ) VALUES (?, ?, ?, ?)
                ON CONFLICT(organization_id) DO UPDATE SET
                    payment_api_key=excluded.payment_api_key,
                    emails_enabled=excluded.emails_enabled,
                    appeals_enabled=excluded.appeals_enabled
                """,
                (
                    settings.organization_id,
                    settings.payment_api_key,
                    int(settings.emails_enabled),
                    int(settings.appeals_enabled),
                ),
            )
            await self._conn.commit()

    # webhook endpoints

    async def get_webhook_endpoint(self, organization_id: str) -> Optional[WebhookEndpoint]:
        row = await self._fetchone(
            "SELECT * FROM webhook_endpoints WHERE organization_id = ? ORDER BY created_at LIMIT 1",
            (organization_id,),
        )
        if row is None:
            return None
        return WebhookEndpoint(
            id=row["id"],
            organization_id=row["organization_id"],
            url=row["url"],
            secret=row["secret"],
        )

    async def add_webhook_endpoint(self, endpoint: WebhookEndpoint) -> None:
        assert self._conn
        async with self._write_lock:
            await self._conn.execute(
                """
                INSERT INTO webhook_endpoints (id, organization_id, url, secret, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    endpoint.id,
                    endpoint.organization_id,
                    endpoint.url,
                    endpoint.secret,
                    datetime.now(timezone.utc).isoformat(),
                ),
            )
            await self._conn.commit()

    # user actions and appeals

    async def record_user_action(
        self,
        organization_id: str,
        user_action_id: str,
        user_id: str,
        status: UserActionStatus,
    ) -> None:
        assert self._conn
        async with self._write_lock:
            await self._conn.execute(
                """
                INSERT INTO user_actions (id, organization_id, user_id, status)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET status=excluded.status
                """,
                (user_action_id, organization_id, user_id, status.value),
            )
            await self._conn.commit()

    async def create_appeal(self, appeal: Appeal) -> None:
        assert self._conn
        async with self._write_lock:
            await self._conn.execute(
                """
                INSERT INTO appeals (id, organization_id, user_action_id, action_status)
                VALUES (?, ?, ?, ?)
                """,
                (appeal.id, appeal.organization_id, appeal.user_action_id, appeal.action_status.value),
            )
            await self._conn.commit()

    async def get_appeal(self, appeal_id: str) -> Optional[Appeal]:
        row = await self._fetchone("SELECT * FROM appeals WHERE id = ?", (appeal_id,))
        return self._appeal_from_row(row) if row is not None else None

    async def list_open_appeals(self, organization_id: str, user_id: str) -> list[Appeal]:
        rows = await self._fetchall(
            """
            SELECT appeals.* FROM appeals
            INNER JOIN user_actions ON user_actions.id = appeals.user_action_id
            WHERE user_actions.organization_id = ?
              AND user_actions.user_id = ?
              AND appeals.action_status = ?
            ORDER BY appeals.id
            """,
            (organization_id, user_id, AppealActionStatus.OPEN.value),
        )
        return [self._appeal_from_row(row) for row in rows]

    async def create_appeal_action(
        self,
        organization_id: str,
        appeal_id: str,
        status: AppealActionStatus,
        via: AppealActionVia,
    ) -> Optional[AppealAction]:
        assert self._conn
        async with self._write_lock:
            try:
                cursor = await self._conn.execute(
                    "SELECT action_status FROM appeals WHERE id = ? AND organization_id = ?",
                    (appeal_id, organization_id),
                )
                row = await cursor.fetchone()
                await cursor.close()
                if row is None or row["action_status"] != AppealActionStatus.OPEN.value:
                    logger.info(
                        "appeal_action_skipped",
                        appeal_id=appeal_id,
                        current_status=row["action_status"] if row else None,
                    )
                    return None
                action = AppealAction(
                    id=str(uuid4()),
                    organization_id=organization_id,
                    appeal_id=appeal_id,
                    status=status,
                    via=via,
                )
                await self._conn.execute(
                    """
                    INSERT INTO appeal_actions (id, organization_id, appeal_id, status, via, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        action.id,
                        action.organization_id,
                        action.appeal_id,
                        action.status.value,
                        action.via.value,
                        action.created_at.isoformat(),
                    ),
                )
                await self._conn.execute(
                    "UPDATE appeals SET action_status = ? WHERE id = ?",
                    (status.value, appeal_id),
                )
                await self._conn.commit()
            except Exception:
                await self._conn.rollback()
                raise
        logger.info(
            "appeal_action_created",
            appeal_id=appeal_id,
            status=status.value,
            via=via.value,
        )
        return action

    async def list_appeal_actions(self, appeal_id: str) -> list[AppealAction]:
        rows = await self._fetchall(
            "SELECT * FROM appeal_actions WHERE appeal_id = ? ORDER BY created_at",
            (appeal_id,),
        )
        return [
            AppealAction(
                id=row["id"],
                organization_id=row["organization_id"],
                appeal_id=row["appeal_id"],
                status=AppealActionStatus(row["status"]),
                via=AppealActionVia(row["via"]),
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in rows
        ]

    @staticmethod
    def _appeal_from_row(row: aiosqlite.Row) -> Appeal:
        return Appeal(
            id=row["id"],
            organization_id=row["organization_id"],
            user_action_id=row["user_action_id"],
            action_status=AppealActionStatus(row["action_status"]),
        )

    # messages

    async def create_message(self, message: Message, *, dedupe_key: Optional[str] = None) -> Message:
        assert self._conn
        async with self._write_lock:
            cursor = await self._conn.execute(
                """
                INSERT OR IGNORE INTO messages (
                    id, organization_id, user_action_id, type, recipient_id,
                    subject, text, created_at, dedupe_key
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    message.id,
                    message.organization_id,
                    message.user_action_id,
                    message.type.value,
                    message.recipient_id,
                    message.subject,
                    message.text,
                    message.created_at.isoformat(),
                    dedupe_key,
                ),
            )
            inserted = cursor.rowcount == 1
            await cursor.close()
            await self._conn.commit()
        if inserted or dedupe_key is None:
            logger.info("message_created", message_id=message.id, user_action_id=message.user_action_id)
            return message
        row = await self._fetchone("SELECT * FROM messages WHERE dedupe_key = ?", (dedupe_key,))
        assert row is not None
        logger.info("message_deduplicated", message_id=row["id"], dedupe_key=dedupe_key)
        return self._message_from_row(row)

    async def list_messages(self, organization_id: str, user_action_id: str) -> list[Message]:
        rows = await self._fetchall(
            """
            SELECT * FROM messages
            WHERE organization_id = ? AND user_action_id = ?
            ORDER BY created_at
            """,
            (organization_id, user_action_id),
        )
        return [self._message_from_row(row) for row in rows]

    @staticmethod
    def _message_from_row(row: aiosqlite.Row) -> Message:
        return Message(
            id=row["id"],
            organization_id=row["organization_id"],
            user_action_id=row["user_action_id"],
            recipient_id=row["recipient_id"],
            subject=row["subject"],
            text=row["text"],
            type=MessageType(row["type"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    # workflow steps

    async def get_step(self, instance_id: str, step_name: str) -> Optional[StepRecord]:
        row = await self._fetchone(
            "SELECT * FROM workflow_steps WHERE instance_id = ? AND step_name = ?",
            (instance_id, step_name),
        )
        if row is None:
            return None
        return StepRecord(
            instance_id=row["instance_id"],
            step_name=row["step_name"],
            status=row["status"],
            result=json.loads(row["result_json"]) if row["result_json"] is not None else None,
            error=row["error"],
            attempts=row["attempts"],
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    async def record_step(self, record: StepRecord) -> None:
        assert self._conn
        async with self._write_lock:
            await self._conn.execute(
                """
                INSERT INTO workflow_steps (
                    instance_id, step_name, status, result_json, error, attempts, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(instance_id, step_name) DO UPDATE SET
                    status=excluded.status,
                    result_json=excluded.result_json,
                    error=excluded.error,
                    attempts=excluded.attempts,
                    updated_at=excluded.updated_at
                """,
                (
                    record.instance_id,
                    record.step_name,
                    record.status,
                    json.dumps(record.result) if record.result is not None else None,
                    record.error,
                    record.attempts,
                    record.updated_at.isoformat(),
                ),
            )
            await self._conn.commit()
        logger.debug(
            "sqlite_record_step",
            instance_id=record.instance_id,
            step=record.step_name,
            status=record.status,
            attempts=record.attempts,
        )
