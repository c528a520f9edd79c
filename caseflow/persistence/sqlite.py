"""SQLite implementation of the workflow repository."""

from __future__ import annotations

import asyncio
import sqlite3
import threading
from pathlib import Path
from typing import Any

from ..contracts import WorkflowSchema
from ..models import Checkpoint, WorkflowInstance
from .repository import WorkflowRepository


class SQLiteWorkflowRepository(WorkflowRepository):
    """Persist schemas, instances and checkpoints using SQLite.

    Records are stored as JSON documents next to the columns used for
    lookups.
    """

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_schemas (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                version INTEGER NOT NULL,
                definition TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_instances (
                id TEXT PRIMARY KEY,
                schema_id TEXT NOT NULL,
                correlation_id TEXT,
                status TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                data TEXT NOT NULL
            )
            """
        )
        cur.execute(
            "CREATE INDEX IF NOT EXISTS ix_instances_correlation ON workflow_instances (correlation_id)"
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_checkpoints (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                id TEXT NOT NULL UNIQUE,
                instance_id TEXT NOT NULL,
                status TEXT NOT NULL,
                reason TEXT NOT NULL,
                created_at TEXT NOT NULL,
                data TEXT NOT NULL
            )
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> None:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            self._conn.commit()

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchall()

    # ------------------------------------------------------------------
    # Repository API
    async def get_schema(self, schema_id: str) -> WorkflowSchema | None:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT definition FROM workflow_schemas WHERE id = ?",
            schema_id,
        )
        if not row:
            return None
        return WorkflowSchema.model_validate_json(row["definition"])

    async def save_schema(self, schema: WorkflowSchema) -> None:
        await asyncio.to_thread(
            self._execute,
            "INSERT OR REPLACE INTO workflow_schemas (id, name, version, definition) VALUES (?, ?, ?, ?)",
            schema.id,
            schema.name,
            schema.version,
            schema.model_dump_json(by_alias=True),
        )

    async def get_instance(self, instance_id: str) -> WorkflowInstance | None:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT data FROM workflow_instances WHERE id = ?",
            instance_id,
        )
        if not row:
            return None
        return WorkflowInstance.model_validate_json(row["data"])

    async def get_instance_by_correlation_id(
        self, correlation_id: str
    ) -> WorkflowInstance | None:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT data FROM workflow_instances WHERE correlation_id = ? ORDER BY updated_at DESC",
            correlation_id,
        )
        if not row:
            return None
        return WorkflowInstance.model_validate_json(row["data"])

    async def save_instance(self, instance: WorkflowInstance) -> None:
        await asyncio.to_thread(
            self._execute,
            """
            INSERT OR REPLACE INTO workflow_instances
                (id, schema_id, correlation_id, status, updated_at, data)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            instance.id,
            instance.schema_id,
            instance.correlation_id,
            instance.status.value,
            instance.updated_at.isoformat(),
            instance.model_dump_json(),
        )

    async def save_checkpoint(self, checkpoint: Checkpoint) -> None:
        await asyncio.to_thread(
            self._execute,
            """
            INSERT INTO workflow_checkpoints (id, instance_id, status, reason, created_at, data)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            checkpoint.id,
            checkpoint.instance_id,
            checkpoint.status.value,
            checkpoint.reason,
            checkpoint.created_at.isoformat(),
            checkpoint.model_dump_json(),
        )

    async def list_checkpoints(self, instance_id: str) -> list[Checkpoint]:
        rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT data FROM workflow_checkpoints WHERE instance_id = ? ORDER BY seq",
            instance_id,
        )
        return [Checkpoint.model_validate_json(r["data"]) for r in rows]

    async def list_instances(self) -> list[WorkflowInstance]:
        rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT data FROM workflow_instances ORDER BY updated_at",
        )
        return [WorkflowInstance.model_validate_json(r["data"]) for r in rows]
