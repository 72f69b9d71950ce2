"""SQLite implementation of the workflow backend."""

from __future__ import annotations

import asyncio
import sqlite3
from pathlib import Path
from typing import Any

from ..contracts import WorkflowDraft, WorkflowState
from .inmemory import InMemoryWorkflowBackend


class SQLiteWorkflowBackend(InMemoryWorkflowBackend):
    """Persist workflow state, drafts and created assets using SQLite."""

    def __init__(self, db_path: str | Path, **kwargs: Any):
        super().__init__(**kwargs)
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS workflows (
                id TEXT PRIMARY KEY,
                status TEXT NOT NULL,
                state TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS drafts (
                workflow_id TEXT PRIMARY KEY,
                draft TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS assets (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                workflow_id TEXT NOT NULL,
                data TEXT NOT NULL
            )
            """
        )
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> int | None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        self._conn.commit()
        return cur.lastrowid

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchall()

    # ------------------------------------------------------------------
    # Storage hooks
    async def _load(self, workflow_id: str) -> WorkflowState | None:
        row = await asyncio.to_thread(
            self._fetchone, "SELECT state FROM workflows WHERE id = ?", workflow_id
        )
        if row is None:
            return None
        return WorkflowState.model_validate_json(row["state"])

    async def _load_all(self) -> list[WorkflowState]:
        rows = await asyncio.to_thread(
            self._fetchall, "SELECT state FROM workflows ORDER BY rowid"
        )
        return [WorkflowState.model_validate_json(r["state"]) for r in rows]

    async def _store(self, state: WorkflowState) -> None:
        await asyncio.to_thread(
            self._execute,
            """
            INSERT INTO workflows (id, status, state) VALUES (?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET status = excluded.status, state = excluded.state
            """,
            state.id,
            state.status.value,
            state.model_dump_json(),
        )

    async def _load_drafts(self, workflow_id: str) -> list[WorkflowDraft]:
        rows = await asyncio.to_thread(
            self._fetchall, "SELECT draft FROM drafts WHERE workflow_id = ?", workflow_id
        )
        return [WorkflowDraft.model_validate_json(r["draft"]) for r in rows]

    async def _store_draft(self, draft: WorkflowDraft) -> None:
        await asyncio.to_thread(
            self._execute,
            """
            INSERT INTO drafts (workflow_id, draft) VALUES (?, ?)
            ON CONFLICT(workflow_id) DO UPDATE SET draft = excluded.draft
            """,
            draft.workflow_id,
            draft.model_dump_json(),
        )

    async def _delete_drafts(self, workflow_id: str) -> None:
        await asyncio.to_thread(
            self._execute, "DELETE FROM drafts WHERE workflow_id = ?", workflow_id
        )

    async def _create_asset(self, state: WorkflowState) -> int:
        row_id = await asyncio.to_thread(
            self._execute,
            "INSERT INTO assets (workflow_id, data) VALUES (?, ?)",
            state.id,
            state.model_dump_json(include={"data"}),
        )
        assert row_id is not None
        return row_id
