from __future__ import annotations

"""SQLite-backed persistence for workflow documents and execution history."""

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any, List, Optional
from uuid import uuid4

from pydantic import Field

from nodeflow import config

from .exceptions import WorkflowNotFoundError
from .executor import WorkflowExecution
from .graph import CamelModel, CanvasData

logger = logging.getLogger(__name__)


class Workflow(CamelModel):
    id: str
    name: str
    description: str = ""
    canvas_data: CanvasData = Field(default_factory=CanvasData)
    created_at: datetime
    updated_at: datetime


class SQLitePersistence:
    """Thin wrapper around sqlite3 for storing workflows and their runs."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = Lock()
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path, check_same_thread=False)

    def _init_db(self) -> None:
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS workflows (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    canvas_json TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS executions (
                    id TEXT PRIMARY KEY,
                    workflow_id TEXT,
                    status TEXT NOT NULL,
                    started_at TEXT,
                    completed_at TEXT,
                    results_json TEXT NOT NULL,
                    error_message TEXT
                )
                """
            )
            conn.commit()

    # Workflows -------------------------------------------------------------

    def create_workflow(self, name: str, description: str = "") -> Workflow:
        now = datetime.now(timezone.utc)
        workflow = Workflow(
            id=str(uuid4()),
            name=name,
            description=description,
            canvas_data=CanvasData(),
            created_at=now,
            updated_at=now,
        )
        with self._lock, self._connect() as conn:
            conn.execute(
                """
                INSERT INTO workflows (id, name, description, canvas_json, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    workflow.id,
                    workflow.name,
                    workflow.description,
                    workflow.canvas_data.model_dump_json(by_alias=True),
                    now.isoformat(),
                    now.isoformat(),
                ),
            )
            conn.commit()
        logger.info("Created workflow '%s' (%s)", workflow.name, workflow.id)
        return workflow

    @staticmethod
    def _row_to_workflow(row: Any) -> Workflow:
        wid, name, description, canvas_json, created_at, updated_at = row
        return Workflow(
            id=wid,
            name=name,
            description=description or "",
            canvas_data=CanvasData.model_validate_json(canvas_json),
            created_at=datetime.fromisoformat(created_at),
            updated_at=datetime.fromisoformat(updated_at),
        )

    def get_workflow(self, workflow_id: str) -> Workflow:
        with self._lock, self._connect() as conn:
            row = conn.execute(
                """
                SELECT id, name, description, canvas_json, created_at, updated_at
                FROM workflows
                WHERE id = ?
                """,
                (workflow_id,),
            ).fetchone()
        if not row:
            raise WorkflowNotFoundError(f"Workflow '{workflow_id}' not found")
        return self._row_to_workflow(row)

    def list_workflows(self) -> List[Workflow]:
        with self._lock, self._connect() as conn:
            rows = conn.execute(
                """
                SELECT id, name, description, canvas_json, created_at, updated_at
                FROM workflows
                ORDER BY updated_at DESC
                """
            ).fetchall()
        return [self._row_to_workflow(row) for row in rows]

    def update_workflow(
        self,
        workflow_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
        canvas_data: Optional[CanvasData] = None,
    ) -> Workflow:
        current = self.get_workflow(workflow_id)
        updated = current.model_copy(
            update={
                "name": name if name is not None else current.name,
                "description": description if description is not None else current.description,
                "canvas_data": canvas_data if canvas_data is not None else current.canvas_data,
                "updated_at": datetime.now(timezone.utc),
            }
        )
        with self._lock, self._connect() as conn:
            conn.execute(
                """
                UPDATE workflows
                SET name = ?, description = ?, canvas_json = ?, updated_at = ?
                WHERE id = ?
                """,
                (
                    updated.name,
                    updated.description,
                    updated.canvas_data.model_dump_json(by_alias=True),
                    updated.updated_at.isoformat(),
                    workflow_id,
                ),
            )
            conn.commit()
        return updated

    def save_canvas(self, workflow_id: str, canvas_data: CanvasData) -> Workflow:
        return self.update_workflow(workflow_id, canvas_data=canvas_data)

    def delete_workflow(self, workflow_id: str) -> None:
        with self._lock, self._connect() as conn:
            cur = conn.execute("DELETE FROM workflows WHERE id = ?", (workflow_id,))
            conn.execute("DELETE FROM executions WHERE workflow_id = ?", (workflow_id,))
            conn.commit()
        if cur.rowcount == 0:
            raise WorkflowNotFoundError(f"Workflow '{workflow_id}' not found")
        logger.info("Deleted workflow '%s'", workflow_id)

    # Executions ------------------------------------------------------------

    def record_execution(self, execution: WorkflowExecution) -> None:
        """Insert or replace the stored record of a run."""
        results = [result.model_dump(mode="json", by_alias=True) for result in execution.results]
        with self._lock, self._connect() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO executions
                    (id, workflow_id, status, started_at, completed_at, results_json, error_message)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    execution.id,
                    execution.workflow_id,
                    execution.status.value,
                    execution.started_at.isoformat() if execution.started_at else None,
                    execution.completed_at.isoformat() if execution.completed_at else None,
                    json.dumps(results),
                    execution.error_message,
                ),
            )
            conn.commit()

    @staticmethod
    def _row_to_execution(row: Any) -> WorkflowExecution:
        eid, workflow_id, status, started_at, completed_at, results_json, error_message = row
        return WorkflowExecution.model_validate(
            {
                "id": eid,
                "workflowId": workflow_id,
                "status": status,
                "startedAt": started_at,
                "completedAt": completed_at,
                "results": json.loads(results_json),
                "errorMessage": error_message,
            }
        )

    def get_execution(self, execution_id: str) -> WorkflowExecution:
        with self._lock, self._connect() as conn:
            row = conn.execute(
                """
                SELECT id, workflow_id, status, started_at, completed_at, results_json, error_message
                FROM executions
                WHERE id = ?
                """,
                (execution_id,),
            ).fetchone()
        if not row:
            raise WorkflowNotFoundError(f"Execution '{execution_id}' not found")
        return self._row_to_execution(row)

    def list_executions(
        self, workflow_id: Optional[str] = None, limit: int = 50
    ) -> List[WorkflowExecution]:
        query = """
            SELECT id, workflow_id, status, started_at, completed_at, results_json, error_message
            FROM executions
        """
        params: List[Any] = []
        if workflow_id is not None:
            query += " WHERE workflow_id = ?"
            params.append(workflow_id)
        query += " ORDER BY started_at DESC LIMIT ?"
        params.append(limit)
        with self._lock, self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_execution(row) for row in rows]


def _create_default_persistence() -> Optional[SQLitePersistence]:
    """Create a default persistence instance, falling back to None if unavailable."""
    try:
        return SQLitePersistence(config.DB_PATH)
    except Exception as exc:  # pragma: no cover
        logger.warning("SQLite persistence disabled: %s", exc)
        return None


persistence: Optional[SQLitePersistence] = _create_default_persistence()
