"""SQLite persistence for execution outcomes.

Keeps a durable history of test results so reports survive restarts. The
in-memory aggregator stays the source of truth for a running process.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ..models import ExecutionOutcome, OutcomeStatus

logger = logging.getLogger(__name__)


class ResultStore:
    """Persists outcomes and their refreshed status."""

    def __init__(self, db_path: str) -> None:
        """Initialize the store.

        Args:
            db_path: Path to SQLite database
        """
        self.db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._ensure_tables()

    def _get_conn(self) -> sqlite3.Connection:
        """Get a database connection."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_tables(self) -> None:
        """Ensure result tables exist."""
        conn = self._get_conn()
        try:
            cursor = conn.cursor()
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS test_results (
                    id TEXT PRIMARY KEY,
                    claim_id TEXT,
                    source_title TEXT NOT NULL,
                    group_name TEXT,
                    kind TEXT,
                    status TEXT NOT NULL,
                    outcome TEXT,
                    message TEXT,
                    duration_ms REAL DEFAULT 0,
                    submitted_at TEXT NOT NULL,
                    refreshed_at TEXT,
                    details TEXT,
                    created_at TEXT NOT NULL
                )
            """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_test_results_claim
                ON test_results(claim_id)
            """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_test_results_status
                ON test_results(status)
            """)
            conn.commit()
        finally:
            conn.close()

    def save(self, outcome: ExecutionOutcome) -> None:
        """Insert an outcome.

        Args:
            outcome: Terminal outcome to persist
        """
        created_at = datetime.now(timezone.utc).isoformat()
        conn = self._get_conn()
        try:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT OR REPLACE INTO test_results (
                    id, claim_id, source_title, group_name, kind, status,
                    outcome, message, duration_ms, submitted_at, refreshed_at,
                    details, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    outcome.id,
                    outcome.claim_id,
                    outcome.source_title,
                    outcome.group,
                    outcome.kind.value if outcome.kind else None,
                    outcome.status.value,
                    outcome.outcome,
                    outcome.message,
                    outcome.duration_ms,
                    outcome.submitted_at,
                    outcome.timestamp,
                    json.dumps(asdict(outcome.details), default=str),
                    created_at,
                ),
            )
            conn.commit()
            logger.debug(f"Saved outcome {outcome.id} ({outcome.status.value})")
        finally:
            conn.close()

    def update_claim_status(
        self,
        claim_id: str,
        status: OutcomeStatus,
        outcome: str,
        message: str,
        refreshed_at: str,
    ) -> int:
        """Write refreshed status fields to every result of a claim.

        The stored request details are never rewritten.

        Returns:
            Number of rows updated
        """
        conn = self._get_conn()
        try:
            cursor = conn.cursor()
            cursor.execute(
                """
                UPDATE test_results
                SET status = ?, outcome = ?, message = ?, refreshed_at = ?
                WHERE claim_id = ?
                """,
                (status.value, outcome, message, refreshed_at, claim_id),
            )
            conn.commit()
            return cursor.rowcount
        finally:
            conn.close()

    def get_result(self, outcome_id: str) -> dict[str, Any] | None:
        """Get a stored result.

        Args:
            outcome_id: Outcome ID

        Returns:
            Result dict or None
        """
        conn = self._get_conn()
        try:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM test_results WHERE id = ?", (outcome_id,))
            row = cursor.fetchone()
            return self._row_to_dict(row) if row else None
        finally:
            conn.close()

    def list_results(
        self,
        claim_id: str | None = None,
        status: OutcomeStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """List stored results with optional filtering, newest first.

        Args:
            claim_id: Filter by claim
            status: Filter by status
            limit: Maximum results
            offset: Pagination offset

        Returns:
            List of result dicts
        """
        conn = self._get_conn()
        try:
            cursor = conn.cursor()

            query = "SELECT * FROM test_results WHERE 1=1"
            params: list[Any] = []

            if claim_id:
                query += " AND claim_id = ?"
                params.append(claim_id)
            if status:
                query += " AND status = ?"
                params.append(status.value)

            query += " ORDER BY submitted_at DESC LIMIT ? OFFSET ?"
            params.extend([limit, offset])

            cursor.execute(query, params)
            return [self._row_to_dict(row) for row in cursor.fetchall()]
        finally:
            conn.close()

    @staticmethod
    def _row_to_dict(row: sqlite3.Row) -> dict[str, Any]:
        data = dict(row)
        if data.get("details"):
            try:
                data["details"] = json.loads(data["details"])
            except json.JSONDecodeError:
                logger.warning(f"Corrupt details for result {data.get('id')}")
                data["details"] = {}
        return data
