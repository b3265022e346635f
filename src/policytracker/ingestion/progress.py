"""
SQLite progress tracking for resumable extraction runs.

Extracting commitments from a large JSONL export means thousands of oracle
calls. The tracker stores one row per (document, pipeline) with the state of
that document, so a run that was interrupted (Ctrl-C, crash, quota exhausted)
picks up with the documents it had not finished, and documents that failed
are retried on the next run. Each run is also logged with its parameters and
final totals.

Tables:
    - progress: (document_id, pipeline) -> status, error, counts, timing
    - runs: run_id -> pipeline, parameters, start/end, totals

Python Learning Notes:
    - isolation_level=None puts sqlite3 in autocommit mode: every statement is
      durable as soon as execute() returns
    - sqlite3.Row lets rows be read by column name and converted with dict()
    - "INSERT OR IGNORE" adds a row only if its primary key is new
"""

import json
import logging
import sqlite3
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS progress (
    document_id TEXT NOT NULL,
    pipeline TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'pending',
    error_message TEXT,
    metadata TEXT,
    commitments_found INTEGER,
    processing_time_ms INTEGER,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY (document_id, pipeline)
);
CREATE INDEX IF NOT EXISTS idx_progress_status ON progress(pipeline, status);
CREATE TABLE IF NOT EXISTS runs (
    run_id INTEGER PRIMARY KEY AUTOINCREMENT,
    pipeline TEXT NOT NULL,
    parameters TEXT,
    started_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    completed_at TIMESTAMP,
    total_documents INTEGER DEFAULT 0,
    completed_documents INTEGER DEFAULT 0,
    failed_documents INTEGER DEFAULT 0
);
"""


class ProcessingStatus(Enum):
    """
    State of one document within a pipeline.

    pending -> processing -> completed | failed. A crash leaves documents in
    ``processing``; reset_processing_status() puts them back to ``pending``.
    Failed documents are picked up again by the next run.
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ProgressTracker:
    """
    Per-document progress for one named pipeline.

    Several pipelines may share a database file; every query is scoped to
    ``pipeline``.

    Attributes:
        db_path (Union[Path, str]): Database file, or ":memory:".
        pipeline (str): Pipeline the rows belong to (e.g. "extraction").
        conn (sqlite3.Connection): Autocommit connection.

    Example:
        tracker = ProgressTracker("data/progress/extraction.db", "extraction")
        run_id = tracker.start_run({"limit": 100})
        for document in documents:
            tracker.add_document(document.id)
            if tracker.is_processed(document.id):
                continue
            tracker.mark_processing(document.id)
            ...
            tracker.mark_completed(document.id, commitments_found=3)
        tracker.end_run(run_id)
    """

    def __init__(
        self, db_path: Union[str, Path] = "progress.db", pipeline: str = "extraction"
    ):
        if str(db_path) == ":memory:":
            self.db_path: Union[Path, str] = ":memory:"
        else:
            self.db_path = Path(db_path)
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.pipeline = pipeline
        self.conn = sqlite3.connect(str(self.db_path), isolation_level=None)
        self.conn.row_factory = sqlite3.Row
        self.conn.executescript(_SCHEMA)

    def _count_by_status(self) -> Dict[str, int]:
        rows = self.conn.execute(
            "SELECT status, COUNT(*) AS n FROM progress WHERE pipeline = ? GROUP BY status",
            (self.pipeline,),
        ).fetchall()
        return {row["status"]: row["n"] for row in rows}

    # -- runs -----------------------------------------------------------------

    def start_run(self, parameters: Optional[Dict[str, Any]] = None) -> int:
        """Record the start of a run; returns its id."""
        cursor = self.conn.execute(
            "INSERT INTO runs (pipeline, parameters) VALUES (?, ?)",
            (self.pipeline, json.dumps(parameters or {}, ensure_ascii=False)),
        )
        return cursor.lastrowid

    def end_run(self, run_id: int) -> None:
        """Close a run, storing the pipeline's document totals at this point."""
        counts = self._count_by_status()
        self.conn.execute(
            """
            UPDATE runs
            SET completed_at = CURRENT_TIMESTAMP,
                total_documents = ?, completed_documents = ?, failed_documents = ?
            WHERE run_id = ?
            """,
            (
                sum(counts.values()),
                counts.get(ProcessingStatus.COMPLETED.value, 0),
                counts.get(ProcessingStatus.FAILED.value, 0),
                run_id,
            ),
        )

    def get_run_history(self, limit: int = 10) -> List[Dict[str, Any]]:
        """Most recent runs first."""
        rows = self.conn.execute(
            "SELECT * FROM runs WHERE pipeline = ? ORDER BY run_id DESC LIMIT ?",
            (self.pipeline, limit),
        ).fetchall()
        return [dict(row) for row in rows]

    # -- documents --------------------------------------------------------------

    def add_document(self, document_id: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        """Start tracking a document. A document already tracked keeps its state."""
        self.conn.execute(
            "INSERT OR IGNORE INTO progress (document_id, pipeline, metadata) VALUES (?, ?, ?)",
            (document_id, self.pipeline, json.dumps(metadata or {}, ensure_ascii=False)),
        )

    def is_processed(self, document_id: str) -> bool:
        row = self.conn.execute(
            "SELECT status FROM progress WHERE document_id = ? AND pipeline = ?",
            (document_id, self.pipeline),
        ).fetchone()
        return row is not None and row["status"] == ProcessingStatus.COMPLETED.value

    def _set_status(self, document_id: str, status: ProcessingStatus, **columns) -> None:
        assignments = "".join(f", {name} = ?" for name in columns)
        self.conn.execute(
            f"UPDATE progress SET status = ?, updated_at = CURRENT_TIMESTAMP{assignments} "
            "WHERE document_id = ? AND pipeline = ?",
            (status.value, *columns.values(), document_id, self.pipeline),
        )

    def mark_processing(self, document_id: str) -> None:
        self._set_status(document_id, ProcessingStatus.PROCESSING)

    def mark_completed(
        self,
        document_id: str,
        processing_time_ms: Optional[int] = None,
        commitments_found: Optional[int] = None,
    ) -> None:
        self._set_status(
            document_id,
            ProcessingStatus.COMPLETED,
            processing_time_ms=processing_time_ms,
            commitments_found=commitments_found,
            error_message=None,
        )

    def mark_failed(self, document_id: str, error_message: str) -> None:
        self._set_status(document_id, ProcessingStatus.FAILED, error_message=error_message)

    def get_pending_documents(self, limit: Optional[int] = None) -> List[str]:
        """Ids still to do (pending or failed), in the order they were added."""
        sql = (
            "SELECT document_id FROM progress WHERE pipeline = ? "
            "AND status IN ('pending', 'failed') ORDER BY rowid"
        )
        params: List[Any] = [self.pipeline]
        if limit:
            sql += " LIMIT ?"
            params.append(limit)
        return [row["document_id"] for row in self.conn.execute(sql, params)]

    def reset_processing_status(self) -> int:
        """Put documents a crashed run left in ``processing`` back to ``pending``."""
        cursor = self.conn.execute(
            "UPDATE progress SET status = 'pending', updated_at = CURRENT_TIMESTAMP "
            "WHERE pipeline = ? AND status = 'processing'",
            (self.pipeline,),
        )
        if cursor.rowcount:
            logger.info("Reset %d interrupted document(s) to pending", cursor.rowcount)
        return cursor.rowcount

    def get_statistics(self) -> Dict[str, Any]:
        """
        Totals for the pipeline.

        Returns:
            Dict[str, Any]: Counts per status plus total, success_rate (over
                completed and failed), commitments_found, avg_processing_time_ms
                and the ten most recent failures with their error messages.
        """
        counts = self._count_by_status()
        stats: Dict[str, Any] = {"pipeline": self.pipeline, "total": sum(counts.values())}
        for status in ProcessingStatus:
            stats[status.value] = counts.get(status.value, 0)

        finished = stats["completed"] + stats["failed"]
        stats["success_rate"] = stats["completed"] / finished * 100 if finished else 0.0

        totals = self.conn.execute(
            "SELECT AVG(processing_time_ms) AS avg_ms, "
            "COALESCE(SUM(commitments_found), 0) AS found "
            "FROM progress WHERE pipeline = ? AND status = 'completed'",
            (self.pipeline,),
        ).fetchone()
        stats["commitments_found"] = totals["found"]
        stats["avg_processing_time_ms"] = (
            int(totals["avg_ms"]) if totals["avg_ms"] is not None else None
        )

        failures = self.conn.execute(
            "SELECT document_id, error_message, updated_at FROM progress "
            "WHERE pipeline = ? AND status = 'failed' "
            "ORDER BY updated_at DESC, rowid DESC LIMIT 10",
            (self.pipeline,),
        ).fetchall()
        stats["failed_documents"] = [
            {"document_id": f["document_id"], "error": f["error_message"], "failed_at": f["updated_at"]}
            for f in failures
        ]
        return stats

    def close(self) -> None:
        self.conn.close()
