"""
SQLite-backed artifact sink.

Stores published batches in a small case database and notifies registered
listeners after each committed batch. One batch is one transaction.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from .artifacts import ExtractionBatch
from .logging import get_logger

LOGGER = get_logger("core.artifact_store")

DiscoveryListener = Callable[[ExtractionBatch, List[int]], None]

SCHEMA = """
CREATE TABLE IF NOT EXISTS artifacts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    kind TEXT NOT NULL,
    source_file_id INTEGER NOT NULL,
    source_path TEXT NOT NULL,
    url TEXT NOT NULL,
    domain TEXT NOT NULL,
    user_name TEXT NOT NULL,
    referrer TEXT NOT NULL,
    title TEXT NOT NULL,
    program_name TEXT NOT NULL,
    datetime_accessed INTEGER,
    discovered_at_utc TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_artifacts_kind ON artifacts(kind);
CREATE INDEX IF NOT EXISTS idx_artifacts_domain ON artifacts(domain);

CREATE TABLE IF NOT EXISTS extraction_warnings (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    run_id TEXT NOT NULL,
    extractor_name TEXT NOT NULL,
    warning_type TEXT NOT NULL,
    severity TEXT NOT NULL,
    source_file TEXT,
    item_name TEXT NOT NULL,
    item_value TEXT,
    created_at_utc TEXT NOT NULL
);
"""

_ARTIFACT_COLUMNS = (
    "url",
    "domain",
    "user_name",
    "referrer",
    "title",
    "program_name",
    "datetime_accessed",
)


def init_db(db_path: Union[str, Path]) -> sqlite3.Connection:
    """Open (creating if needed) an artifact database and ensure the schema."""
    if str(db_path) != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    conn.executescript(SCHEMA)
    conn.commit()
    return conn


class SqliteArtifactSink:
    """Artifact sink writing into the ``artifacts`` table."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn
        self._listeners: List[DiscoveryListener] = []

    def add_listener(self, listener: DiscoveryListener) -> None:
        """Register a callback fired after each committed batch."""
        self._listeners.append(listener)

    def publish(self, batch: ExtractionBatch) -> List[int]:
        if batch.is_empty:
            raise ValueError("Refusing to publish an empty batch")

        discovered_at = datetime.now(timezone.utc).isoformat(timespec="seconds")
        ids: List[int] = []
        with self.conn:
            for record in batch.records:
                attributes = record.to_attributes()
                values = [
                    attributes.get(column) if column == "datetime_accessed" else attributes.get(column, "")
                    for column in _ARTIFACT_COLUMNS
                ]
                cursor = self.conn.execute(
                    f"""
                    INSERT INTO artifacts (
                        kind, source_file_id, source_path,
                        {", ".join(_ARTIFACT_COLUMNS)}, discovered_at_utc
                    ) VALUES (?, ?, ?, {", ".join("?" for _ in _ARTIFACT_COLUMNS)}, ?)
                    """,
                    (batch.kind.value, batch.source.file_id, batch.source.path, *values, discovered_at),
                )
                ids.append(int(cursor.lastrowid))

        LOGGER.debug(
            "Published %d %s artifact(s) from %s",
            len(ids), batch.kind.value, batch.source.path,
        )
        for listener in self._listeners:
            listener(batch, ids)
        return ids

    def count(self, kind: Optional[str] = None) -> int:
        if kind is None:
            row = self.conn.execute("SELECT COUNT(*) FROM artifacts").fetchone()
        else:
            row = self.conn.execute("SELECT COUNT(*) FROM artifacts WHERE kind = ?", (kind,)).fetchone()
        return int(row[0])


def insert_extraction_warnings(conn: sqlite3.Connection, rows: Iterable[Dict[str, Any]]) -> int:
    """Insert extraction warning dicts; returns the number of rows written."""
    created_at = datetime.now(timezone.utc).isoformat(timespec="seconds")
    payload = [
        (
            row["run_id"],
            row["extractor_name"],
            row["warning_type"],
            row["severity"],
            row.get("source_file"),
            row["item_name"],
            row.get("item_value"),
            created_at,
        )
        for row in rows
    ]
    if not payload:
        return 0
    with conn:
        conn.executemany(
            """
            INSERT INTO extraction_warnings (
                run_id, extractor_name, warning_type, severity,
                source_file, item_name, item_value, created_at_utc
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            payload,
        )
    return len(payload)
