"""SQLite persistence for metric samples and auth events."""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Iterable, List, Optional

from hostwatch.errors import PersistenceError
from hostwatch.models import AuthEvent, AuthStatus, MetricSample

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS metrics (
  timestamp           INTEGER PRIMARY KEY,
  cpu_usage           REAL,
  memory_usage        REAL,
  memory_total        INTEGER,
  memory_used         INTEGER,
  disk_usage          REAL,
  network_received    INTEGER,
  network_transmitted INTEGER,
  target_cpu          REAL,
  target_memory       INTEGER,
  target_disk_read    INTEGER,
  target_disk_write   INTEGER
);

CREATE TABLE IF NOT EXISTS auth_events (
  timestamp  INTEGER NOT NULL,
  identifier TEXT NOT NULL,
  status     TEXT NOT NULL,
  PRIMARY KEY (timestamp, identifier)
);

CREATE INDEX IF NOT EXISTS idx_metrics_timestamp ON metrics(timestamp);
CREATE INDEX IF NOT EXISTS idx_auth_events_timestamp ON auth_events(timestamp);
"""

METRIC_COLUMNS = (
    "timestamp, cpu_usage, memory_usage, memory_total, memory_used, disk_usage, "
    "network_received, network_transmitted, target_cpu, target_memory, "
    "target_disk_read, target_disk_write"
)


class MetricsStore:
    """
    Durable tables of metric samples and auth events.

    Every write commits immediately. The store is owned by a single sampling
    engine, so no locking is done beyond SQLite's own.
    """

    def __init__(self, db_path: str | Path = "metrics.db"):
        self.db_path = str(db_path)
        target = self.db_path
        if target != ":memory:":
            path = Path(target).expanduser()
            path.parent.mkdir(parents=True, exist_ok=True)
            target = str(path)
        try:
            self._conn = sqlite3.connect(target)
            self._conn.executescript(SCHEMA)
            self._conn.commit()
        except sqlite3.Error as exc:
            raise PersistenceError("open", f"cannot open {self.db_path}", exc) from exc

    def close(self) -> None:
        try:
            self._conn.close()
        except sqlite3.Error:
            logger.exception("Error closing %s", self.db_path)

    def __enter__(self) -> MetricsStore:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ── metrics ───────────────────────────────
    def insert_metric(self, sample: MetricSample) -> None:
        """Insert one sample. A second sample for the same second fails."""
        try:
            self._conn.execute(
                f"INSERT INTO metrics({METRIC_COLUMNS}) VALUES(?,?,?,?,?,?,?,?,?,?,?,?)",
                (
                    int(sample.timestamp),
                    sample.cpu_percent,
                    sample.memory_percent,
                    sample.memory_total_bytes,
                    sample.memory_used_bytes,
                    sample.disk_percent,
                    sample.network_received_bytes,
                    sample.network_transmitted_bytes,
                    sample.target_cpu_percent,
                    sample.target_memory_bytes,
                    sample.target_disk_read_bytes,
                    sample.target_disk_write_bytes,
                ),
            )
            self._conn.commit()
        except sqlite3.Error as exc:
            self._rollback()
            raise PersistenceError("insert_metric", str(exc), exc) from exc

    def metrics_since(self, ts: int, limit: int = 1000) -> List[MetricSample]:
        """Samples with timestamp >= ts, oldest first."""
        cur = self._conn.execute(
            f"SELECT {METRIC_COLUMNS} FROM metrics WHERE timestamp >= ? ORDER BY timestamp LIMIT ?",
            (ts, limit),
        )
        return [
            MetricSample(
                timestamp=float(row[0]),
                cpu_percent=row[1],
                memory_percent=row[2],
                memory_total_bytes=row[3],
                memory_used_bytes=row[4],
                disk_percent=row[5],
                network_received_bytes=row[6],
                network_transmitted_bytes=row[7],
                target_cpu_percent=row[8],
                target_memory_bytes=row[9],
                target_disk_read_bytes=row[10],
                target_disk_write_bytes=row[11],
            )
            for row in cur.fetchall()
        ]

    def latest_metric_second(self) -> Optional[int]:
        """Timestamp of the newest stored sample, or None for an empty table."""
        cur = self._conn.execute("SELECT MAX(timestamp) FROM metrics")
        return cur.fetchone()[0]

    def count_metrics(self) -> int:
        cur = self._conn.execute("SELECT COUNT(*) FROM metrics")
        return cur.fetchone()[0]

    # ── auth events ───────────────────────────
    def insert_auth_events(self, events: Iterable[AuthEvent]) -> List[AuthEvent]:
        """
        Insert events, ignoring any whose (timestamp, identifier) already exists.

        Returns the events that were actually written, single commit.
        """
        accepted: List[AuthEvent] = []
        try:
            for event in events:
                cur = self._conn.execute(
                    "INSERT OR IGNORE INTO auth_events(timestamp,identifier,status) VALUES(?,?,?)",
                    (event.timestamp, event.identifier, event.status.value),
                )
                if cur.rowcount == 1:
                    accepted.append(event)
            self._conn.commit()
        except sqlite3.Error as exc:
            self._rollback()
            raise PersistenceError("insert_auth_events", str(exc), exc) from exc
        return accepted

    def auth_events_since(self, ts: int, limit: int = 1000) -> List[AuthEvent]:
        """Events with timestamp >= ts, oldest first."""
        cur = self._conn.execute(
            "SELECT timestamp, identifier, status FROM auth_events "
            "WHERE timestamp >= ? ORDER BY timestamp, identifier LIMIT ?",
            (ts, limit),
        )
        return [AuthEvent(row[0], row[1], AuthStatus(row[2])) for row in cur.fetchall()]

    def count_auth_events(self) -> int:
        cur = self._conn.execute("SELECT COUNT(*) FROM auth_events")
        return cur.fetchone()[0]

    # ── maintenance ───────────────────────────
    def compact(self) -> None:
        """Reclaim free pages and refresh query planner statistics."""
        try:
            self._conn.execute("VACUUM")
            self._conn.execute("ANALYZE")
            self._conn.commit()
        except sqlite3.Error as exc:
            raise PersistenceError("compact", str(exc), exc) from exc
        logger.info("Compacted %s", self.db_path)

    def _rollback(self) -> None:
        try:
            self._conn.rollback()
        except sqlite3.Error:
            logger.exception("Rollback failed on %s", self.db_path)
