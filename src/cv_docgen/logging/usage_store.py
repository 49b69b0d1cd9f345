"""SQLite-backed generation log storage."""

from __future__ import annotations

import sqlite3
from datetime import datetime
from pathlib import Path

from cv_docgen.logging.models import GenerationLog

DEFAULT_DB_PATH = Path.home() / ".cv-docgen" / "generation.db"

_COLUMNS = (
    "id", "client_id", "timestamp", "template_id", "output_format", "language",
    "status_code", "processing_time_ms", "conversion_method", "conversion_time_ms",
    "page_count", "warning_count", "success", "error_type", "error_message",
)


class GenerationLogStore:
    """SQLite-backed store for generation logs with WAL mode."""

    def __init__(self, db_path: str | Path = DEFAULT_DB_PATH):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS generation_logs (
                    id TEXT PRIMARY KEY,
                    client_id TEXT NOT NULL,
                    timestamp TEXT NOT NULL,
                    template_id TEXT,
                    output_format TEXT,
                    language TEXT NOT NULL DEFAULT 'en',
                    status_code INTEGER NOT NULL,
                    processing_time_ms INTEGER NOT NULL DEFAULT 0,
                    conversion_method TEXT,
                    conversion_time_ms INTEGER,
                    page_count INTEGER,
                    warning_count INTEGER NOT NULL DEFAULT 0,
                    success INTEGER NOT NULL DEFAULT 1,
                    error_type TEXT,
                    error_message TEXT
                )
            """)

    def save_log(self, log: GenerationLog) -> None:
        with self._connect() as conn:
            conn.execute(
                f"INSERT OR REPLACE INTO generation_logs ({', '.join(_COLUMNS)}) "
                f"VALUES ({', '.join('?' for _ in _COLUMNS)})",
                (
                    log.id,
                    log.client_id,
                    log.timestamp.isoformat(),
                    log.template_id,
                    log.output_format,
                    log.language,
                    log.status_code,
                    log.processing_time_ms,
                    log.conversion_method,
                    log.conversion_time_ms,
                    log.page_count,
                    log.warning_count,
                    1 if log.success else 0,
                    log.error_type,
                    log.error_message,
                ),
            )

    def get_logs(
        self,
        client_id: str | None = None,
        limit: int = 50,
    ) -> list[GenerationLog]:
        """Most recent logs first, optionally for one client."""
        with self._connect() as conn:
            if client_id is not None:
                rows = conn.execute(
                    f"SELECT {', '.join(_COLUMNS)} FROM generation_logs "
                    "WHERE client_id = ? ORDER BY timestamp DESC LIMIT ?",
                    (client_id, limit),
                ).fetchall()
            else:
                rows = conn.execute(
                    f"SELECT {', '.join(_COLUMNS)} FROM generation_logs "
                    "ORDER BY timestamp DESC LIMIT ?",
                    (limit,),
                ).fetchall()
        return [self._row_to_log(row) for row in rows]

    def get_monthly_stats(self) -> dict:
        """Aggregated stats for the current month."""
        now = datetime.now()
        month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        with self._connect() as conn:
            row = conn.execute(
                """SELECT
                       COUNT(*) as total_requests,
                       SUM(CASE WHEN success = 1 THEN 1 ELSE 0 END) as success_count,
                       AVG(processing_time_ms) as avg_processing_ms,
                       SUM(CASE WHEN conversion_method IS NOT NULL THEN 1 ELSE 0 END) as conversions
                   FROM generation_logs
                   WHERE timestamp >= ?""",
                (month_start.isoformat(),),
            ).fetchone()
            templates = conn.execute(
                """SELECT template_id, COUNT(*) FROM generation_logs
                   WHERE timestamp >= ? AND template_id IS NOT NULL
                   GROUP BY template_id ORDER BY COUNT(*) DESC""",
                (month_start.isoformat(),),
            ).fetchall()
        return {
            "total_requests": row[0] or 0,
            "success_rate": (row[1] / row[0] * 100) if row[0] else 0.0,
            "avg_processing_ms": round(row[2], 1) if row[2] is not None else None,
            "conversions": row[3] or 0,
            "templates": {template_id: count for template_id, count in templates},
            "month": now.strftime("%Y-%m"),
        }

    @staticmethod
    def _row_to_log(row: tuple) -> GenerationLog:
        data = dict(zip(_COLUMNS, row))
        data["timestamp"] = datetime.fromisoformat(data["timestamp"])
        data["success"] = bool(data["success"])
        return GenerationLog(**data)
