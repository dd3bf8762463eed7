"""SQLite-backed storage for pipeline run logs."""

from __future__ import annotations

import json
import sqlite3
from contextlib import closing
from datetime import datetime
from pathlib import Path

from resume_pipeline.telemetry.models import RunLog

DEFAULT_DB_PATH = Path.home() / ".resume-pipeline" / "runs.db"


class RunStore:
    """Run log store using SQLite in WAL mode."""

    def __init__(self, db_path: str | Path = DEFAULT_DB_PATH):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _init_db(self) -> None:
        with closing(self._connect()) as conn, conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS run_logs (
                    id TEXT PRIMARY KEY,
                    timestamp TEXT NOT NULL,
                    profile_id TEXT,
                    job_id TEXT,
                    company TEXT,
                    job_title TEXT,
                    match_score INTEGER,
                    ats_score INTEGER,
                    quality_score INTEGER,
                    generation_attempts INTEGER NOT NULL DEFAULT 0,
                    gaps_count INTEGER NOT NULL DEFAULT 0,
                    critical_gaps_count INTEGER NOT NULL DEFAULT 0,
                    phase_durations TEXT NOT NULL DEFAULT '{}',
                    phase_costs TEXT NOT NULL DEFAULT '{}',
                    total_input_tokens INTEGER NOT NULL DEFAULT 0,
                    total_output_tokens INTEGER NOT NULL DEFAULT 0,
                    search_count INTEGER NOT NULL DEFAULT 0,
                    estimated_cost_usd REAL NOT NULL DEFAULT 0.0,
                    success INTEGER NOT NULL DEFAULT 1,
                    error_message TEXT
                )
            """)

    def save(self, log: RunLog) -> None:
        with closing(self._connect()) as conn, conn:
            conn.execute(
                """INSERT OR REPLACE INTO run_logs
                   (id, timestamp, profile_id, job_id, company, job_title,
                    match_score, ats_score, quality_score, generation_attempts,
                    gaps_count, critical_gaps_count, phase_durations, phase_costs,
                    total_input_tokens, total_output_tokens, search_count,
                    estimated_cost_usd, success, error_message)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    log.id,
                    log.timestamp.isoformat(),
                    log.profile_id,
                    log.job_id,
                    log.company,
                    log.job_title,
                    log.match_score,
                    log.ats_score,
                    log.quality_score,
                    log.generation_attempts,
                    log.gaps_count,
                    log.critical_gaps_count,
                    json.dumps(log.phase_durations),
                    json.dumps(log.phase_costs),
                    log.total_input_tokens,
                    log.total_output_tokens,
                    log.search_count,
                    log.estimated_cost_usd,
                    1 if log.success else 0,
                    log.error_message,
                ),
            )

    def get_logs(self, limit: int = 50) -> list[RunLog]:
        """Most recent runs first."""
        with closing(self._connect()) as conn, conn:
            rows = conn.execute(
                "SELECT * FROM run_logs ORDER BY timestamp DESC LIMIT ?", (limit,)
            ).fetchall()
        return [self._row_to_log(row) for row in rows]

    def get_monthly_stats(self) -> dict:
        """Aggregate the runs logged since the start of the current month."""
        now = datetime.now()
        month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        with closing(self._connect()) as conn, conn:
            row = conn.execute(
                """SELECT
                       COUNT(*),
                       SUM(total_input_tokens),
                       SUM(total_output_tokens),
                       SUM(search_count),
                       SUM(estimated_cost_usd),
                       AVG(quality_score),
                       AVG(match_score),
                       AVG(generation_attempts),
                       SUM(CASE WHEN success = 1 THEN 1 ELSE 0 END)
                   FROM run_logs
                   WHERE timestamp >= ?""",
                (month_start.isoformat(),),
            ).fetchone()
            cost_rows = conn.execute(
                "SELECT phase_costs FROM run_logs WHERE timestamp >= ?",
                (month_start.isoformat(),),
            ).fetchall()
        phase_costs: dict[str, float] = {}
        for (raw,) in cost_rows:
            for phase, cost in json.loads(raw).items():
                phase_costs[phase] = phase_costs.get(phase, 0.0) + cost
        total = row[0] or 0
        return {
            "total_runs": total,
            "total_input_tokens": row[1] or 0,
            "total_output_tokens": row[2] or 0,
            "total_searches": row[3] or 0,
            "total_cost_usd": row[4] or 0.0,
            "avg_quality_score": round(row[5], 1) if row[5] is not None else None,
            "avg_match_score": round(row[6], 1) if row[6] is not None else None,
            "avg_attempts": round(row[7], 2) if row[7] is not None else None,
            "success_rate": (row[8] / total * 100) if total else 0.0,
            "cost_by_phase": phase_costs,
            "month": now.strftime("%Y-%m"),
        }

    @staticmethod
    def _row_to_log(row: tuple) -> RunLog:
        return RunLog(
            id=row[0],
            timestamp=datetime.fromisoformat(row[1]),
            profile_id=row[2],
            job_id=row[3],
            company=row[4],
            job_title=row[5],
            match_score=row[6],
            ats_score=row[7],
            quality_score=row[8],
            generation_attempts=row[9],
            gaps_count=row[10],
            critical_gaps_count=row[11],
            phase_durations=json.loads(row[12]),
            phase_costs=json.loads(row[13]),
            total_input_tokens=row[14],
            total_output_tokens=row[15],
            search_count=row[16],
            estimated_cost_usd=row[17],
            success=bool(row[18]),
            error_message=row[19],
        )
