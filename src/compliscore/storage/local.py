"""
SQLite-based local storage for compliscore.

This module provides LocalSnapshotStore, an append-only trend store, and
LocalFindingsSource, a scan/findings read model. Both suit development
and single-node deployments and may share one database file.
"""

from __future__ import annotations

import json
import logging
import os
import sqlite3
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Iterable

from compliscore.models import Finding, ScanFindings
from compliscore.storage.base import FindingsSource, SnapshotStore, TrendSample, to_utc

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = "~/.compliscore/compliscore.db"


def _timestamp(value: datetime) -> str:
    # Fixed-width UTC timestamps sort lexically in time order
    return to_utc(value).isoformat(timespec="microseconds")


class _SQLiteDatabase(ABC):
    """Shared connection handling for the SQLite backends."""

    def __init__(self, db_path: str = DEFAULT_DB_PATH) -> None:
        """
        Initialize the database file.

        Creates the parent directory and the schema if they don't exist.

        Args:
            db_path: Path to the SQLite database file.
                     Supports ~ for home directory.
        """
        self.db_path = os.path.expanduser(db_path)

        db_dir = os.path.dirname(self.db_path)
        if db_dir:
            Path(db_dir).mkdir(parents=True, exist_ok=True)

        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection."""
        conn = sqlite3.connect(self.db_path, timeout=30)
        conn.row_factory = sqlite3.Row
        return conn

    @abstractmethod
    def _init_db(self) -> None:
        """Create the tables this backend needs."""
        pass


class LocalSnapshotStore(_SQLiteDatabase, SnapshotStore):
    """
    Append-only snapshot store in SQLite.

    The AUTOINCREMENT sequence records append order; rows are only ever
    inserted. SQLite serializes concurrent writers.
    """

    def _init_db(self) -> None:
        """Initialize database schema."""
        conn = self._get_connection()
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS assessment_snapshots (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    framework_id TEXT NOT NULL,
                    account_id TEXT NOT NULL,
                    snapshot_date TEXT NOT NULL,
                    score REAL NOT NULL
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_snapshots_series
                ON assessment_snapshots(framework_id, account_id, snapshot_date)
            """)
            conn.commit()
        finally:
            conn.close()

    def append_assessment_snapshot(
        self,
        framework_id: str,
        account_id: str,
        date: datetime,
        score: float,
    ) -> None:
        conn = self._get_connection()
        try:
            conn.execute(
                """
                INSERT INTO assessment_snapshots (
                    framework_id, account_id, snapshot_date, score
                ) VALUES (?, ?, ?, ?)
                """,
                (framework_id, account_id, _timestamp(date), float(score)),
            )
            conn.commit()
        finally:
            conn.close()

    def query_snapshots(
        self,
        framework_id: str,
        account_id: str,
        since: datetime | None = None,
    ) -> list[TrendSample]:
        query = """
            SELECT snapshot_date, score FROM assessment_snapshots
            WHERE framework_id = ? AND account_id = ?
        """
        params: list[str] = [framework_id, account_id]
        if since is not None:
            query += " AND snapshot_date >= ?"
            params.append(_timestamp(since))
        query += " ORDER BY snapshot_date ASC, seq ASC"

        conn = self._get_connection()
        try:
            rows = conn.execute(query, params).fetchall()
        finally:
            conn.close()

        return [
            TrendSample(
                date=to_utc(datetime.fromisoformat(row["snapshot_date"])),
                score=row["score"],
            )
            for row in rows
        ]


class LocalFindingsSource(_SQLiteDatabase, FindingsSource):
    """
    Scan and findings read model in SQLite.

    store_scan() writes a scan and its findings in one transaction, so a
    reader never sees a completed scan with partial findings.
    """

    def _init_db(self) -> None:
        """Initialize database schema."""
        conn = self._get_connection()
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS scans (
                    id TEXT PRIMARY KEY,
                    account_id TEXT NOT NULL,
                    status TEXT NOT NULL,
                    completed_at TEXT
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS findings (
                    id TEXT NOT NULL,
                    scan_id TEXT NOT NULL,
                    rule_id TEXT NOT NULL,
                    asset_id TEXT NOT NULL,
                    status TEXT NOT NULL,
                    severity TEXT NOT NULL,
                    evidence TEXT,
                    created_at TEXT,
                    PRIMARY KEY (id, scan_id),
                    FOREIGN KEY (scan_id) REFERENCES scans(id)
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_scans_account
                ON scans(account_id, status, completed_at)
            """)
            conn.commit()
        finally:
            conn.close()

    def store_scan(
        self,
        account_id: str,
        scan_id: str,
        findings: Iterable[Finding],
        completed_at: datetime | None = None,
        status: str = "completed",
    ) -> None:
        """
        Store a scan and its findings.

        Storing a known scan id again only updates its status and
        completion time and adds the new findings; findings already
        written are never changed.

        Args:
            account_id: Account that was scanned
            scan_id: Scan identifier
            findings: Findings produced by the scan
            completed_at: Completion time (defaults to now for completed scans)
            status: Scan status

        Raises:
            sqlite3.IntegrityError: If a finding id is already stored for the scan
        """
        if completed_at is None and status == "completed":
            completed_at = datetime.now().astimezone()

        conn = self._get_connection()
        try:
            conn.execute(
                """
                INSERT INTO scans (id, account_id, status, completed_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    status = excluded.status,
                    completed_at = excluded.completed_at
                """,
                (
                    scan_id,
                    account_id,
                    status,
                    _timestamp(completed_at) if completed_at else None,
                ),
            )
            conn.executemany(
                """
                INSERT INTO findings (
                    id, scan_id, rule_id, asset_id, status, severity,
                    evidence, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        f.id,
                        scan_id,
                        f.rule_id,
                        f.asset_id,
                        f.status.value,
                        f.severity.value,
                        json.dumps(f.evidence, default=str),
                        f.created_at.isoformat() if f.created_at else None,
                    )
                    for f in findings
                ],
            )
            conn.commit()
        except sqlite3.Error:
            conn.rollback()
            raise
        finally:
            conn.close()

        logger.debug(f"Stored scan {scan_id} for account {account_id} ({status})")

    def get_latest_findings(self, account_id: str) -> ScanFindings | None:
        conn = self._get_connection()
        try:
            scan = conn.execute(
                """
                SELECT id, completed_at FROM scans
                WHERE account_id = ? AND status = 'completed'
                  AND completed_at IS NOT NULL
                ORDER BY completed_at DESC, rowid DESC
                LIMIT 1
                """,
                (account_id,),
            ).fetchone()
            if scan is None:
                return None

            rows = conn.execute(
                "SELECT * FROM findings WHERE scan_id = ? ORDER BY rule_id, asset_id",
                (scan["id"],),
            ).fetchall()
        finally:
            conn.close()

        findings = tuple(
            Finding.from_dict({
                "id": row["id"],
                "ruleId": row["rule_id"],
                "assetId": row["asset_id"],
                "scanId": row["scan_id"],
                "status": row["status"],
                "severity": row["severity"],
                "evidence": json.loads(row["evidence"]) if row["evidence"] else {},
                "createdAt": row["created_at"],
            })
            for row in rows
        )

        return ScanFindings(
            scan_id=scan["id"],
            findings=findings,
            completed_at=to_utc(datetime.fromisoformat(scan["completed_at"])),
        )
