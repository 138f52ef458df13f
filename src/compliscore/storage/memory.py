"""
In-memory collaborators for compliscore.

Useful for tests, embedding, and short-lived processes that do not need
history to outlive them.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from compliscore.models import Finding, ScanFindings
from compliscore.storage.base import FindingsSource, SnapshotStore, TrendSample, to_utc


class InMemorySnapshotStore(SnapshotStore):
    """Snapshot store backed by a list; appends are serialized by a lock."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._samples: list[tuple[int, str, str, TrendSample]] = []
        self._sequence = 0

    def append_assessment_snapshot(
        self,
        framework_id: str,
        account_id: str,
        date: datetime,
        score: float,
    ) -> None:
        sample = TrendSample(date=to_utc(date), score=float(score))
        with self._lock:
            self._sequence += 1
            self._samples.append((self._sequence, framework_id, account_id, sample))

    def query_snapshots(
        self,
        framework_id: str,
        account_id: str,
        since: datetime | None = None,
    ) -> list[TrendSample]:
        cutoff = to_utc(since) if since else None
        with self._lock:
            rows = [
                (seq, sample)
                for seq, fid, aid, sample in self._samples
                if fid == framework_id
                and aid == account_id
                and (cutoff is None or sample.date >= cutoff)
            ]
        rows.sort(key=lambda row: (row[1].date, row[0]))
        return [sample for _, sample in rows]

    def __len__(self) -> int:
        with self._lock:
            return len(self._samples)


@dataclass(frozen=True)
class _ScanRecord:
    scan_id: str
    status: str
    completed_at: datetime | None
    findings: tuple[Finding, ...]


class InMemoryFindingsSource(FindingsSource):
    """
    Findings source holding scans per account.

    Only scans with status "completed" are ever returned; the latest one
    is chosen by completion time.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._scans: dict[str, dict[str, _ScanRecord]] = {}

    def record_scan(
        self,
        account_id: str,
        scan_id: str,
        findings: Iterable[Finding],
        completed_at: datetime | None = None,
        status: str = "completed",
    ) -> None:
        """
        Record a scan and its findings.

        Recording a known scan id again updates its status and completion
        time and adds the new findings; recorded findings never change.

        Args:
            account_id: Account that was scanned
            scan_id: Scan identifier
            findings: Findings produced by the scan
            completed_at: Completion time (required for completed scans to
                          be ordered; defaults to now)
            status: Scan status; anything but "completed" is ignored by
                    get_latest_findings

        Raises:
            ValueError: If a finding id is already recorded for the scan
        """
        if completed_at is None and status == "completed":
            completed_at = datetime.now().astimezone()
        added = tuple(findings)

        with self._lock:
            scans = self._scans.setdefault(account_id, {})
            previous = scans.get(scan_id)
            existing = previous.findings if previous else ()

            known = {f.id for f in existing}
            for finding in added:
                if finding.id in known:
                    raise ValueError(f"Finding {finding.id} already recorded for scan {scan_id}")
                known.add(finding.id)

            scans[scan_id] = _ScanRecord(
                scan_id=scan_id,
                status=status,
                completed_at=to_utc(completed_at) if completed_at else None,
                findings=existing + added,
            )

    def get_latest_findings(self, account_id: str) -> ScanFindings | None:
        with self._lock:
            completed = [
                scan
                for scan in self._scans.get(account_id, {}).values()
                if scan.status == "completed" and scan.completed_at is not None
            ]
        if not completed:
            return None

        # Scans recorded later win ties on completion time
        _, latest = max(enumerate(completed), key=lambda item: (item[1].completed_at, item[0]))
        return ScanFindings(
            scan_id=latest.scan_id,
            findings=latest.findings,
            completed_at=latest.completed_at,
        )
