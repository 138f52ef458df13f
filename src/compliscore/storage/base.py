"""
Abstract collaborator interfaces for compliscore.

The scoring core never persists anything itself. It reads findings
through a FindingsSource and writes trend samples through a
SnapshotStore; this module defines both interfaces together with the
TrendSample value they exchange.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from compliscore.models import ScanFindings


def to_utc(value: datetime) -> datetime:
    """Normalise a datetime to UTC, treating naive values as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class TrendSample:
    """One recorded (date, score) point of an assessment history."""

    date: datetime
    score: float

    def to_dict(self) -> dict[str, Any]:
        return {"date": self.date.isoformat(), "score": self.score}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TrendSample:
        return cls(
            date=to_utc(datetime.fromisoformat(data["date"])),
            score=float(data["score"]),
        )


class SnapshotStore(ABC):
    """
    Append-only store of assessment score samples.

    Implementations must be safe under concurrent writers and must never
    mutate or delete a stored sample.
    """

    @abstractmethod
    def append_assessment_snapshot(
        self,
        framework_id: str,
        account_id: str,
        date: datetime,
        score: float,
    ) -> None:
        """
        Append one sample.

        Args:
            framework_id: Framework the score belongs to
            account_id: Account the score belongs to
            date: Assessment date
            score: Compliance score (0-100)
        """
        pass

    @abstractmethod
    def query_snapshots(
        self,
        framework_id: str,
        account_id: str,
        since: datetime | None = None,
    ) -> list[TrendSample]:
        """
        Return samples for a framework and account.

        Args:
            framework_id: Framework to query
            account_id: Account to query
            since: Only samples dated at or after this instant

        Returns:
            Samples ordered oldest first (append order for equal dates)
        """
        pass


class FindingsSource(ABC):
    """Read model over completed scans."""

    @abstractmethod
    def get_latest_findings(self, account_id: str) -> ScanFindings | None:
        """
        Return the findings of the account's most recent completed scan.

        Args:
            account_id: Account to look up

        Returns:
            ScanFindings, or None when the account has no completed scan
        """
        pass
