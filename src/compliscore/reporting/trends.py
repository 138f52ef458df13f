"""
Compliance trend tracking for compliscore.

Records assessment scores into an append-only SnapshotStore and reads
them back as ordered time series with summary metrics.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable

from compliscore.models import Assessment
from compliscore.storage.base import SnapshotStore, TrendSample

logger = logging.getLogger(__name__)


class TrendDirection(Enum):
    """Direction of a compliance trend."""

    IMPROVING = "improving"  # Higher compliance score
    DECLINING = "declining"  # Lower compliance score
    STABLE = "stable"  # No significant change
    INSUFFICIENT_DATA = "insufficient_data"  # Fewer than two samples


@dataclass
class TrendMetrics:
    """
    Summary statistics over a trend window.

    Attributes:
        current_value: Most recent score
        previous_value: Score before the most recent one
        average: Mean score over the window
        min_value: Lowest score observed
        max_value: Highest score observed
        change: current_value - previous_value
        change_percent: change as a percentage of previous_value
        direction: Trend direction
        data_points: Number of samples analyzed
        velocity: Score change per day between first and last sample
    """

    current_value: float
    previous_value: float
    average: float
    min_value: float
    max_value: float
    change: float
    change_percent: float
    direction: TrendDirection
    data_points: int
    velocity: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "currentValue": self.current_value,
            "previousValue": self.previous_value,
            "average": round(self.average, 2),
            "minValue": self.min_value,
            "maxValue": self.max_value,
            "change": self.change,
            "changePercent": round(self.change_percent, 2),
            "direction": self.direction.value,
            "dataPoints": self.data_points,
            "velocity": round(self.velocity, 4),
        }


class TrendTracker:
    """
    Records and queries historical compliance scores.

    The tracker only appends; it never mutates or deletes samples.
    """

    # Minimum % change to be significant
    CHANGE_THRESHOLD_PERCENT = 5.0

    def __init__(
        self,
        store: SnapshotStore,
        clock: Callable[[], datetime] | None = None,
    ):
        """
        Initialize the trend tracker.

        Args:
            store: Append-only snapshot store
            clock: Source of "now" for trend windows (defaults to UTC now)
        """
        self.store = store
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def record_snapshot(
        self,
        framework_id: str,
        account_id: str,
        assessment: Assessment,
    ) -> TrendSample:
        """
        Append an assessment's score to the history.

        Args:
            framework_id: Framework the assessment belongs to
            account_id: Account the assessment belongs to
            assessment: Assessment whose date and score are recorded

        Returns:
            The recorded sample
        """
        sample = TrendSample(
            date=assessment.assessment_date,
            score=assessment.compliance_score,
        )
        self.store.append_assessment_snapshot(
            framework_id, account_id, sample.date, sample.score
        )
        logger.debug(
            f"Recorded {framework_id} score {sample.score:.1f} for account "
            f"{account_id} at {sample.date.isoformat()}"
        )
        return sample

    def trend(
        self,
        framework_id: str,
        account_id: str,
        days: int = 30,
    ) -> list[TrendSample]:
        """
        Return samples recorded within the last `days` days, oldest first.

        Returns an empty list when nothing has been recorded.
        """
        since = self._clock() - timedelta(days=days)
        return self.store.query_snapshots(framework_id, account_id, since)

    def summarize(
        self,
        framework_id: str,
        account_id: str,
        days: int = 30,
    ) -> TrendMetrics:
        """Compute trend metrics over the last `days` days."""
        return compute_metrics(
            self.trend(framework_id, account_id, days),
            self.CHANGE_THRESHOLD_PERCENT,
        )


def compute_metrics(
    samples: list[TrendSample],
    threshold_percent: float = TrendTracker.CHANGE_THRESHOLD_PERCENT,
) -> TrendMetrics:
    """
    Compute trend metrics from ordered samples.

    Args:
        samples: Samples ordered oldest first
        threshold_percent: Minimum % change considered significant

    Returns:
        TrendMetrics (INSUFFICIENT_DATA with fewer than two samples)
    """
    if not samples:
        return TrendMetrics(
            current_value=0.0,
            previous_value=0.0,
            average=0.0,
            min_value=0.0,
            max_value=0.0,
            change=0.0,
            change_percent=0.0,
            direction=TrendDirection.INSUFFICIENT_DATA,
            data_points=0,
        )

    values = [s.score for s in samples]
    current = values[-1]
    previous = values[-2] if len(values) > 1 else current

    change = current - previous
    change_percent = (change / previous * 100) if previous != 0 else 0.0

    velocity = 0.0
    if len(samples) >= 2:
        time_span = (samples[-1].date - samples[0].date).total_seconds()
        days_span = time_span / 86400 if time_span > 0 else 1
        velocity = (values[-1] - values[0]) / days_span

    if len(values) < 2:
        direction = TrendDirection.INSUFFICIENT_DATA
    else:
        direction = _determine_direction(previous, current, threshold_percent)

    return TrendMetrics(
        current_value=current,
        previous_value=previous,
        average=sum(values) / len(values),
        min_value=min(values),
        max_value=max(values),
        change=change,
        change_percent=change_percent,
        direction=direction,
        data_points=len(values),
        velocity=velocity,
    )


def _determine_direction(
    previous: float,
    current: float,
    threshold_percent: float,
) -> TrendDirection:
    """Higher compliance is improving."""
    if previous == 0 and current == 0:
        return TrendDirection.STABLE

    if previous == 0:
        return TrendDirection.IMPROVING if current > 0 else TrendDirection.STABLE

    change_percent = ((current - previous) / previous) * 100

    if abs(change_percent) < threshold_percent:
        return TrendDirection.STABLE
    elif change_percent > 0:
        return TrendDirection.IMPROVING
    else:
        return TrendDirection.DECLINING
