"""
Trend reporting for compliscore.

- TrendTracker: records and queries historical compliance scores
- TrendMetrics / TrendDirection: summary statistics over a window
"""

from compliscore.reporting.trends import (
    TrendDirection,
    TrendMetrics,
    TrendTracker,
    compute_metrics,
)
from compliscore.storage.base import TrendSample

__all__ = [
    "TrendDirection",
    "TrendMetrics",
    "TrendSample",
    "TrendTracker",
    "compute_metrics",
]
