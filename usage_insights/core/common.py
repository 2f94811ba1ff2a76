"""
Shared calendar and ratio helpers.

All date and hour bucketing happens in the process-local timezone.
"""

from datetime import date, datetime

ANONYMOUS_USER = "anonymous"


def to_local(timestamp: datetime) -> datetime:
    """Convert an aware timestamp to local time; naive ones are already local."""
    if timestamp.tzinfo is None:
        return timestamp
    return timestamp.astimezone()


def local_date(timestamp: datetime) -> date:
    return to_local(timestamp).date()


def local_hour(timestamp: datetime) -> int:
    return to_local(timestamp).hour


def milliseconds_between(earlier: datetime, later: datetime) -> float:
    """Signed difference ``later - earlier`` in milliseconds."""
    return (later - earlier).total_seconds() * 1000


def percentage(count: float, total: float) -> float:
    """Share of ``total`` as a percentage, 0 when there is nothing to share."""
    if not total:
        return 0.0
    return count / total * 100


def safe_average(total: float, samples: int) -> float:
    if samples <= 0:
        return 0.0
    return total / samples
