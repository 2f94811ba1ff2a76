"""
Reading streak calculation.

Counts consecutive calendar days with at least one finished article.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional

from usage_insights.core.common import local_date
from usage_insights.storage.models import CompletionEvent

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)


@dataclass(frozen=True)
class StreakResult:
    """Current and longest streak, in days."""
    current: int
    longest: int


@dataclass(frozen=True)
class ReadingSummary:
    """Completion totals and streaks for one user."""
    total_finished: int
    finished_today: int
    streaks: StreakResult


def calculate_streaks(
    timestamps: Iterable[datetime],
    today: Optional[date] = None
) -> StreakResult:
    """Compute current and longest streaks from completion timestamps.

    Same-day completions collapse into one date. The current streak only
    counts when the latest date is today or yesterday; it then extends back
    through consecutive days until the first gap. The longest streak is the
    longest run of consecutive days anywhere in the history.

    Args:
        timestamps: Completion instants for a single user
        today: Local date to measure against (defaults to today)

    Returns:
        StreakResult, ``StreakResult(0, 0)`` for an empty history
    """
    unique_dates = {local_date(ts) for ts in timestamps}
    if not unique_dates:
        return StreakResult(current=0, longest=0)

    if today is None:
        today = date.today()

    return StreakResult(
        current=_current_streak(sorted(unique_dates, reverse=True), today),
        longest=_longest_streak(sorted(unique_dates))
    )


def _current_streak(dates_desc: List[date], today: date) -> int:
    if dates_desc[0] not in (today, today - ONE_DAY):
        return 0

    streak = 1
    for newer, older in zip(dates_desc, dates_desc[1:]):
        if newer - older != ONE_DAY:
            break
        streak += 1
    return streak


def _longest_streak(dates_asc: List[date]) -> int:
    longest = running = 1
    for earlier, later in zip(dates_asc, dates_asc[1:]):
        if later - earlier == ONE_DAY:
            running += 1
            longest = max(longest, running)
        else:
            running = 1
    return longest


def summarize_completions(
    events: Iterable[CompletionEvent],
    today: Optional[date] = None
) -> ReadingSummary:
    """Summarize one user's finished articles."""
    if today is None:
        today = date.today()

    timestamps = [event.finished_at for event in events]
    finished_today = sum(1 for ts in timestamps if local_date(ts) == today)

    return ReadingSummary(
        total_finished=len(timestamps),
        finished_today=finished_today,
        streaks=calculate_streaks(timestamps, today=today)
    )


def summarize_completions_by_user(
    events: Iterable[CompletionEvent],
    today: Optional[date] = None
) -> Dict[str, ReadingSummary]:
    """Summarize finished articles separately for every user in the stream."""
    by_user: Dict[str, List[CompletionEvent]] = defaultdict(list)
    for event in events:
        by_user[event.user_id].append(event)

    logger.debug("Summarizing completions for %d users", len(by_user))
    return {
        user_id: summarize_completions(user_events, today=today)
        for user_id, user_events in by_user.items()
    }
