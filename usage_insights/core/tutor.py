"""
AI tutor usage aggregation.

Folds tutor request/response events into token, cost, engagement and
conversation statistics.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

from usage_insights.config.loader import ReportConfig
from usage_insights.core.common import (
    ANONYMOUS_USER,
    local_date,
    local_hour,
    milliseconds_between,
    percentage,
    safe_average,
)
from usage_insights.storage.models import TutorEvent

logger = logging.getLogger(__name__)

ThreadKey = Tuple[Optional[str], int, str]


@dataclass(frozen=True)
class ModelShare:
    count: int
    percentage: float


@dataclass(frozen=True)
class SessionTypeStats:
    """Averages for either opening questions or follow-ups."""
    count: int
    avg_input_tokens: float
    avg_output_tokens: float
    avg_total_tokens: float
    total_cost: float


@dataclass(frozen=True)
class DailyCost:
    day: date
    cost: float
    sessions: int


@dataclass
class TutorStats:
    """Complete tutor report."""
    total_input_tokens: int
    total_output_tokens: int
    total_tokens: int
    total_cost: float
    cost_per_token: float
    model_usage: Dict[str, ModelShare]
    initial: SessionTypeStats
    follow_up: SessionTypeStats
    follow_up_rate: float
    conversation_count: int
    max_follow_up_depth: int
    avg_response_time_ms: float
    response_time_count: int
    hourly_distribution: List[int]
    sessions_per_user: Dict[str, int]
    daily_cost: List[DailyCost]
    recent_sessions: List[TutorEvent]


def aggregate_tutor(
    events: Iterable[TutorEvent],
    config: Optional[ReportConfig] = None
) -> TutorStats:
    """Aggregate tutor events into a tutor report.

    Events sharing (article, sentence, user) form one conversation thread.
    The gap between consecutive events of a thread counts as a response time
    only when it is positive and shorter than the configured window, so
    reopened threads and duplicate timestamps do not skew the average.

    Args:
        events: Tutor events for the reporting window
        config: Report limits (defaults apply when omitted)

    Returns:
        TutorStats computed from scratch for these events
    """
    if config is None:
        config = ReportConfig()
    events = list(events)
    logger.debug("Aggregating %d tutor events", len(events))

    total_input = sum(e.input_tokens for e in events)
    total_output = sum(e.output_tokens for e in events)
    total_tokens = sum(e.total_tokens for e in events)
    total_cost = sum(e.total_cost for e in events)

    model_counts: Dict[str, int] = {}
    hourly = [0] * 24
    sessions_per_user: Dict[str, int] = {}
    cost_by_date: Dict[date, List] = {}
    threads: Dict[ThreadKey, List[TutorEvent]] = {}

    for event in events:
        model_counts[event.model_name] = model_counts.get(event.model_name, 0) + 1
        hourly[local_hour(event.created_at)] += 1

        if event.user_id:
            sessions_per_user[event.user_id] = sessions_per_user.get(event.user_id, 0) + 1

        day = cost_by_date.setdefault(local_date(event.created_at), [0.0, 0])
        day[0] += event.total_cost
        day[1] += 1

        key = (event.article_id, event.sentence_index, event.user_id or ANONYMOUS_USER)
        threads.setdefault(key, []).append(event)

    initial_events = [e for e in events if not e.is_follow_up]
    follow_up_events = [e for e in events if e.is_follow_up]

    response_total, response_count = _response_times(
        threads.values(), config.response_window_ms
    )

    return TutorStats(
        total_input_tokens=total_input,
        total_output_tokens=total_output,
        total_tokens=total_tokens,
        total_cost=total_cost,
        cost_per_token=safe_average(total_cost, total_tokens),
        model_usage={
            model: ModelShare(count=count, percentage=percentage(count, len(events)))
            for model, count in model_counts.items()
        },
        initial=_session_type_stats(initial_events),
        follow_up=_session_type_stats(follow_up_events),
        follow_up_rate=percentage(len(follow_up_events), len(events)),
        conversation_count=len(threads),
        max_follow_up_depth=max(
            (sum(1 for e in thread if e.is_follow_up) for thread in threads.values()),
            default=0
        ),
        avg_response_time_ms=safe_average(response_total, response_count),
        response_time_count=response_count,
        hourly_distribution=hourly,
        sessions_per_user=sessions_per_user,
        daily_cost=[
            DailyCost(day=day, cost=cost, sessions=sessions)
            for day, (cost, sessions) in sorted(cost_by_date.items())
        ],
        recent_sessions=sorted(
            events, key=lambda e: e.created_at, reverse=True
        )[:config.recent_sessions_limit],
    )


def _session_type_stats(events: List[TutorEvent]) -> SessionTypeStats:
    count = len(events)
    return SessionTypeStats(
        count=count,
        avg_input_tokens=safe_average(sum(e.input_tokens for e in events), count),
        avg_output_tokens=safe_average(sum(e.output_tokens for e in events), count),
        avg_total_tokens=safe_average(sum(e.total_tokens for e in events), count),
        total_cost=sum(e.total_cost for e in events)
    )


def _response_times(
    threads: Iterable[List[TutorEvent]],
    window_ms: int
) -> Tuple[float, int]:
    """Sum and count of accepted gaps between consecutive thread events."""
    total = 0.0
    count = 0
    for thread in threads:
        ordered = sorted(thread, key=lambda e: e.created_at)
        for previous, current in zip(ordered, ordered[1:]):
            delta = milliseconds_between(previous.created_at, current.created_at)
            if 0 < delta < window_ms:
                total += delta
                count += 1
    return total, count
