"""
Report assembly.

Combines playback, tutor and reading summaries into one report and
converts it into JSON-safe primitives.
"""

import dataclasses
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Iterable, Optional

from usage_insights.config.loader import ReportConfig
from usage_insights.core.playback import PlaybackStats, aggregate_playback
from usage_insights.core.streaks import ReadingSummary, summarize_completions_by_user
from usage_insights.core.tutor import TutorStats, aggregate_tutor
from usage_insights.core.voices import VOICE_CATALOG, VoiceCatalog
from usage_insights.storage.models import CompletionEvent, PlaybackEvent, TutorEvent


@dataclass
class UsageReport:
    """Everything the dashboard renders for one reporting window."""
    playback: PlaybackStats
    tutor: TutorStats
    reading: Dict[str, ReadingSummary]
    generated_at: datetime


def build_report(
    playback_events: Iterable[PlaybackEvent],
    tutor_events: Iterable[TutorEvent],
    completion_events: Iterable[CompletionEvent] = (),
    catalog: VoiceCatalog = VOICE_CATALOG,
    config: Optional[ReportConfig] = None,
    today: Optional[date] = None
) -> UsageReport:
    """Build the full usage report from already-fetched event collections.

    Args:
        playback_events: Text-to-speech playback events
        tutor_events: AI tutor events
        completion_events: Finished-article events, any number of users
        catalog: Voice catalog for playback pricing
        config: Report limits (defaults apply when omitted)
        today: Local date streaks are measured against

    Returns:
        UsageReport with freshly computed sections
    """
    if config is None:
        config = ReportConfig()

    return UsageReport(
        playback=aggregate_playback(playback_events, catalog=catalog, config=config),
        tutor=aggregate_tutor(tutor_events, config=config),
        reading=summarize_completions_by_user(completion_events, today=today),
        generated_at=datetime.now()
    )


def report_to_dict(report: UsageReport) -> Dict[str, Any]:
    """Convert a report into plain dicts, lists, strings and numbers.

    Currency amounts and percentages are passed through unrounded.
    """
    data = _to_primitive(report)
    data["playback"]["effective_total_cost"] = report.playback.effective_total_cost
    return data


def _to_primitive(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            f.name: _to_primitive(getattr(value, f.name))
            for f in dataclasses.fields(value)
        }
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {_key(k): _to_primitive(v) for k, v in value.items()}
    if isinstance(value, (set, frozenset)):
        return sorted(_to_primitive(v) for v in value)
    if isinstance(value, (list, tuple)):
        return [_to_primitive(v) for v in value]
    return value


def _key(key: Any) -> Any:
    if isinstance(key, Enum):
        return key.value
    if isinstance(key, (datetime, date)):
        return key.isoformat()
    if isinstance(key, int) and not isinstance(key, bool):
        return str(key)
    return key
