"""
Event export loading.

Reads JSON table exports (a list of row objects) into event models.
Malformed rows are rejected here so the aggregators only ever see valid
timestamps and counts.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TypeVar

from .models import CompletionEvent, PlaybackEvent, TutorEvent

logger = logging.getLogger(__name__)

T = TypeVar("T")


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 timestamp into a local, timezone-aware datetime.

    A trailing ``Z`` is read as UTC. Values without an offset are taken as
    local time, so every parsed timestamp compares with every other.
    """
    if isinstance(value, datetime):
        return value.astimezone()
    if not isinstance(value, str):
        raise ValueError(f"timestamp must be a string, got {type(value).__name__}")
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value).astimezone()


def _integer(row: Dict[str, Any], key: str) -> int:
    value = _require(row, key)
    if isinstance(value, bool):
        raise ValueError(f"'{key}' must be an integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise ValueError(f"'{key}' must be an integer, got {value!r}")


def _boolean(row: Dict[str, Any], key: str, default: bool = False) -> bool:
    value = row.get(key)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ValueError(f"'{key}' must be true or false, got {value!r}")
    return value


def _optional_id(row: Dict[str, Any], key: str) -> Optional[str]:
    value = row.get(key)
    if value is None or value == "":
        return None
    return str(value)


def _require(row: Dict[str, Any], key: str) -> Any:
    if key not in row or row[key] is None:
        raise ValueError(f"missing required field '{key}'")
    return row[key]


def playback_from_row(row: Dict[str, Any]) -> PlaybackEvent:
    return PlaybackEvent(
        sentence_index=_integer(row, "sentence_index"),
        voice_name=str(_require(row, "voice_name")),
        character_count=_integer(row, "character_count"),
        count=_integer(row, "count") if "count" in row else 1,
        created_at=parse_timestamp(_require(row, "created_at")),
        article_id=_optional_id(row, "article_id"),
        user_id=_optional_id(row, "user_id")
    )


def tutor_from_row(row: Dict[str, Any]) -> TutorEvent:
    return TutorEvent(
        sentence_index=_integer(row, "sentence_index"),
        model_name=str(_require(row, "model_name")),
        input_tokens=_integer(row, "input_tokens"),
        output_tokens=_integer(row, "output_tokens"),
        total_tokens=_integer(row, "total_tokens"),
        total_cost=float(_require(row, "total_cost")),
        is_follow_up=_boolean(row, "is_follow_up"),
        created_at=parse_timestamp(_require(row, "created_at")),
        article_id=_optional_id(row, "article_id"),
        user_id=_optional_id(row, "user_id"),
        session_id=_optional_id(row, "id")
    )


def completion_from_row(row: Dict[str, Any]) -> CompletionEvent:
    return CompletionEvent(
        user_id=str(_require(row, "user_id")),
        finished_at=parse_timestamp(_require(row, "finished_at")),
        article_id=_optional_id(row, "article_id")
    )


def _load_rows(
    path: str,
    parse_row: Callable[[Dict[str, Any]], T],
    skip_invalid: bool
) -> List[T]:
    """Load a JSON export and convert every row.

    Raises:
        FileNotFoundError: If the export doesn't exist
        ValueError: If the file isn't a JSON list, or a row is invalid and
            ``skip_invalid`` is False
    """
    export_path = Path(path)
    if not export_path.exists():
        raise FileNotFoundError(f"Event export not found: {path}")

    with open(export_path, 'r', encoding='utf-8') as f:
        try:
            rows = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in event export {path}: {e}")

    if not isinstance(rows, list):
        raise ValueError(f"Event export {path} must contain a list of rows")

    events = []
    for i, row in enumerate(rows):
        try:
            if not isinstance(row, dict):
                raise ValueError("row must be an object")
            events.append(parse_row(row))
        except (ValueError, TypeError) as e:
            if not skip_invalid:
                raise ValueError(f"Invalid row at index {i} in {path}: {e}")
            logger.warning("Skipping row %d in %s: %s", i, path, e)

    logger.debug("Loaded %d events from %s", len(events), path)
    return events


def load_playback_events(path: str, skip_invalid: bool = False) -> List[PlaybackEvent]:
    """Load playback events from a JSON export of the playback table."""
    return _load_rows(path, playback_from_row, skip_invalid)


def load_tutor_events(path: str, skip_invalid: bool = False) -> List[TutorEvent]:
    """Load tutor events from a JSON export of the tutor table."""
    return _load_rows(path, tutor_from_row, skip_invalid)


def load_completion_events(path: str, skip_invalid: bool = False) -> List[CompletionEvent]:
    """Load finished-article events from a JSON export."""
    return _load_rows(path, completion_from_row, skip_invalid)
