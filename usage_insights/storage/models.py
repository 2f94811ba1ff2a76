"""
Data models for usage events.

Defines the immutable event records consumed by the aggregators.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class PlaybackEvent:
    """Text-to-speech playback of one sentence with one voice.

    Rows are count-collapsed at the source: ``count`` is the number of times
    this (article, sentence, voice) combination was played, so characters
    synthesized are always ``character_count * count``.
    """
    sentence_index: int
    voice_name: str
    character_count: int
    count: int
    created_at: datetime
    article_id: Optional[str] = None
    user_id: Optional[str] = None

    def __post_init__(self):
        """Validate counts are positive."""
        if self.sentence_index < 0:
            raise ValueError("sentence_index cannot be negative")
        if self.character_count < 1:
            raise ValueError("character_count must be >= 1")
        if self.count < 1:
            raise ValueError("count must be >= 1")

    @property
    def characters(self) -> int:
        """Characters synthesized across all plays of this row."""
        return self.character_count * self.count


@dataclass(frozen=True)
class TutorEvent:
    """One AI tutor request/response pair.

    ``total_tokens`` and ``total_cost`` are recorded by the tutor service and
    are authoritative; they are never recomputed from the token split.
    """
    sentence_index: int
    model_name: str
    input_tokens: int
    output_tokens: int
    total_tokens: int
    total_cost: float
    is_follow_up: bool
    created_at: datetime
    article_id: Optional[str] = None
    user_id: Optional[str] = None
    session_id: Optional[str] = None

    def __post_init__(self):
        """Validate token counts and cost are non-negative."""
        if self.sentence_index < 0:
            raise ValueError("sentence_index cannot be negative")
        if self.input_tokens < 0:
            raise ValueError("input_tokens cannot be negative")
        if self.output_tokens < 0:
            raise ValueError("output_tokens cannot be negative")
        if self.total_tokens < 0:
            raise ValueError("total_tokens cannot be negative")
        if self.total_cost < 0:
            raise ValueError("total_cost cannot be negative")


@dataclass(frozen=True)
class CompletionEvent:
    """An article marked as finished by a user."""
    user_id: str
    finished_at: datetime
    article_id: Optional[str] = None
