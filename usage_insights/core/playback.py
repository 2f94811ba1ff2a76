"""
Text-to-speech playback aggregation.

Folds playback events into cost, quota, leaderboard, heatmap and
reading-pattern statistics.

Every per-event figure is weighted by the event's play ``count``: a row
with ``character_count=120`` and ``count=3`` stands for 360 characters and
3 plays.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional, Set, Tuple

from usage_insights.config.loader import ReportConfig
from usage_insights.core.common import (
    ANONYMOUS_USER,
    local_date,
    local_hour,
    percentage,
    safe_average,
)
from usage_insights.core.voices import VOICE_CATALOG, VoiceCatalog, VoiceTier
from usage_insights.storage.models import PlaybackEvent

logger = logging.getLogger(__name__)

TRACKED_GENDERS = ("female", "male")


@dataclass
class UsageTotals:
    """Running characters, cost and plays for one bucket."""
    characters: int = 0
    cost: float = 0.0
    plays: int = 0

    def add(self, characters: int, cost: float, plays: int) -> None:
        self.characters += characters
        self.cost += cost
        self.plays += plays


@dataclass
class ArticleUsage(UsageTotals):
    """Usage of one article, with the sentences played and their play counts."""
    sentences: Set[int] = field(default_factory=set)
    heatmap: Dict[int, int] = field(default_factory=dict)


@dataclass
class UserUsage(UsageTotals):
    """Usage of one listener, with the articles they played."""
    articles: Set[str] = field(default_factory=set)
    is_anonymous: bool = False


@dataclass
class VoiceUsage:
    plays: int = 0
    characters: int = 0


@dataclass(frozen=True)
class Share:
    """Count and its percentage of the distribution total."""
    count: int
    percentage: float


@dataclass(frozen=True)
class VoiceShare:
    """Row of the voice distribution report."""
    voice_name: str
    display_name: str
    tier: VoiceTier
    plays: int
    characters: int


@dataclass(frozen=True)
class DailyUsage:
    """Point of the daily usage time series."""
    day: date
    characters: int
    cost: float
    plays: int


@dataclass(frozen=True)
class ArticleSummary:
    """Leaderboard row for an article, with its sentence heatmap."""
    article_id: str
    plays: int
    characters: int
    cost: float
    unique_sentences: int
    heatmap: Dict[int, int]
    max_plays: int  # Largest heatmap value, 0 for an empty heatmap


@dataclass(frozen=True)
class UserSummary:
    """Leaderboard row for a listener."""
    user_id: str
    plays: int
    characters: int
    cost: float
    unique_articles: int
    is_anonymous: bool


@dataclass(frozen=True)
class RepeatedSentence:
    article_id: Optional[str]
    sentence_index: int
    count: int
    characters: int  # Characters of the sentence itself, not multiplied


@dataclass(frozen=True)
class SentenceRepetition:
    most_repeated: List[RepeatedSentence]
    average_repeats: float


@dataclass(frozen=True)
class ReadingPatterns:
    """Adjacent plays within an article: next sentence vs. anywhere else."""
    sequential_reads: int
    jump_reads: int


@dataclass
class PlaybackStats:
    """Complete playback report."""
    total_characters: int
    total_cost: float
    total_plays: int
    total_requests: int
    unique_articles: int
    unique_users: int
    by_voice_type: Dict[VoiceTier, UsageTotals]
    quota_usage: Dict[VoiceTier, int]
    overage_cost: Dict[VoiceTier, float]
    voice_usage: Dict[str, VoiceUsage]
    voice_distribution: List[VoiceShare]
    by_date: Dict[date, UsageTotals]
    daily_series: List[DailyUsage]
    by_article: Dict[str, ArticleUsage]
    top_articles: List[ArticleSummary]
    by_user: Dict[str, UserUsage]
    top_users: List[UserSummary]
    sentence_repetition: SentenceRepetition
    reading_patterns: ReadingPatterns
    hourly_distribution: List[int]
    voice_type_distribution: Dict[VoiceTier, Share]
    gender_distribution: Dict[str, Share]

    @property
    def effective_total_cost(self) -> float:
        """Billable cost once each tier's free monthly quota is applied."""
        return sum(self.overage_cost.values())


def aggregate_playback(
    events: Iterable[PlaybackEvent],
    catalog: VoiceCatalog = VOICE_CATALOG,
    config: Optional[ReportConfig] = None
) -> PlaybackStats:
    """Aggregate playback events into a playback report.

    Events without an ``article_id`` count toward totals, tiers, dates and
    users but are left out of per-article statistics. Events without a
    ``user_id`` are attributed to the ``"anonymous"`` user.

    Args:
        events: Playback events for the reporting window
        catalog: Voice catalog used for tiers, rates, quotas and genders
        config: Report limits (defaults apply when omitted)

    Returns:
        PlaybackStats computed from scratch for these events
    """
    if config is None:
        config = ReportConfig()
    events = list(events)
    logger.debug("Aggregating %d playback events", len(events))

    total_characters = 0
    total_cost = 0.0
    total_plays = 0

    by_voice_type: Dict[VoiceTier, UsageTotals] = {}
    quota_usage = {tier: 0 for tier in VoiceTier}
    tier_plays = {tier: 0 for tier in VoiceTier}
    gender_plays = {gender: 0 for gender in TRACKED_GENDERS}
    voice_usage: Dict[str, VoiceUsage] = {}
    by_date: Dict[date, UsageTotals] = {}
    by_article: Dict[str, ArticleUsage] = {}
    by_user: Dict[str, UserUsage] = {}
    hourly = [0] * 24

    # (article_id, sentence_index) -> [plays, sentence characters]
    repetitions: Dict[Tuple[Optional[str], int], List[int]] = {}
    article_events: Dict[str, List[PlaybackEvent]] = defaultdict(list)

    for event in events:
        tier = catalog.classify(event.voice_name)
        characters = event.characters
        cost = catalog.cost_for(event.voice_name, characters)
        plays = event.count

        total_characters += characters
        total_cost += cost
        total_plays += plays

        by_voice_type.setdefault(tier, UsageTotals()).add(characters, cost, plays)
        quota_usage[tier] += characters
        tier_plays[tier] += plays

        voice = voice_usage.setdefault(event.voice_name, VoiceUsage())
        voice.plays += plays
        voice.characters += characters

        gender = catalog.gender(event.voice_name)
        if gender is not None:
            gender_plays[gender] = gender_plays.get(gender, 0) + plays

        by_date.setdefault(local_date(event.created_at), UsageTotals()).add(
            characters, cost, plays
        )
        hourly[local_hour(event.created_at)] += plays

        if event.article_id:
            article = by_article.setdefault(event.article_id, ArticleUsage())
            article.add(characters, cost, plays)
            article.sentences.add(event.sentence_index)
            article.heatmap[event.sentence_index] = (
                article.heatmap.get(event.sentence_index, 0) + plays
            )
            article_events[event.article_id].append(event)

        user_id = event.user_id or ANONYMOUS_USER
        user = by_user.setdefault(user_id, UserUsage(is_anonymous=not event.user_id))
        user.add(characters, cost, plays)
        if event.article_id:
            user.articles.add(event.article_id)

        key = (event.article_id, event.sentence_index)
        repetitions.setdefault(key, [0, event.character_count])[0] += plays

    return PlaybackStats(
        total_characters=total_characters,
        total_cost=total_cost,
        total_plays=total_plays,
        total_requests=total_plays,
        unique_articles=len(by_article),
        unique_users=len(by_user),
        by_voice_type=by_voice_type,
        quota_usage=quota_usage,
        overage_cost={
            tier: catalog.overage_cost(tier, used) for tier, used in quota_usage.items()
        },
        voice_usage=voice_usage,
        voice_distribution=_voice_distribution(voice_usage, catalog),
        by_date=by_date,
        daily_series=[
            DailyUsage(day=day, characters=t.characters, cost=t.cost, plays=t.plays)
            for day, t in sorted(by_date.items())
        ],
        by_article=by_article,
        top_articles=_top_articles(by_article, config.top_articles_limit),
        by_user=by_user,
        top_users=_top_users(by_user, config.top_users_limit),
        sentence_repetition=_sentence_repetition(repetitions, config.most_repeated_limit),
        reading_patterns=_reading_patterns(article_events.values()),
        hourly_distribution=hourly,
        voice_type_distribution=_distribution(tier_plays),
        gender_distribution=_distribution(gender_plays),
    )


def _distribution(counts: Dict) -> Dict:
    total = sum(counts.values())
    return {
        key: Share(count=count, percentage=percentage(count, total))
        for key, count in counts.items()
    }


def _voice_distribution(
    voice_usage: Dict[str, VoiceUsage],
    catalog: VoiceCatalog
) -> List[VoiceShare]:
    ranked = sorted(voice_usage.items(), key=lambda item: item[1].plays, reverse=True)
    return [
        VoiceShare(
            voice_name=name,
            display_name=catalog.display_name(name),
            tier=catalog.classify(name),
            plays=usage.plays,
            characters=usage.characters
        )
        for name, usage in ranked
    ]


def _top_articles(by_article: Dict[str, ArticleUsage], limit: int) -> List[ArticleSummary]:
    ranked = sorted(by_article.items(), key=lambda item: item[1].plays, reverse=True)
    return [
        ArticleSummary(
            article_id=article_id,
            plays=usage.plays,
            characters=usage.characters,
            cost=usage.cost,
            unique_sentences=len(usage.sentences),
            heatmap=dict(usage.heatmap),
            max_plays=max(usage.heatmap.values(), default=0)
        )
        for article_id, usage in ranked[:limit]
    ]


def _top_users(by_user: Dict[str, UserUsage], limit: int) -> List[UserSummary]:
    ranked = sorted(by_user.items(), key=lambda item: item[1].plays, reverse=True)
    return [
        UserSummary(
            user_id=user_id,
            plays=usage.plays,
            characters=usage.characters,
            cost=usage.cost,
            unique_articles=len(usage.articles),
            is_anonymous=usage.is_anonymous
        )
        for user_id, usage in ranked[:limit]
    ]


def _sentence_repetition(
    repetitions: Dict[Tuple[Optional[str], int], List[int]],
    limit: int
) -> SentenceRepetition:
    sentences = [
        RepeatedSentence(
            article_id=article_id,
            sentence_index=sentence_index,
            count=count,
            characters=characters
        )
        for (article_id, sentence_index), (count, characters) in repetitions.items()
    ]
    ranked = sorted(sentences, key=lambda s: s.count, reverse=True)
    return SentenceRepetition(
        most_repeated=ranked[:limit],
        average_repeats=safe_average(sum(s.count for s in sentences), len(sentences))
    )


def _reading_patterns(groups: Iterable[List[PlaybackEvent]]) -> ReadingPatterns:
    sequential = 0
    jumps = 0
    for group in groups:
        ordered = sorted(group, key=lambda e: e.created_at)
        for previous, current in zip(ordered, ordered[1:]):
            if current.sentence_index == previous.sentence_index + 1:
                sequential += 1
            else:
                jumps += 1
    return ReadingPatterns(sequential_reads=sequential, jump_reads=jumps)
