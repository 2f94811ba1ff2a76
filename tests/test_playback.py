"""
Unit tests for playback aggregation.

Tests cost accounting, quota overage, leaderboards, heatmaps and
reading patterns.
"""

from datetime import date, datetime, timedelta

import pytest

from usage_insights.config.loader import ReportConfig
from usage_insights.core.playback import aggregate_playback
from usage_insights.core.voices import VOICE_CATALOG, VoiceTier
from usage_insights.storage.models import PlaybackEvent

BASE_TIME = datetime(2024, 3, 10, 9, 0, 0)


def make_event(
    sentence_index=0,
    voice_name="ja-JP-Standard-A",
    character_count=100,
    count=1,
    minutes=0,
    article_id="article-1",
    user_id="user-1"
) -> PlaybackEvent:
    """Create a playback event offset from BASE_TIME."""
    return PlaybackEvent(
        sentence_index=sentence_index,
        voice_name=voice_name,
        character_count=character_count,
        count=count,
        created_at=BASE_TIME + timedelta(minutes=minutes),
        article_id=article_id,
        user_id=user_id
    )


@pytest.fixture
def mixed_events():
    return [
        make_event(sentence_index=0, voice_name="ja-JP-Standard-A", character_count=100, count=3, minutes=0),
        make_event(sentence_index=1, voice_name="ja-JP-Neural2-B", character_count=50, count=2, minutes=1),
        make_event(sentence_index=2, voice_name="ja-JP-Wavenet-C", character_count=80, count=1, minutes=2,
                   article_id="article-2", user_id=None),
        make_event(sentence_index=0, voice_name="custom-voice", character_count=10, count=4, minutes=3,
                   article_id=None, user_id="user-2"),
    ]


class TestTotals:
    """Test totals and per-tier breakdown."""

    def test_totals_use_count_multiplier(self, mixed_events):
        stats = aggregate_playback(mixed_events)
        assert stats.total_characters == 300 + 100 + 80 + 40
        assert stats.total_plays == 3 + 2 + 1 + 4
        assert stats.total_requests == stats.total_plays

    def test_total_cost_matches_rates(self, mixed_events):
        stats = aggregate_playback(mixed_events)
        expected = sum(
            e.character_count * e.count
            * float(VOICE_CATALOG.get_pricing(VOICE_CATALOG.classify(e.voice_name)).cost_per_char)
            for e in mixed_events
        )
        assert stats.total_cost == pytest.approx(expected)

    def test_by_voice_type(self, mixed_events):
        stats = aggregate_playback(mixed_events)
        standard = stats.by_voice_type[VoiceTier.STANDARD]
        assert standard.characters == 340
        assert standard.plays == 7
        assert standard.cost == pytest.approx(340 * 0.000004)
        assert stats.by_voice_type[VoiceTier.NEURAL2].characters == 100
        assert stats.by_voice_type[VoiceTier.WAVENET].cost == pytest.approx(80 * 0.000016)

    def test_tier_plays_sum_to_total(self, mixed_events):
        stats = aggregate_playback(mixed_events)
        assert sum(t.plays for t in stats.by_voice_type.values()) == stats.total_plays

    def test_unknown_voice_billed_as_standard(self):
        stats = aggregate_playback([make_event(voice_name="mystery", character_count=1000)])
        assert stats.total_cost == pytest.approx(0.004)
        assert stats.quota_usage[VoiceTier.STANDARD] == 1000

    def test_empty_input(self):
        stats = aggregate_playback([])
        assert stats.total_characters == 0
        assert stats.total_cost == 0.0
        assert stats.total_plays == 0
        assert stats.top_articles == []
        assert stats.top_users == []
        assert stats.sentence_repetition.average_repeats == 0.0
        assert stats.effective_total_cost == 0.0
        for share in stats.voice_type_distribution.values():
            assert share.percentage == 0.0
        for share in stats.gender_distribution.values():
            assert share.percentage == 0.0


class TestQuota:
    """Test quota usage and overage cost."""

    def test_quota_usage_tracks_all_tiers(self, mixed_events):
        stats = aggregate_playback(mixed_events)
        assert stats.quota_usage == {
            VoiceTier.STANDARD: 340,
            VoiceTier.NEURAL2: 100,
            VoiceTier.WAVENET: 80,
        }

    def test_no_overage_within_quota(self, mixed_events):
        stats = aggregate_playback(mixed_events)
        assert all(cost == 0.0 for cost in stats.overage_cost.values())
        assert stats.effective_total_cost == 0.0

    def test_overage_beyond_quota(self):
        events = [
            make_event(voice_name="ja-JP-Neural2-C", character_count=1000, count=350),
            make_event(voice_name="ja-JP-Standard-B", character_count=1000, count=900),
        ]
        stats = aggregate_playback(events)
        # Neural2: 350K used, 50K over quota
        assert stats.overage_cost[VoiceTier.NEURAL2] == pytest.approx(50_000 * 0.000016)
        assert stats.overage_cost[VoiceTier.STANDARD] == 0.0
        assert stats.overage_cost[VoiceTier.WAVENET] == 0.0
        assert stats.effective_total_cost == pytest.approx(0.8)
        assert stats.total_cost > stats.effective_total_cost


class TestVoiceUsage:
    """Test per-voice usage and distribution."""

    def test_voice_distribution_sorted_by_plays(self, mixed_events):
        stats = aggregate_playback(mixed_events)
        plays = [row.plays for row in stats.voice_distribution]
        assert plays == sorted(plays, reverse=True)
        top = stats.voice_distribution[0]
        assert top.voice_name == "custom-voice"
        assert top.display_name == "Unknown"
        assert top.tier == VoiceTier.STANDARD

    def test_voice_usage_keyed_by_name(self, mixed_events):
        stats = aggregate_playback(mixed_events)
        assert stats.voice_usage["ja-JP-Standard-A"].plays == 3
        assert stats.voice_usage["ja-JP-Standard-A"].characters == 300

    def test_voice_type_percentages_sum_to_100(self, mixed_events):
        stats = aggregate_playback(mixed_events)
        total = sum(share.percentage for share in stats.voice_type_distribution.values())
        assert total == pytest.approx(100.0)
        assert stats.voice_type_distribution[VoiceTier.STANDARD].count == 7
        assert stats.voice_type_distribution[VoiceTier.STANDARD].percentage == pytest.approx(70.0)

    def test_gender_distribution_excludes_unknown(self, mixed_events):
        stats = aggregate_playback(mixed_events)
        # custom-voice has no gender and is left out entirely
        assert set(stats.gender_distribution) == {"female", "male"}
        assert stats.gender_distribution["female"].count == 5
        assert stats.gender_distribution["male"].count == 1
        assert stats.gender_distribution["female"].percentage == pytest.approx(5 / 6 * 100)

    def test_gender_distribution_all_unknown(self):
        stats = aggregate_playback([make_event(voice_name="mystery")])
        assert stats.gender_distribution["female"].count == 0
        assert stats.gender_distribution["female"].percentage == 0.0


class TestDateBuckets:
    """Test per-date grouping and series ordering."""

    def test_daily_series_sorted_by_date(self):
        events = [
            make_event(minutes=60 * 24 * 20),
            make_event(minutes=0),
            make_event(minutes=-60 * 24 * 40),
        ]
        stats = aggregate_playback(events)
        days = [point.day for point in stats.daily_series]
        assert days == [date(2024, 1, 30), date(2024, 3, 10), date(2024, 3, 30)]

    def test_same_day_events_share_bucket(self):
        events = [make_event(count=2, minutes=0), make_event(count=3, minutes=120)]
        stats = aggregate_playback(events)
        assert len(stats.by_date) == 1
        assert stats.by_date[date(2024, 3, 10)].plays == 5
        assert stats.by_date[date(2024, 3, 10)].characters == 500

    def test_hourly_distribution_weighted_by_count(self):
        events = [make_event(count=2, minutes=0), make_event(count=5, minutes=65)]
        stats = aggregate_playback(events)
        assert stats.hourly_distribution[9] == 2
        assert stats.hourly_distribution[10] == 5
        assert sum(stats.hourly_distribution) == 7


class TestArticles:
    """Test per-article buckets, heatmaps and top articles."""

    def test_article_without_id_is_skipped(self, mixed_events):
        stats = aggregate_playback(mixed_events)
        assert set(stats.by_article) == {"article-1", "article-2"}
        assert stats.unique_articles == 2

    def test_heatmap_sums_to_article_plays(self):
        events = [
            make_event(sentence_index=0, count=2),
            make_event(sentence_index=0, count=3, voice_name="ja-JP-Wavenet-A"),
            make_event(sentence_index=4, count=1),
        ]
        stats = aggregate_playback(events)
        article = stats.by_article["article-1"]
        assert article.heatmap == {0: 5, 4: 1}
        assert sum(article.heatmap.values()) == article.plays
        assert len(article.sentences) == 2

    def test_top_articles_ranked_and_limited(self):
        events = [
            make_event(article_id=f"article-{i}", count=i + 1, sentence_index=i)
            for i in range(12)
        ]
        stats = aggregate_playback(events)
        assert len(stats.top_articles) == 10
        assert stats.top_articles[0].article_id == "article-11"
        assert stats.top_articles[0].max_plays == 12
        assert stats.top_articles[0].heatmap == {11: 12}
        assert stats.top_articles[0].unique_sentences == 1

    def test_top_articles_limit_from_config(self, mixed_events):
        stats = aggregate_playback(mixed_events, config=ReportConfig(top_articles_limit=1))
        assert [a.article_id for a in stats.top_articles] == ["article-1"]

    def test_ties_keep_first_seen_order(self):
        events = [
            make_event(article_id="b"),
            make_event(article_id="a"),
        ]
        stats = aggregate_playback(events)
        assert [a.article_id for a in stats.top_articles] == ["b", "a"]


class TestUsers:
    """Test per-user buckets and top users."""

    def test_missing_user_is_anonymous(self, mixed_events):
        stats = aggregate_playback(mixed_events)
        assert "anonymous" in stats.by_user
        assert stats.by_user["anonymous"].is_anonymous
        assert stats.by_user["anonymous"].plays == 1

    def test_user_articles_exclude_missing_article(self, mixed_events):
        stats = aggregate_playback(mixed_events)
        assert stats.by_user["user-1"].articles == {"article-1"}
        assert stats.by_user["user-2"].articles == set()

    def test_top_users(self, mixed_events):
        stats = aggregate_playback(mixed_events)
        assert stats.top_users[0].user_id == "user-1"
        assert stats.top_users[0].plays == 5
        assert stats.top_users[0].unique_articles == 1
        assert stats.unique_users == 3


class TestSentenceRepetition:
    """Test most repeated sentences."""

    def test_most_repeated_and_average(self):
        events = [
            make_event(sentence_index=0, count=2),
            make_event(sentence_index=0, count=4, voice_name="ja-JP-Neural2-B"),
            make_event(sentence_index=1, count=1),
            make_event(sentence_index=2, count=3),
        ]
        stats = aggregate_playback(events)
        repetition = stats.sentence_repetition
        assert repetition.most_repeated[0].sentence_index == 0
        assert repetition.most_repeated[0].count == 6
        assert [s.count for s in repetition.most_repeated] == [6, 3, 1]
        assert repetition.average_repeats == pytest.approx(10 / 3)

    def test_average_not_weighted_by_characters(self):
        events = [
            make_event(sentence_index=0, character_count=1000, count=1),
            make_event(sentence_index=1, character_count=1, count=3),
        ]
        stats = aggregate_playback(events)
        assert stats.sentence_repetition.average_repeats == pytest.approx(2.0)

    def test_top_five_only(self):
        events = [make_event(sentence_index=i, count=i + 1) for i in range(8)]
        stats = aggregate_playback(events)
        assert len(stats.sentence_repetition.most_repeated) == 5
        assert stats.sentence_repetition.most_repeated[0].count == 8


class TestReadingPatterns:
    """Test sequential vs jump reads."""

    def test_sequential_reads(self):
        events = [make_event(sentence_index=i, minutes=i) for i in (1, 2, 3)]
        patterns = aggregate_playback(events).reading_patterns
        assert patterns.sequential_reads == 2
        assert patterns.jump_reads == 0

    def test_jump_reads(self):
        events = [
            make_event(sentence_index=1, minutes=0),
            make_event(sentence_index=5, minutes=1),
            make_event(sentence_index=6, minutes=2),
        ]
        patterns = aggregate_playback(events).reading_patterns
        assert patterns.sequential_reads == 1
        assert patterns.jump_reads == 1

    def test_order_follows_timestamps_not_input(self):
        events = [
            make_event(sentence_index=3, minutes=2),
            make_event(sentence_index=1, minutes=0),
            make_event(sentence_index=2, minutes=1),
        ]
        patterns = aggregate_playback(events).reading_patterns
        assert patterns.sequential_reads == 2
        assert patterns.jump_reads == 0

    def test_single_event_article_contributes_nothing(self):
        patterns = aggregate_playback([make_event()]).reading_patterns
        assert patterns.sequential_reads == 0
        assert patterns.jump_reads == 0

    def test_articles_are_walked_separately(self):
        events = [
            make_event(sentence_index=1, minutes=0, article_id="a"),
            make_event(sentence_index=2, minutes=1, article_id="b"),
            make_event(sentence_index=2, minutes=2, article_id="a"),
        ]
        patterns = aggregate_playback(events).reading_patterns
        assert patterns.sequential_reads == 1
        assert patterns.jump_reads == 0


class TestIdempotence:
    """Test repeated aggregation yields identical results."""

    def test_same_input_same_output(self, mixed_events):
        first = aggregate_playback(mixed_events)
        second = aggregate_playback(mixed_events)
        assert first == second
