"""
Unit Tests for the Balance Calculator and Aggregation Reporter

Tests cover:
1. Balance as the sum of entries, in any order
2. Day bucketing across midnight and time zones
3. Zero-filled trailing windows
4. Weekly/today activity summary
"""

import random
import pytest
from datetime import date, datetime, timedelta, timezone

from pointledger.balance import compute_balance, compute_daily_stats, summarize_activity
from pointledger.errors import ValidationError


def _at(year, month, day, hour=12, minute=0):
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


class TestComputeBalance:
    """Tests for balance derivation."""

    def test_balance_is_sum_of_amounts(self, make_entry):
        entries = [make_entry(a) for a in (100, -30, 25, -5, 10)]

        assert compute_balance(entries) == 100

    def test_balance_independent_of_order(self, make_entry):
        entries = [make_entry(a, created_at=_at(2024, 1, d)) for d, a in enumerate((7, -3, 12, 40, -19, 1), start=1)]
        shuffled = list(entries)
        random.Random(7).shuffle(shuffled)

        assert compute_balance(shuffled) == compute_balance(entries) == 38
        assert compute_balance(reversed(entries)) == 38

    def test_empty_ledger_is_zero(self):
        assert compute_balance([]) == 0


class TestDailyStats:
    """Tests for trailing-window day buckets."""

    def test_entries_either_side_of_midnight_fall_in_different_buckets(self, make_entry):
        entries = [
            make_entry(5, created_at=datetime(2024, 1, 1, 23, 59, tzinfo=timezone.utc)),
            make_entry(7, created_at=datetime(2024, 1, 2, 0, 1, tzinfo=timezone.utc)),
        ]

        stats = compute_daily_stats(entries, 7, today=date(2024, 1, 2))
        by_day = {s.date: s for s in stats}

        assert by_day[date(2024, 1, 1)].net_total == 5
        assert by_day[date(2024, 1, 2)].net_total == 7

    def test_missing_days_are_zero_buckets_oldest_first(self):
        stats = compute_daily_stats([], 7, today=date(2024, 1, 7))

        assert [s.date for s in stats] == [date(2024, 1, d) for d in range(1, 8)]
        assert all(s.net_total == 0 and s.gain_total == 0 for s in stats)

    def test_net_and_gain_totals(self, make_entry):
        entries = [
            make_entry(10, created_at=_at(2024, 1, 2, 8)),
            make_entry(5, created_at=_at(2024, 1, 2, 9)),
            make_entry(-8, created_at=_at(2024, 1, 2, 20)),
        ]

        stats = compute_daily_stats(entries, 3, today=date(2024, 1, 2))

        assert stats[-1].date == date(2024, 1, 2)
        assert stats[-1].net_total == 7
        assert stats[-1].gain_total == 15

    def test_entries_outside_window_are_ignored(self, make_entry):
        entries = [make_entry(50, created_at=_at(2023, 12, 20)), make_entry(4, created_at=_at(2024, 1, 3))]

        stats = compute_daily_stats(entries, 7, today=date(2024, 1, 2))

        assert sum(s.net_total for s in stats) == 0

    def test_order_does_not_matter(self, make_entry):
        entries = [make_entry(a, created_at=_at(2024, 1, d)) for d, a in ((1, 3), (5, -2), (3, 9), (5, 4), (2, -1))]

        forward = compute_daily_stats(entries, 7, today=date(2024, 1, 7))
        backward = compute_daily_stats(list(reversed(entries)), 7, today=date(2024, 1, 7))

        assert forward == backward

    def test_bucket_uses_entry_date_in_given_timezone(self, make_entry):
        utc_plus_8 = timezone(timedelta(hours=8))
        entry = make_entry(6, created_at=datetime(2024, 1, 1, 17, 0, tzinfo=timezone.utc))

        stats = compute_daily_stats([entry], 2, today=date(2024, 1, 2), tz=utc_plus_8)

        assert [(s.date, s.net_total) for s in stats] == [(date(2024, 1, 1), 0), (date(2024, 1, 2), 6)]

    def test_window_must_be_positive(self):
        with pytest.raises(ValidationError):
            compute_daily_stats([], 0, today=date(2024, 1, 2))


class TestSummarizeActivity:
    """Tests for the weekly and today summary."""

    def test_summary_figures(self, make_entry):
        now = _at(2024, 1, 7, 12)
        entries = [
            make_entry(10, created_at=_at(2024, 1, 7, 8), reason="自我加分：晨读"),
            make_entry(-20, created_at=_at(2024, 1, 7, 9), reason="乱发脾气"),
            make_entry(30, created_at=_at(2024, 1, 2, 9), reason="帮忙洗碗"),
            make_entry(-15, created_at=_at(2023, 12, 31, 9), reason="兑换：看电视30分钟"),
        ]

        summary = summarize_activity(entries, now=now, daily_limit=5)

        assert summary.weekly_gain == 40
        assert summary.weekly_spend == 20
        assert summary.today_net == -10
        assert summary.self_scores_today == 1
        assert summary.self_scores_remaining == 4
        assert summary.claimed_today == ["晨读"]

    def test_remaining_never_negative(self, make_entry):
        now = _at(2024, 1, 2, 12)
        entries = [make_entry(1, created_at=now, reason=f"自我加分：task{i}") for i in range(6)]

        summary = summarize_activity(entries, now=now, daily_limit=5)

        assert summary.self_scores_remaining == 0
