"""
Balance Calculator and Aggregation Reporter.

Pure functions over ledger entries: no store access, no clock reads unless
the caller leaves `today`/`now` unset. Results never depend on the order
entries are supplied in.
"""

from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Iterable, Optional

from .errors import ValidationError
from .models import ActivitySummary, DailyStat, LedgerEntry
from .provenance import SELF_SCORE_PREFIX, is_self_score


def compute_balance(entries: Iterable[LedgerEntry]) -> int:
    return sum(e.amount for e in entries)


def entry_day(entry: LedgerEntry, tz: tzinfo = timezone.utc) -> date:
    created_at = entry.created_at
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return created_at.astimezone(tz).date()


def start_of_day(moment: datetime, tz: tzinfo = timezone.utc) -> datetime:
    local = moment.astimezone(tz)
    return local.replace(hour=0, minute=0, second=0, microsecond=0)


def compute_daily_stats(
    entries: Iterable[LedgerEntry],
    window_days: int,
    today: Optional[date] = None,
    tz: tzinfo = timezone.utc,
) -> list[DailyStat]:
    if window_days < 1:
        raise ValidationError("window_days must be at least 1")

    today = today or datetime.now(tz).date()
    first_day = today - timedelta(days=window_days - 1)
    buckets = {
        first_day + timedelta(days=i): DailyStat(date=first_day + timedelta(days=i))
        for i in range(window_days)
    }

    for entry in entries:
        bucket = buckets.get(entry_day(entry, tz))
        if bucket is None:
            continue
        bucket.net_total += entry.amount
        if entry.amount > 0:
            bucket.gain_total += entry.amount

    return [buckets[day] for day in sorted(buckets)]


def todays_entries(
    entries: Iterable[LedgerEntry],
    today: date,
    tz: tzinfo = timezone.utc,
) -> list[LedgerEntry]:
    return [e for e in entries if entry_day(e, tz) == today]


def summarize_activity(
    entries: Iterable[LedgerEntry],
    now: Optional[datetime] = None,
    tz: tzinfo = timezone.utc,
    daily_limit: int = 5,
) -> ActivitySummary:
    """Header figures for a member: last 7 days of gains/spend and today's self-scores."""
    now = now or datetime.now(timezone.utc)
    today = now.astimezone(tz).date()
    week_start = today - timedelta(days=6)

    summary = ActivitySummary()
    for entry in entries:
        day = entry_day(entry, tz)
        if week_start <= day <= today:
            if entry.amount > 0:
                summary.weekly_gain += entry.amount
            else:
                summary.weekly_spend -= entry.amount
        if day == today:
            summary.today_net += entry.amount
            if is_self_score(entry):
                summary.self_scores_today += 1
                summary.claimed_today.append(entry.reason[len(SELF_SCORE_PREFIX):])

    summary.claimed_today.sort()
    summary.self_scores_remaining = max(0, daily_limit - summary.self_scores_today)
    return summary
