"""
Self-Scoring Gate.

Decides whether a member may award themselves points from an earn-type
quick action. The decision is a pure function of the day's already-fetched
entries; the caller appends the returned draft and re-checks afterwards,
since two concurrent claims can both pass against the same snapshot.
"""

from typing import Iterable
from uuid import UUID

from .errors import DenialReason, ValidationError
from .models import LedgerEntry, LedgerEntryDraft, Polarity, QuickAction, SelfScoreDecision
from .provenance import is_self_score, self_score_reason

DEFAULT_DAILY_LIMIT = 5


def attempt_self_score(
    member_id: UUID,
    action: QuickAction,
    todays_entries: Iterable[LedgerEntry],
    daily_limit: int = DEFAULT_DAILY_LIMIT,
) -> SelfScoreDecision:
    if action.polarity != Polarity.EARN:
        raise ValidationError(f"Quick action '{action.label}' is not an earn action")
    if not action.active:
        raise ValidationError(f"Quick action '{action.label}' is no longer active")

    reason = self_score_reason(action.label)
    claims = [e for e in todays_entries if e.member_id == member_id and is_self_score(e)]

    if len(claims) >= daily_limit:
        return SelfScoreDecision(denial=DenialReason.DAILY_LIMIT_REACHED)
    if any(e.reason == reason for e in claims):
        return SelfScoreDecision(denial=DenialReason.ALREADY_CLAIMED_TODAY)

    return SelfScoreDecision(draft=LedgerEntryDraft(
        member_id=member_id,
        amount=action.points,
        reason=reason,
        created_by=member_id,
    ))
