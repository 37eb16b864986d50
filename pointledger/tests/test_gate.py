import pytest
from datetime import datetime, timezone
from uuid import uuid4

from pointledger.errors import DenialReason, ValidationError
from pointledger.gate import attempt_self_score
from pointledger.models import Polarity, QuickAction


def _action(label="晨读", points=10, polarity=Polarity.EARN, active=True) -> QuickAction:
    return QuickAction(
        id=uuid4(), label=label, points=points, polarity=polarity, active=active,
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


class TestSelfScoreGate:
    """Tests for the pure self-scoring decision."""

    def test_first_claim_returns_draft(self, member):
        decision = attempt_self_score(member.member_id, _action(), [])

        assert decision.allowed
        assert decision.denial is None
        assert decision.draft.amount == 10
        assert decision.draft.reason == "自我加分：晨读"
        assert decision.draft.member_id == member.member_id
        assert decision.draft.created_by == member.member_id

    def test_same_action_twice_on_same_day(self, member, make_entry):
        action = _action()
        first = attempt_self_score(member.member_id, action, [])
        recorded = make_entry(first.draft.amount, reason=first.draft.reason)

        second = attempt_self_score(member.member_id, action, [recorded])

        assert first.allowed
        assert not second.allowed
        assert second.denial == DenialReason.ALREADY_CLAIMED_TODAY
        assert second.draft is None

    def test_sixth_distinct_claim_hits_daily_limit(self, member, make_entry):
        today = [make_entry(5, reason=f"自我加分：task{i}") for i in range(5)]

        decision = attempt_self_score(member.member_id, _action(), today, daily_limit=5)

        assert decision.denial == DenialReason.DAILY_LIMIT_REACHED

    def test_limit_is_checked_before_duplicates(self, member, make_entry):
        today = [make_entry(5, reason=f"自我加分：task{i}") for i in range(4)]
        today.append(make_entry(10, reason="自我加分：晨读"))

        decision = attempt_self_score(member.member_id, _action(), today, daily_limit=5)

        assert decision.denial == DenialReason.DAILY_LIMIT_REACHED

    def test_admin_awards_do_not_count(self, member, make_entry):
        today = [make_entry(20, reason="帮忙做饭") for _ in range(5)]

        assert attempt_self_score(member.member_id, _action(), today).allowed

    def test_other_members_claims_are_ignored(self, member, other, make_entry):
        today = [make_entry(10, reason="自我加分：晨读", member_id=other.member_id)]

        assert attempt_self_score(member.member_id, _action(), today).allowed

    def test_custom_daily_limit(self, member, make_entry):
        today = [make_entry(5, reason=f"自我加分：task{i}") for i in range(2)]

        decision = attempt_self_score(member.member_id, _action(), today, daily_limit=2)

        assert decision.denial == DenialReason.DAILY_LIMIT_REACHED

    def test_spend_action_is_rejected(self, member):
        with pytest.raises(ValidationError):
            attempt_self_score(member.member_id, _action(label="乱发脾气", polarity=Polarity.SPEND), [])

    def test_inactive_action_is_rejected(self, member):
        with pytest.raises(ValidationError):
            attempt_self_score(member.member_id, _action(active=False), [])
