import logging
from datetime import datetime, timezone
from typing import Callable, Optional, Union
from uuid import UUID, uuid4

from .balance import compute_balance, compute_daily_stats, start_of_day, summarize_activity
from .catalog import CatalogService
from .config import Settings
from .errors import (
    InvalidAmountError,
    MemberNotFoundError,
    NotAuthorizedError,
    SelfScoreDeniedError,
    ValidationError,
)
from .gate import attempt_self_score
from .models import (
    Actor,
    DescribedEntry,
    LedgerEntry,
    LedgerEntryDraft,
    LedgerHistoryResponse,
    Member,
    MemberBalance,
    Polarity,
    StatsResponse,
)
from .provenance import describe_entry, is_self_score
from .redemption import RedemptionService
from .storage import InMemoryStorage

logger = logging.getLogger(__name__)


def parse_custom_amount(amount: Union[int, str]) -> int:
    """Parse a manually entered magnitude; it must be a whole number above zero."""
    if isinstance(amount, bool):
        raise InvalidAmountError("Amount must be a number")
    if isinstance(amount, str):
        try:
            amount = int(amount.strip())
        except ValueError:
            raise InvalidAmountError(f"Amount '{amount}' is not a whole number")
    if not isinstance(amount, int):
        raise InvalidAmountError("Amount must be a whole number")
    if amount <= 0:
        raise InvalidAmountError("Amount must be greater than zero")
    return amount


class LedgerService:
    def __init__(
        self,
        storage: Optional[InMemoryStorage] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.settings = settings or Settings()
        self.storage = storage or InMemoryStorage(seed=self.settings.seed_demo_data)
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.catalog = CatalogService(self.storage, self.clock)
        self.redemptions = RedemptionService(self.storage, self.catalog, self.clock)

    # Members and balances

    def get_member(self, member_id: UUID) -> Member:
        member = self.storage.get_member(member_id)
        if member is None:
            raise MemberNotFoundError(f"Member {member_id} not found")
        member.balance = compute_balance(self.storage.query_entries(member_id))
        return member

    def resolve_actor(self, member_id: UUID) -> Actor:
        member = self.get_member(member_id)
        return Actor(member_id=member.id, is_admin=member.is_admin)

    def list_members(self, actor: Actor) -> list[Member]:
        self._require_admin(actor)
        members = self.storage.list_members()
        for member in members:
            member.balance = compute_balance(self.storage.query_entries(member.id))
        return members

    def get_balance(self, member_id: UUID) -> MemberBalance:
        self.get_member(member_id)
        entries = self.storage.query_entries(member_id)
        return MemberBalance(
            member_id=member_id,
            current_balance=compute_balance(entries),
            total_entries=len(entries),
            last_transaction_at=entries[0].created_at if entries else None,
        )

    def get_ledger_history(self, member_id: UUID, limit: Optional[int] = None, offset: int = 0) -> LedgerHistoryResponse:
        self.get_member(member_id)
        limit = limit if limit is not None else self.settings.history_page_size
        if limit < 1 or offset < 0:
            raise ValidationError("limit must be positive and offset non-negative")

        all_entries = self.storage.query_entries(member_id)
        described = []
        for entry in all_entries[offset:offset + limit]:
            kind, title = describe_entry(entry)
            described.append(DescribedEntry(entry=entry, kind=kind, title=title))

        return LedgerHistoryResponse(
            member_id=member_id,
            entries=described,
            total_count=len(all_entries),
            current_balance=compute_balance(all_entries),
        )

    def get_daily_stats(self, member_id: UUID, window_days: Optional[int] = None) -> StatsResponse:
        self.get_member(member_id)
        if window_days is None:
            window_days = self.settings.stats_window_days
        tz = self.settings.tz
        now = self.clock()
        entries = self.storage.query_entries(member_id)
        return StatsResponse(
            member_id=member_id,
            days=compute_daily_stats(entries, window_days, today=now.astimezone(tz).date(), tz=tz),
            summary=summarize_activity(entries, now=now, tz=tz, daily_limit=self.settings.self_score_daily_limit),
        )

    # Point changes

    def apply_delta(self, member_id: UUID, signed_amount: int, reason: str, actor: Actor) -> LedgerEntry:
        """Append an administrative adjustment. No balance floor: deductions may go negative."""
        self._require_admin(actor)
        if isinstance(signed_amount, bool) or not isinstance(signed_amount, int) or signed_amount == 0:
            raise InvalidAmountError("Amount must be a non-zero whole number")
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("reason must not be empty")
        self.get_member(member_id)

        return self._append(LedgerEntryDraft(
            member_id=member_id,
            amount=signed_amount,
            reason=reason,
            created_by=actor.member_id,
        ))

    def apply_quick_action(self, member_id: UUID, action_id: UUID, actor: Actor) -> LedgerEntry:
        action = self.catalog.get_quick_action(action_id)
        if not action.active:
            raise ValidationError(f"Quick action '{action.label}' is no longer active")
        return self.apply_delta(member_id, action.signed_points(), action.label, actor)

    def apply_custom(
        self,
        member_id: UUID,
        amount: Union[int, str],
        polarity: Polarity,
        reason: str,
        actor: Actor,
    ) -> LedgerEntry:
        magnitude = parse_custom_amount(amount)
        signed = magnitude if polarity == Polarity.EARN else -magnitude
        return self.apply_delta(member_id, signed, reason, actor)

    def self_score(self, action_id: UUID, actor: Actor) -> LedgerEntry:
        self.get_member(actor.member_id)
        action = self.catalog.get_quick_action(action_id)
        limit = self.settings.self_score_daily_limit
        since = start_of_day(self.clock(), self.settings.tz)

        todays = self.storage.query_entries(actor.member_id, since=since)
        decision = attempt_self_score(actor.member_id, action, todays, daily_limit=limit)
        if not decision.allowed:
            raise SelfScoreDeniedError(decision.denial, action.label)

        entry = self._append(decision.draft)
        self._recheck_self_score(entry, since, limit)
        return entry

    def _recheck_self_score(self, entry: LedgerEntry, since: datetime, limit: int) -> None:
        claims = [e for e in self.storage.query_entries(entry.member_id, since=since) if is_self_score(e)]
        duplicates = sum(1 for e in claims if e.reason == entry.reason)
        if duplicates > 1 or len(claims) > limit:
            logger.warning(
                "Concurrent self-score detected for member %s: %d claims today, %d for '%s'",
                entry.member_id, len(claims), duplicates, entry.reason,
            )

    def _append(self, draft: LedgerEntryDraft) -> LedgerEntry:
        entry = LedgerEntry(
            id=uuid4(),
            member_id=draft.member_id,
            amount=draft.amount,
            reason=draft.reason,
            created_by=draft.created_by,
            created_at=self.clock(),
        )
        self.storage.insert_entry(entry)
        logger.info("Ledger entry %s: member=%s amount=%+d reason=%s",
                    entry.id, entry.member_id, entry.amount, entry.reason)
        return entry

    @staticmethod
    def _require_admin(actor: Actor) -> None:
        if not actor.is_admin:
            raise NotAuthorizedError("Only an administrator can adjust balances")
