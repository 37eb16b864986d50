"""
Redemption State Machine.

    pending ──approve──▶ approved
       └────reject───▶ rejected
    (created directly) completed

A request that needs approval is recorded as pending with no ledger effect.
One that doesn't is debited and recorded as completed in the same call.
Decisions always use the request's cost snapshot, never the live reward.

The store has no transactions spanning a ledger entry and a request row,
so a debit followed by a failed status write leaves a debited, still-pending
request behind. check_consistency() finds those for out-of-band repair.
"""

import logging
from collections import Counter, defaultdict
from datetime import datetime, timezone, tzinfo
from typing import Callable, Optional
from uuid import UUID, uuid4

from .balance import compute_balance, entry_day
from .catalog import CatalogService
from .errors import (
    InsufficientBalanceError,
    InvalidStateTransitionError,
    MemberNotFoundError,
    NotAuthorizedError,
    RedemptionNotFoundError,
    StoreError,
    ValidationError,
)
from .models import (
    Actor,
    ConsistencyIssue,
    ConsistencyReport,
    EntryKind,
    LedgerEntry,
    RedemptionRequest,
    RedemptionResponse,
    RedemptionStatus,
)
from .provenance import parse_reason, redemption_reason, redemption_rollback_reason
from .storage import InMemoryStorage

logger = logging.getLogger(__name__)

DEFAULT_REJECTION_NOTE = "Declined by administrator"


class RedemptionService:
    def __init__(
        self,
        storage: InMemoryStorage,
        catalog: Optional[CatalogService] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.storage = storage
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.catalog = catalog or CatalogService(storage, self.clock)

    def request_redemption(self, reward_id: UUID, actor: Actor) -> RedemptionResponse:
        reward = self.catalog.get_reward(reward_id)
        if not reward.active:
            raise ValidationError(f"Reward '{reward.name}' is no longer available")
        if self.storage.get_member(actor.member_id) is None:
            raise MemberNotFoundError(f"Member {actor.member_id} not found")

        self._check_balance(actor.member_id, reward.cost)

        now = self.clock()
        request = RedemptionRequest(
            id=uuid4(),
            member_id=actor.member_id,
            reward_id=reward.id,
            reward_name_snapshot=reward.name,
            cost_snapshot=reward.cost,
            status=RedemptionStatus.PENDING if reward.requires_approval else RedemptionStatus.COMPLETED,
            created_at=now,
        )

        if reward.requires_approval:
            self.storage.insert_request(request)
            logger.info("Redemption %s pending approval: member=%s reward=%s cost=%d",
                        request.id, actor.member_id, reward.name, reward.cost)
            return RedemptionResponse(request=request, message="Redemption submitted for approval")

        entry = self._debit(request, created_by=actor.member_id)
        try:
            self.storage.insert_request(request)
        except StoreError:
            self._roll_back_debit(request, created_by=actor.member_id)
            raise

        logger.info("Redemption %s completed: member=%s reward=%s cost=%d",
                    request.id, actor.member_id, reward.name, reward.cost)
        return RedemptionResponse(request=request, ledger_entry=entry, message="Redemption completed")

    def approve(self, request_id: UUID, actor: Actor) -> RedemptionResponse:
        self._require_admin(actor)
        request = self.get_request(request_id)
        if not request.can_decide():
            raise InvalidStateTransitionError(f"Cannot approve redemption in {request.status.value} state")

        self._check_balance(request.member_id, request.cost_snapshot)
        entry = self._debit(request, created_by=actor.member_id)

        try:
            updated = self.storage.update_status(
                request.id, RedemptionStatus.APPROVED, request.admin_note,
                actor.member_id, self.clock(),
            )
        except StoreError:
            logger.error(
                "Reconciliation gap: redemption %s debited by entry %s but still pending",
                request.id, entry.id,
            )
            raise

        if updated is None:
            # Decided concurrently between our read and the conditional write.
            self._roll_back_debit(request, created_by=actor.member_id)
            raise InvalidStateTransitionError(f"Redemption {request.id} was decided concurrently")

        logger.info("Redemption %s approved by %s", request.id, actor.member_id)
        return RedemptionResponse(request=updated, ledger_entry=entry, message="Redemption approved")

    def reject(self, request_id: UUID, actor: Actor, note: Optional[str] = None) -> RedemptionResponse:
        self._require_admin(actor)
        request = self.get_request(request_id)
        if not request.can_decide():
            raise InvalidStateTransitionError(f"Cannot reject redemption in {request.status.value} state")

        note = (note or "").strip() or DEFAULT_REJECTION_NOTE
        updated = self.storage.update_status(
            request.id, RedemptionStatus.REJECTED, note, actor.member_id, self.clock(),
        )
        if updated is None:
            raise InvalidStateTransitionError(f"Redemption {request.id} was decided concurrently")

        logger.info("Redemption %s rejected by %s", request.id, actor.member_id)
        return RedemptionResponse(request=updated, message="Redemption rejected")

    def get_request(self, request_id: UUID) -> RedemptionRequest:
        request = self.storage.get_request(request_id)
        if request is None:
            raise RedemptionNotFoundError(f"Redemption {request_id} not found")
        return request

    def list_by_status(self, status: RedemptionStatus) -> list[RedemptionRequest]:
        return self.storage.list_by_status(status)

    def list_for_member(self, member_id: UUID) -> list[RedemptionRequest]:
        return self.storage.list_requests_for_member(member_id)

    def check_consistency(self, tz: tzinfo = timezone.utc) -> ConsistencyReport:
        """Match redemption requests to their debit entries and flag anything out of line."""
        entries = self.storage.all_entries()
        requests = {r.id: r for r in self.storage.all_requests()}

        debits: dict[UUID, list[LedgerEntry]] = defaultdict(list)
        rollbacks: Counter = Counter()
        self_scores: Counter = Counter()
        for entry in entries:
            prov = parse_reason(entry.reason, entry.amount)
            if prov.kind == EntryKind.REDEMPTION and prov.request_id is not None:
                debits[prov.request_id].append(entry)
            elif prov.kind == EntryKind.REDEMPTION_ROLLBACK and prov.request_id is not None:
                rollbacks[prov.request_id] += 1
            elif prov.kind == EntryKind.SELF_SCORE:
                self_scores[(entry.member_id, entry_day(entry, tz), prov.subject)] += 1

        issues: list[ConsistencyIssue] = []
        for request in requests.values():
            standing = len(debits.get(request.id, [])) - rollbacks[request.id]
            if request.is_debited():
                if standing != 1:
                    issues.append(ConsistencyIssue(
                        kind="missing_debit" if standing < 1 else "duplicate_debit",
                        request_id=request.id, member_id=request.member_id,
                        detail=f"{request.status.value} request has {standing} standing debits",
                    ))
                elif any(e.amount != -request.cost_snapshot for e in debits[request.id]):
                    issues.append(ConsistencyIssue(
                        kind="amount_mismatch", request_id=request.id, member_id=request.member_id,
                        detail=f"debit does not match cost snapshot {request.cost_snapshot}",
                    ))
            elif standing > 0:
                issues.append(ConsistencyIssue(
                    kind="debited_without_approval", request_id=request.id, member_id=request.member_id,
                    detail=f"{request.status.value} request has {standing} standing debits",
                ))

        for request_id, found in debits.items():
            if request_id not in requests and len(found) > rollbacks[request_id]:
                issues.append(ConsistencyIssue(
                    kind="orphan_debit", request_id=request_id, member_id=found[0].member_id,
                    detail="debit references a redemption that was never recorded",
                ))

        for (member_id, day, label), count in self_scores.items():
            if count > 1:
                issues.append(ConsistencyIssue(
                    kind="duplicate_self_score", member_id=member_id,
                    detail=f"'{label}' claimed {count} times on {day.isoformat()}",
                ))

        if issues:
            logger.warning("Consistency check found %d issue(s)", len(issues))
        return ConsistencyReport(checked_requests=len(requests), issues=issues)

    def _check_balance(self, member_id: UUID, cost: int) -> int:
        balance = compute_balance(self.storage.query_entries(member_id))
        if balance < cost:
            raise InsufficientBalanceError(balance, cost)
        return balance

    def _debit(self, request: RedemptionRequest, created_by: UUID) -> LedgerEntry:
        entry = LedgerEntry(
            id=uuid4(),
            member_id=request.member_id,
            amount=-request.cost_snapshot,
            reason=redemption_reason(request.reward_name_snapshot, request.id),
            created_by=created_by,
            created_at=self.clock(),
        )
        return self.storage.insert_entry(entry)

    def _roll_back_debit(self, request: RedemptionRequest, created_by: UUID) -> None:
        entry = LedgerEntry(
            id=uuid4(),
            member_id=request.member_id,
            amount=request.cost_snapshot,
            reason=redemption_rollback_reason(request.reward_name_snapshot, request.id),
            created_by=created_by,
            created_at=self.clock(),
        )
        try:
            self.storage.insert_entry(entry)
        except StoreError:
            logger.error("Reconciliation gap: could not roll back debit for redemption %s", request.id)
            raise
        logger.warning("Rolled back debit for redemption %s", request.id)

    @staticmethod
    def _require_admin(actor: Actor) -> None:
        if not actor.is_admin:
            raise NotAuthorizedError("Only an administrator can decide redemption requests")
