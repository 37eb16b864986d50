from datetime import datetime, timezone
from threading import Lock
from typing import Optional
from uuid import UUID

from .models import (
    CatalogKind,
    LedgerEntry,
    Member,
    Polarity,
    QuickAction,
    RedemptionRequest,
    RedemptionStatus,
    Reward,
)

_CATALOG_MODELS = {
    CatalogKind.QUICK_ACTION: QuickAction,
    CatalogKind.REWARD: Reward,
}


class InMemoryStorage:
    """
    Store for ledger entries, catalog items, redemption requests and member
    profiles. Rows are kept as plain dicts (the persisted shape) and handed
    out as fresh models, so callers can never mutate stored state in place.

    Each write is atomic on its own row. There are no transactions spanning
    several rows, which is the guarantee the services are written against.
    """

    def __init__(self, seed: bool = True):
        self.members: dict[UUID, dict] = {}
        self.ledger_entries: dict[UUID, dict] = {}
        self.catalog: dict[CatalogKind, dict[UUID, dict]] = {
            CatalogKind.QUICK_ACTION: {},
            CatalogKind.REWARD: {},
        }
        self.redemption_requests: dict[UUID, dict] = {}
        self._lock = Lock()
        if seed:
            self._seed_data()

    def _seed_data(self):
        now = datetime.now(timezone.utc)
        parent_id = UUID("550e8400-e29b-41d4-a716-446655440000")
        child_id = UUID("660e8400-e29b-41d4-a716-446655440001")

        self.add_member(Member(id=parent_id, display_name="Mom", is_admin=True))
        self.add_member(Member(id=child_id, display_name="Lily"))

        for action_id, label, points, icon, polarity in (
            ("11111111-1111-1111-1111-111111111111", "晨读", 10, "📖", Polarity.EARN),
            ("11111111-1111-1111-1111-111111111112", "整理房间", 15, "🧹", Polarity.EARN),
            ("11111111-1111-1111-1111-111111111113", "按时睡觉", 5, "😴", Polarity.EARN),
            ("11111111-1111-1111-1111-111111111114", "乱发脾气", 10, "⚠️", Polarity.SPEND),
        ):
            self.insert_catalog_item(CatalogKind.QUICK_ACTION, QuickAction(
                id=UUID(action_id), label=label, points=points, icon=icon,
                polarity=polarity, created_at=now,
            ))

        for reward_id, name, cost, icon, requires_approval in (
            ("22222222-2222-2222-2222-222222222221", "看电视30分钟", 30, "📺", False),
            ("22222222-2222-2222-2222-222222222222", "周末看电影", 80, "🎬", True),
        ):
            self.insert_catalog_item(CatalogKind.REWARD, Reward(
                id=UUID(reward_id), name=name, cost=cost, icon=icon,
                requires_approval=requires_approval, created_at=now,
            ))

    def _snapshot(self, table: dict) -> list[dict]:
        """Copy rows under the lock so reads never iterate a table mid-write."""
        with self._lock:
            return [dict(row) for row in table.values()]

    # Members

    def add_member(self, member: Member) -> Member:
        with self._lock:
            self.members[member.id] = member.model_dump(exclude={"balance"})
        return member

    def get_member(self, member_id: UUID) -> Optional[Member]:
        with self._lock:
            data = self.members.get(member_id)
            return Member(**data) if data else None

    def list_members(self) -> list[Member]:
        members = [Member(**m) for m in self._snapshot(self.members)]
        members.sort(key=lambda m: m.display_name)
        return members

    # Ledger

    def insert_entry(self, entry: LedgerEntry) -> LedgerEntry:
        with self._lock:
            if entry.id in self.ledger_entries:
                raise ValueError(f"Ledger entry {entry.id} already exists")
            self.ledger_entries[entry.id] = entry.model_dump()
        return entry

    def query_entries(
        self,
        member_id: UUID,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[LedgerEntry]:
        """Entries for a member, newest first. Same-timestamp entries come back latest-inserted first."""
        rows = self._snapshot(self.ledger_entries)
        entries = [
            LedgerEntry(**e) for e in reversed(rows)
            if e["member_id"] == member_id and (since is None or e["created_at"] >= since)
        ]
        entries.sort(key=lambda e: e.created_at, reverse=True)
        return entries[:limit] if limit is not None else entries

    def all_entries(self) -> list[LedgerEntry]:
        return [LedgerEntry(**e) for e in self._snapshot(self.ledger_entries)]

    # Catalog

    def insert_catalog_item(self, kind: CatalogKind, item):
        with self._lock:
            self.catalog[kind][item.id] = item.model_dump()
        return item

    def get_catalog_item(self, kind: CatalogKind, item_id: UUID):
        with self._lock:
            data = self.catalog[kind].get(item_id)
            return _CATALOG_MODELS[kind](**data) if data else None

    def update_catalog_item(self, kind: CatalogKind, item_id: UUID, fields: dict):
        with self._lock:
            data = self.catalog[kind].get(item_id)
            if data is None:
                return None
            data.update(fields)
            return _CATALOG_MODELS[kind](**data)

    def set_active(self, kind: CatalogKind, item_id: UUID, active: bool):
        return self.update_catalog_item(kind, item_id, {"active": active})

    def list_all(self, kind: CatalogKind) -> list:
        model = _CATALOG_MODELS[kind]
        return [model(**data) for data in self._snapshot(self.catalog[kind])]

    def list_active(self, kind: CatalogKind) -> list:
        return [item for item in self.list_all(kind) if item.active]

    # Redemption requests

    def insert_request(self, request: RedemptionRequest) -> RedemptionRequest:
        with self._lock:
            self.redemption_requests[request.id] = request.model_dump()
        return request

    def get_request(self, request_id: UUID) -> Optional[RedemptionRequest]:
        with self._lock:
            data = self.redemption_requests.get(request_id)
            return RedemptionRequest(**data) if data else None

    def update_status(
        self,
        request_id: UUID,
        status: RedemptionStatus,
        note: Optional[str],
        actor_id: UUID,
        decided_at: datetime,
        expected_status: RedemptionStatus = RedemptionStatus.PENDING,
    ) -> Optional[RedemptionRequest]:
        """Conditionally transition a request; returns None if it was not in `expected_status`."""
        with self._lock:
            data = self.redemption_requests.get(request_id)
            if data is None or data["status"] != expected_status:
                return None
            data.update({
                "status": status,
                "admin_note": note,
                "decided_by": actor_id,
                "decided_at": decided_at,
            })
            return RedemptionRequest(**data)

    def list_by_status(self, status: RedemptionStatus) -> list[RedemptionRequest]:
        requests = [
            RedemptionRequest(**r) for r in self._snapshot(self.redemption_requests)
            if r["status"] == status
        ]
        requests.sort(key=lambda r: r.created_at)
        return requests

    def list_requests_for_member(self, member_id: UUID) -> list[RedemptionRequest]:
        rows = self._snapshot(self.redemption_requests)
        requests = [
            RedemptionRequest(**r) for r in reversed(rows)
            if r["member_id"] == member_id
        ]
        requests.sort(key=lambda r: r.created_at, reverse=True)
        return requests

    def all_requests(self) -> list[RedemptionRequest]:
        return [RedemptionRequest(**r) for r in self._snapshot(self.redemption_requests)]
