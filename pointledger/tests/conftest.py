import pytest
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID, uuid4

from pointledger.config import Settings
from pointledger.models import Actor, CreateQuickActionRequest, LedgerEntry, Member, Polarity
from pointledger.service import LedgerService
from pointledger.storage import InMemoryStorage


ADMIN_ID = UUID("550e8400-e29b-41d4-a716-446655440000")
MEMBER_ID = UUID("660e8400-e29b-41d4-a716-446655440001")
OTHER_ID = UUID("770e8400-e29b-41d4-a716-446655440002")


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 1, 2, 10, 0, tzinfo=timezone.utc))


@pytest.fixture
def build_service(clock):
    """Build a service over the given storage with the test household registered."""
    def _build(storage: Optional[InMemoryStorage] = None) -> LedgerService:
        storage = storage or InMemoryStorage(seed=False)
        storage.add_member(Member(id=ADMIN_ID, display_name="Mom", is_admin=True))
        storage.add_member(Member(id=MEMBER_ID, display_name="Lily"))
        storage.add_member(Member(id=OTHER_ID, display_name="Leo"))
        return LedgerService(storage=storage, settings=Settings(seed_demo_data=False), clock=clock)
    return _build


@pytest.fixture
def service(build_service):
    return build_service()


@pytest.fixture
def admin():
    return Actor(member_id=ADMIN_ID, is_admin=True)


@pytest.fixture
def member():
    return Actor(member_id=MEMBER_ID)


@pytest.fixture
def other():
    return Actor(member_id=OTHER_ID)


@pytest.fixture
def fund(service, admin):
    def _fund(member_id: UUID, amount: int) -> LedgerEntry:
        return service.apply_delta(member_id, amount, "初始积分", admin)
    return _fund


@pytest.fixture
def reading_action(service, admin):
    return service.catalog.create_quick_action(
        CreateQuickActionRequest(label="晨读", points=10, polarity=Polarity.EARN),
        admin,
    )


@pytest.fixture
def make_entry():
    def _make(
        amount: int,
        created_at: Optional[datetime] = None,
        reason: str = "test",
        member_id: UUID = MEMBER_ID,
    ) -> LedgerEntry:
        return LedgerEntry(
            id=uuid4(),
            member_id=member_id,
            amount=amount,
            reason=reason,
            created_by=ADMIN_ID,
            created_at=created_at or datetime(2024, 1, 2, 10, 0, tzinfo=timezone.utc),
        )
    return _make
