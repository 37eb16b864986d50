from datetime import date as calendar_date, datetime
from enum import Enum
from typing import Optional, Union
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict

from .errors import DenialReason


class Polarity(str, Enum):
    EARN = "earn"
    SPEND = "spend"


class RedemptionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


class CatalogKind(str, Enum):
    QUICK_ACTION = "quick_action"
    REWARD = "reward"


class EntryKind(str, Enum):
    SELF_SCORE = "self_score"
    REDEMPTION = "redemption"
    REDEMPTION_ROLLBACK = "redemption_rollback"
    ADMIN_AWARD = "admin_award"
    ADMIN_DEDUCTION = "admin_deduction"
    OTHER = "other"


class Actor(BaseModel):
    """Identity of whoever performs an operation, as supplied by the identity provider."""
    member_id: UUID
    is_admin: bool = False


class Member(BaseModel):
    id: UUID
    display_name: str
    is_admin: bool = False
    balance: int = 0

    model_config = ConfigDict(from_attributes=True)


class LedgerEntryDraft(BaseModel):
    member_id: UUID
    amount: int
    reason: str
    created_by: Optional[UUID] = None


class LedgerEntry(BaseModel):
    id: UUID
    member_id: UUID
    amount: int
    reason: str
    created_by: Optional[UUID] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True, frozen=True)


class QuickAction(BaseModel):
    id: UUID
    label: str
    points: int
    icon: Optional[str] = None
    polarity: Polarity = Polarity.EARN
    active: bool = True
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    def signed_points(self) -> int:
        return self.points if self.polarity == Polarity.EARN else -self.points


class Reward(BaseModel):
    id: UUID
    name: str
    description: Optional[str] = None
    cost: int
    icon: Optional[str] = None
    requires_approval: bool = False
    active: bool = True
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RedemptionRequest(BaseModel):
    id: UUID
    member_id: UUID
    reward_id: UUID
    reward_name_snapshot: str
    cost_snapshot: int
    status: RedemptionStatus
    admin_note: Optional[str] = None
    created_at: datetime
    decided_by: Optional[UUID] = None
    decided_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    def can_decide(self) -> bool:
        return self.status == RedemptionStatus.PENDING

    def is_debited(self) -> bool:
        return self.status in (RedemptionStatus.APPROVED, RedemptionStatus.COMPLETED)


class CreateQuickActionRequest(BaseModel):
    label: str
    points: int
    icon: Optional[str] = None
    polarity: Polarity = Polarity.EARN

    model_config = ConfigDict(json_schema_extra={
        "example": {"label": "晨读", "points": 10, "icon": "📖", "polarity": "earn"}
    })


class UpdateQuickActionRequest(BaseModel):
    label: Optional[str] = None
    points: Optional[int] = None
    icon: Optional[str] = None
    polarity: Optional[Polarity] = None


class CreateRewardRequest(BaseModel):
    name: str
    cost: int
    description: Optional[str] = None
    icon: Optional[str] = None
    requires_approval: bool = False

    model_config = ConfigDict(json_schema_extra={
        "example": {"name": "Movie night", "cost": 80, "icon": "🎬", "requires_approval": True}
    })


class UpdateRewardRequest(BaseModel):
    name: Optional[str] = None
    cost: Optional[int] = None
    description: Optional[str] = None
    icon: Optional[str] = None
    requires_approval: Optional[bool] = None


class SetActiveRequest(BaseModel):
    active: bool


class AdjustmentRequest(BaseModel):
    amount: Union[int, str] = Field(..., description="Positive magnitude; sign comes from polarity")
    polarity: Polarity
    reason: str


class RejectRedemptionRequest(BaseModel):
    note: Optional[str] = None


class MemberBalance(BaseModel):
    member_id: UUID
    current_balance: int
    total_entries: int
    last_transaction_at: Optional[datetime] = None


class DescribedEntry(BaseModel):
    entry: LedgerEntry
    kind: EntryKind
    title: str


class LedgerHistoryResponse(BaseModel):
    member_id: UUID
    entries: list[DescribedEntry]
    total_count: int
    current_balance: int


class DailyStat(BaseModel):
    date: calendar_date
    net_total: int = 0
    gain_total: int = 0


class ActivitySummary(BaseModel):
    weekly_gain: int = 0
    weekly_spend: int = 0
    today_net: int = 0
    self_scores_today: int = 0
    self_scores_remaining: int = 0
    claimed_today: list[str] = Field(default_factory=list)


class StatsResponse(BaseModel):
    member_id: UUID
    days: list[DailyStat]
    summary: ActivitySummary


class SelfScoreDecision(BaseModel):
    draft: Optional[LedgerEntryDraft] = None
    denial: Optional[DenialReason] = None

    @property
    def allowed(self) -> bool:
        return self.draft is not None


class RedemptionResponse(BaseModel):
    request: RedemptionRequest
    ledger_entry: Optional[LedgerEntry] = None
    message: str


class ConsistencyIssue(BaseModel):
    kind: str
    request_id: Optional[UUID] = None
    member_id: UUID
    detail: str


class ConsistencyReport(BaseModel):
    checked_requests: int
    issues: list[ConsistencyIssue] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.issues
