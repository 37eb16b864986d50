from typing import Optional
from uuid import UUID
from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings, configure_logging
from .errors import (
    InsufficientBalanceError,
    InvalidStateTransitionError,
    LedgerServiceError,
    MemberNotFoundError,
    NotAuthorizedError,
    NotFoundError,
    SelfScoreDeniedError,
    StoreError,
    ValidationError,
)
from .models import (
    Actor,
    AdjustmentRequest,
    ConsistencyReport,
    CreateQuickActionRequest,
    CreateRewardRequest,
    LedgerEntry,
    LedgerHistoryResponse,
    Member,
    MemberBalance,
    Polarity,
    QuickAction,
    RedemptionRequest,
    RedemptionResponse,
    RedemptionStatus,
    RejectRedemptionRequest,
    Reward,
    SetActiveRequest,
    StatsResponse,
    UpdateQuickActionRequest,
    UpdateRewardRequest,
)
from .service import LedgerService

settings = Settings.from_env()
configure_logging(settings)

app = FastAPI(
    title="Household Points API",
    description="Points ledger, self-scoring and reward redemption for a household",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ledger_service = LedgerService(settings=settings)

_ERROR_STATUS = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (NotAuthorizedError, status.HTTP_403_FORBIDDEN),
    (InsufficientBalanceError, status.HTTP_409_CONFLICT),
    (SelfScoreDeniedError, status.HTTP_409_CONFLICT),
    (InvalidStateTransitionError, status.HTTP_409_CONFLICT),
    (StoreError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


@app.exception_handler(LedgerServiceError)
def handle_service_error(request: Request, exc: LedgerServiceError) -> JSONResponse:
    status_code = next(
        (code for error_type, code in _ERROR_STATUS if isinstance(exc, error_type)),
        status.HTTP_400_BAD_REQUEST,
    )
    body = {"detail": str(exc), "error": type(exc).__name__}
    if isinstance(exc, SelfScoreDeniedError):
        body["reason"] = exc.reason.value
    return JSONResponse(status_code=status_code, content=body)


def get_service() -> LedgerService:
    return ledger_service


def get_actor(
    x_member_id: UUID = Header(..., description="Member id supplied by the identity provider"),
    service: LedgerService = Depends(get_service),
) -> Actor:
    try:
        return service.resolve_actor(x_member_id)
    except MemberNotFoundError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown member")


def _require_self_or_admin(actor: Actor, member_id: UUID) -> None:
    if actor.member_id != member_id and not actor.is_admin:
        raise NotAuthorizedError("Members can only view their own points")


@app.get("/health", tags=["System"])
def health_check():
    return {"status": "healthy", "service": "household-points"}


@app.get("/members", response_model=list[Member], tags=["Members"])
def list_members(actor: Actor = Depends(get_actor), service: LedgerService = Depends(get_service)) -> list[Member]:
    return service.list_members(actor)


@app.get("/members/{member_id}/balance", response_model=MemberBalance, tags=["Members"])
def get_member_balance(
    member_id: UUID,
    actor: Actor = Depends(get_actor),
    service: LedgerService = Depends(get_service),
) -> MemberBalance:
    _require_self_or_admin(actor, member_id)
    return service.get_balance(member_id)


@app.get("/members/{member_id}/ledger", response_model=LedgerHistoryResponse, tags=["Members"])
def get_member_ledger(
    member_id: UUID,
    limit: Optional[int] = None,
    offset: int = 0,
    actor: Actor = Depends(get_actor),
    service: LedgerService = Depends(get_service),
) -> LedgerHistoryResponse:
    _require_self_or_admin(actor, member_id)
    return service.get_ledger_history(member_id, limit, offset)


@app.get("/members/{member_id}/stats", response_model=StatsResponse, tags=["Members"])
def get_member_stats(
    member_id: UUID,
    days: Optional[int] = None,
    actor: Actor = Depends(get_actor),
    service: LedgerService = Depends(get_service),
) -> StatsResponse:
    _require_self_or_admin(actor, member_id)
    return service.get_daily_stats(member_id, days)


@app.post("/members/{member_id}/adjustments", response_model=LedgerEntry,
          status_code=status.HTTP_201_CREATED, tags=["Points"])
def adjust_points(
    member_id: UUID,
    request: AdjustmentRequest,
    actor: Actor = Depends(get_actor),
    service: LedgerService = Depends(get_service),
) -> LedgerEntry:
    return service.apply_custom(member_id, request.amount, request.polarity, request.reason, actor)


@app.post("/members/{member_id}/quick-actions/{action_id}", response_model=LedgerEntry,
          status_code=status.HTTP_201_CREATED, tags=["Points"])
def apply_quick_action(
    member_id: UUID,
    action_id: UUID,
    actor: Actor = Depends(get_actor),
    service: LedgerService = Depends(get_service),
) -> LedgerEntry:
    return service.apply_quick_action(member_id, action_id, actor)


@app.post("/self-score/{action_id}", response_model=LedgerEntry,
          status_code=status.HTTP_201_CREATED, tags=["Points"])
def self_score(
    action_id: UUID,
    actor: Actor = Depends(get_actor),
    service: LedgerService = Depends(get_service),
) -> LedgerEntry:
    return service.self_score(action_id, actor)


@app.get("/quick-actions", response_model=list[QuickAction], tags=["Catalog"])
def list_quick_actions(
    polarity: Optional[Polarity] = None,
    include_inactive: bool = False,
    actor: Actor = Depends(get_actor),
    service: LedgerService = Depends(get_service),
) -> list[QuickAction]:
    if include_inactive:
        if not actor.is_admin:
            raise NotAuthorizedError("Only an administrator can view inactive quick actions")
        return service.catalog.list_all_quick_actions()
    return service.catalog.list_active_quick_actions(polarity)


@app.post("/quick-actions", response_model=QuickAction, status_code=status.HTTP_201_CREATED, tags=["Catalog"])
def create_quick_action(
    request: CreateQuickActionRequest,
    actor: Actor = Depends(get_actor),
    service: LedgerService = Depends(get_service),
) -> QuickAction:
    return service.catalog.create_quick_action(request, actor)


@app.patch("/quick-actions/{action_id}", response_model=QuickAction, tags=["Catalog"])
def update_quick_action(
    action_id: UUID,
    request: UpdateQuickActionRequest,
    actor: Actor = Depends(get_actor),
    service: LedgerService = Depends(get_service),
) -> QuickAction:
    return service.catalog.update_quick_action(action_id, request, actor)


@app.put("/quick-actions/{action_id}/active", response_model=QuickAction, tags=["Catalog"])
def set_quick_action_active(
    action_id: UUID,
    request: SetActiveRequest,
    actor: Actor = Depends(get_actor),
    service: LedgerService = Depends(get_service),
) -> QuickAction:
    return service.catalog.set_quick_action_active(action_id, request.active, actor)


@app.get("/rewards", response_model=list[Reward], tags=["Catalog"])
def list_rewards(
    include_inactive: bool = False,
    actor: Actor = Depends(get_actor),
    service: LedgerService = Depends(get_service),
) -> list[Reward]:
    if include_inactive:
        if not actor.is_admin:
            raise NotAuthorizedError("Only an administrator can view inactive rewards")
        return service.catalog.list_all_rewards()
    return service.catalog.list_active_rewards()


@app.post("/rewards", response_model=Reward, status_code=status.HTTP_201_CREATED, tags=["Catalog"])
def create_reward(
    request: CreateRewardRequest,
    actor: Actor = Depends(get_actor),
    service: LedgerService = Depends(get_service),
) -> Reward:
    return service.catalog.create_reward(request, actor)


@app.patch("/rewards/{reward_id}", response_model=Reward, tags=["Catalog"])
def update_reward(
    reward_id: UUID,
    request: UpdateRewardRequest,
    actor: Actor = Depends(get_actor),
    service: LedgerService = Depends(get_service),
) -> Reward:
    return service.catalog.update_reward(reward_id, request, actor)


@app.put("/rewards/{reward_id}/active", response_model=Reward, tags=["Catalog"])
def set_reward_active(
    reward_id: UUID,
    request: SetActiveRequest,
    actor: Actor = Depends(get_actor),
    service: LedgerService = Depends(get_service),
) -> Reward:
    return service.catalog.set_reward_active(reward_id, request.active, actor)


@app.post("/rewards/{reward_id}/redeem", response_model=RedemptionResponse,
          status_code=status.HTTP_201_CREATED, tags=["Redemptions"])
def redeem_reward(
    reward_id: UUID,
    actor: Actor = Depends(get_actor),
    service: LedgerService = Depends(get_service),
) -> RedemptionResponse:
    return service.redemptions.request_redemption(reward_id, actor)


@app.get("/redemptions", response_model=list[RedemptionRequest], tags=["Redemptions"])
def list_redemptions(
    status_filter: Optional[RedemptionStatus] = Query(None, alias="status"),
    actor: Actor = Depends(get_actor),
    service: LedgerService = Depends(get_service),
) -> list[RedemptionRequest]:
    if status_filter is None:
        return service.redemptions.list_for_member(actor.member_id)
    if not actor.is_admin:
        raise NotAuthorizedError("Only an administrator can list requests by status")
    return service.redemptions.list_by_status(status_filter)


@app.post("/redemptions/{request_id}/approve", response_model=RedemptionResponse, tags=["Redemptions"])
def approve_redemption(
    request_id: UUID,
    actor: Actor = Depends(get_actor),
    service: LedgerService = Depends(get_service),
) -> RedemptionResponse:
    return service.redemptions.approve(request_id, actor)


@app.post("/redemptions/{request_id}/reject", response_model=RedemptionResponse, tags=["Redemptions"])
def reject_redemption(
    request_id: UUID,
    request: RejectRedemptionRequest,
    actor: Actor = Depends(get_actor),
    service: LedgerService = Depends(get_service),
) -> RedemptionResponse:
    return service.redemptions.reject(request_id, actor, request.note)


@app.get("/admin/consistency", response_model=ConsistencyReport, tags=["System"])
def check_consistency(
    actor: Actor = Depends(get_actor),
    service: LedgerService = Depends(get_service),
) -> ConsistencyReport:
    if not actor.is_admin:
        raise NotAuthorizedError("Only an administrator can run the consistency check")
    return service.redemptions.check_consistency(service.settings.tz)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
