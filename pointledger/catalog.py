import logging
from datetime import datetime, timezone
from typing import Callable, Optional
from uuid import UUID, uuid4

from .errors import NotAuthorizedError, QuickActionNotFoundError, RewardNotFoundError, ValidationError
from .models import (
    Actor,
    CatalogKind,
    CreateQuickActionRequest,
    CreateRewardRequest,
    Polarity,
    QuickAction,
    Reward,
    UpdateQuickActionRequest,
    UpdateRewardRequest,
)
from .storage import InMemoryStorage

logger = logging.getLogger(__name__)

DEFAULT_EARN_ICON = "🎉"
DEFAULT_SPEND_ICON = "⚠️"
DEFAULT_REWARD_ICON = "🎁"


def _require_admin(actor: Actor) -> None:
    if not actor.is_admin:
        raise NotAuthorizedError("Only an administrator can manage the catalog")


def _clean_text(value: Optional[str], field: str) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationError(f"{field} must not be empty")
    return text


def _positive_int(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{field} must be a positive integer")
    return value


class CatalogService:
    """Quick actions and rewards, both soft-deleted through their active flag."""

    def __init__(self, storage: InMemoryStorage, clock: Optional[Callable[[], datetime]] = None):
        self.storage = storage
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    # Quick actions

    def create_quick_action(self, request: CreateQuickActionRequest, actor: Actor) -> QuickAction:
        _require_admin(actor)
        default_icon = DEFAULT_EARN_ICON if request.polarity == Polarity.EARN else DEFAULT_SPEND_ICON
        action = QuickAction(
            id=uuid4(),
            label=_clean_text(request.label, "label"),
            points=_positive_int(request.points, "points"),
            icon=request.icon or default_icon,
            polarity=request.polarity,
            created_at=self.clock(),
        )
        self.storage.insert_catalog_item(CatalogKind.QUICK_ACTION, action)
        logger.info("Quick action %s created: %s (%s %d)", action.id, action.label, action.polarity.value, action.points)
        return action

    def update_quick_action(self, action_id: UUID, request: UpdateQuickActionRequest, actor: Actor) -> QuickAction:
        _require_admin(actor)
        self.get_quick_action(action_id)

        fields = {}
        if request.label is not None:
            fields["label"] = _clean_text(request.label, "label")
        if request.points is not None:
            fields["points"] = _positive_int(request.points, "points")
        if request.icon is not None:
            fields["icon"] = request.icon
        if request.polarity is not None:
            fields["polarity"] = request.polarity

        updated = self.storage.update_catalog_item(CatalogKind.QUICK_ACTION, action_id, fields)
        if updated is None:
            raise QuickActionNotFoundError(f"Quick action {action_id} not found")
        return updated

    def set_quick_action_active(self, action_id: UUID, active: bool, actor: Actor) -> QuickAction:
        _require_admin(actor)
        updated = self.storage.set_active(CatalogKind.QUICK_ACTION, action_id, active)
        if updated is None:
            raise QuickActionNotFoundError(f"Quick action {action_id} not found")
        logger.info("Quick action %s %s", action_id, "activated" if active else "deactivated")
        return updated

    def get_quick_action(self, action_id: UUID) -> QuickAction:
        action = self.storage.get_catalog_item(CatalogKind.QUICK_ACTION, action_id)
        if action is None:
            raise QuickActionNotFoundError(f"Quick action {action_id} not found")
        return action

    def list_active_quick_actions(self, polarity: Optional[Polarity] = None) -> list[QuickAction]:
        actions = [
            a for a in self.storage.list_active(CatalogKind.QUICK_ACTION)
            if polarity is None or a.polarity == polarity
        ]
        actions.sort(key=lambda a: (a.points, a.created_at))
        return actions

    def list_all_quick_actions(self) -> list[QuickAction]:
        actions = self.storage.list_all(CatalogKind.QUICK_ACTION)
        actions.sort(key=lambda a: (a.polarity != Polarity.EARN, a.points, a.created_at))
        return actions

    # Rewards

    def create_reward(self, request: CreateRewardRequest, actor: Actor) -> Reward:
        _require_admin(actor)
        reward = Reward(
            id=uuid4(),
            name=_clean_text(request.name, "name"),
            description=request.description,
            cost=_positive_int(request.cost, "cost"),
            icon=request.icon or DEFAULT_REWARD_ICON,
            requires_approval=request.requires_approval,
            created_at=self.clock(),
        )
        self.storage.insert_catalog_item(CatalogKind.REWARD, reward)
        logger.info("Reward %s created: %s (cost %d, approval=%s)",
                    reward.id, reward.name, reward.cost, reward.requires_approval)
        return reward

    def update_reward(self, reward_id: UUID, request: UpdateRewardRequest, actor: Actor) -> Reward:
        _require_admin(actor)
        self.get_reward(reward_id)

        fields = {}
        if request.name is not None:
            fields["name"] = _clean_text(request.name, "name")
        if request.cost is not None:
            fields["cost"] = _positive_int(request.cost, "cost")
        if request.description is not None:
            fields["description"] = request.description
        if request.icon is not None:
            fields["icon"] = request.icon
        if request.requires_approval is not None:
            fields["requires_approval"] = request.requires_approval

        updated = self.storage.update_catalog_item(CatalogKind.REWARD, reward_id, fields)
        if updated is None:
            raise RewardNotFoundError(f"Reward {reward_id} not found")
        return updated

    def set_reward_active(self, reward_id: UUID, active: bool, actor: Actor) -> Reward:
        _require_admin(actor)
        updated = self.storage.set_active(CatalogKind.REWARD, reward_id, active)
        if updated is None:
            raise RewardNotFoundError(f"Reward {reward_id} not found")
        logger.info("Reward %s %s", reward_id, "activated" if active else "deactivated")
        return updated

    def get_reward(self, reward_id: UUID) -> Reward:
        reward = self.storage.get_catalog_item(CatalogKind.REWARD, reward_id)
        if reward is None:
            raise RewardNotFoundError(f"Reward {reward_id} not found")
        return reward

    def list_active_rewards(self) -> list[Reward]:
        rewards = self.storage.list_active(CatalogKind.REWARD)
        rewards.sort(key=lambda r: (r.cost, r.created_at))
        return rewards

    def list_all_rewards(self) -> list[Reward]:
        rewards = self.storage.list_all(CatalogKind.REWARD)
        rewards.sort(key=lambda r: (r.requires_approval, r.cost, r.created_at))
        return rewards
