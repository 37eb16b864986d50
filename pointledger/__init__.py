"""
Household Points Ledger

This module provides:
- Immutable ledger entries; balances are always the sum of entries
- Day-bucketed activity stats over a trailing window
- Self-scoring from earn quick actions with per-day limits
- Quick-action and reward catalogs with soft delete
- Reward redemption lifecycle: pending → approved / rejected, or completed
- A consistency check for debits that lost their status update
"""

from .models import (
    Actor,
    LedgerEntry,
    Member,
    Polarity,
    QuickAction,
    RedemptionRequest,
    RedemptionStatus,
    Reward,
)
from .service import LedgerService

__all__ = [
    "Actor",
    "LedgerEntry",
    "Member",
    "Polarity",
    "QuickAction",
    "RedemptionRequest",
    "RedemptionStatus",
    "Reward",
    "LedgerService",
]
