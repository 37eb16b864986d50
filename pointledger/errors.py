from enum import Enum


class LedgerServiceError(Exception):
    pass


class ValidationError(LedgerServiceError):
    pass


class InvalidAmountError(ValidationError):
    pass


class InsufficientBalanceError(LedgerServiceError):
    def __init__(self, balance: int, required: int):
        self.balance = balance
        self.required = required
        super().__init__(f"Insufficient balance: {balance} available, {required} required")


class DenialReason(str, Enum):
    DAILY_LIMIT_REACHED = "DAILY_LIMIT_REACHED"
    ALREADY_CLAIMED_TODAY = "ALREADY_CLAIMED_TODAY"


class SelfScoreDeniedError(LedgerServiceError):
    def __init__(self, reason: DenialReason, label: str):
        self.reason = reason
        self.label = label
        super().__init__(f"Self-score for '{label}' denied: {reason.value}")


class InvalidStateTransitionError(LedgerServiceError):
    pass


class StoreError(LedgerServiceError):
    pass


class NotAuthorizedError(LedgerServiceError):
    pass


class NotFoundError(LedgerServiceError):
    pass


class MemberNotFoundError(NotFoundError):
    pass


class RewardNotFoundError(NotFoundError):
    pass


class QuickActionNotFoundError(NotFoundError):
    pass


class RedemptionNotFoundError(NotFoundError):
    pass
