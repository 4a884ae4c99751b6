# promo-allocation-backend/app/core/errors.py
"""
Allocation engine error taxonomy.

Ineligibility and ticket-claim conflicts are NOT errors: they come back as
normal results. Everything here aborts the attempt's transaction.
"""


class AllocationError(Exception):
    """Base class; carries the HTTP status and a stable error code."""

    status_code = 500
    code = "ALLOCATION_ERROR"
    # Shown to the user instead of str(exc)
    public_message = "Something went wrong, please try again."

    def __init__(self, message: str = "", code: str | None = None):
        super().__init__(message or self.public_message)
        if code:
            self.code = code


class PoolNotFoundError(AllocationError):
    status_code = 404
    code = "POOL_NOT_FOUND"
    public_message = "Pool not found."


class InvalidRequestError(AllocationError):
    status_code = 400
    code = "INVALID_REQUEST"
    public_message = "Invalid request."


class StockExhaustedError(AllocationError):
    """No candidate and no alternative had stock: the pool is misconfigured."""

    status_code = 500
    code = "NO_AVAILABLE_PRIZES"


class TransientAllocationError(AllocationError):
    """Lock wait / connectivity failure. Nothing was committed, safe to retry."""

    status_code = 503
    code = "TRY_AGAIN"


class RewardDispatchError(AllocationError):
    status_code = 500
    code = "REWARD_DISPATCH_FAILED"


class WalletFrozenError(RewardDispatchError):
    code = "WALLET_FROZEN"


class InsufficientFundsError(RewardDispatchError):
    code = "INSUFFICIENT_FUNDS"


class UnknownRewardTypeError(RewardDispatchError):
    code = "UNKNOWN_REWARD_TYPE"
