"""BVPN Console exception hierarchy.

Every failure carries a human-readable ``message`` and a stable ``code``.
The four kinds an operator can see are ``NotFoundError``,
``ValidationError``, ``InvalidTransitionError`` and
``StoreUnavailableError``; the concrete classes below refine them.
"""


class ConsoleError(Exception):
    """Base exception for all console errors."""

    kind = "error"

    def __init__(self, message: str = "", code: str = "CONSOLE_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


# ── Not found ──

class NotFoundError(ConsoleError):
    kind = "not_found"

    def __init__(self, message: str = "Not found", code: str = "NOT_FOUND"):
        super().__init__(message, code=code)


class AccountNotFoundError(NotFoundError):
    def __init__(self, message: str = "Account not found"):
        super().__init__(message, code="ACCOUNT_NOT_FOUND")


class WithdrawalNotFoundError(NotFoundError):
    def __init__(self, message: str = "Withdrawal not found"):
        super().__init__(message, code="WITHDRAWAL_NOT_FOUND")


# ── Validation ──

class ValidationError(ConsoleError):
    kind = "validation"

    def __init__(self, message: str = "Invalid request", code: str = "VALIDATION_ERROR"):
        super().__init__(message, code=code)


class InvalidReasonError(ValidationError):
    def __init__(self, message: str = "A reason is required"):
        super().__init__(message, code="INVALID_REASON")


class MissingReceiptError(ValidationError):
    def __init__(self, message: str = "Receipt reference is required for approval"):
        super().__init__(message, code="MISSING_RECEIPT")


class MissingReasonError(ValidationError):
    def __init__(self, message: str = "Rejection reason is required"):
        super().__init__(message, code="MISSING_REASON")


class InsufficientBalanceError(ValidationError):
    def __init__(self, message: str = "Insufficient balance"):
        super().__init__(message, code="INSUFFICIENT_BALANCE")


class AccountBannedError(ValidationError):
    def __init__(self, message: str = "Device is banned"):
        super().__init__(message, code="ACCOUNT_BANNED")


class NotWithdrawalOwnerError(ValidationError):
    def __init__(self, message: str = "You can only cancel your own withdrawals"):
        super().__init__(message, code="NOT_WITHDRAWAL_OWNER")


# ── Workflow ──

class InvalidTransitionError(ConsoleError):
    """Raised when a withdrawal is no longer pending."""

    kind = "invalid_transition"

    def __init__(self, message: str = "Withdrawal already processed"):
        super().__init__(message, code="INVALID_TRANSITION")


# ── Infrastructure ──

class StoreUnavailableError(ConsoleError):
    """The account store failed or timed out; the write may or may not have landed."""

    kind = "store_unavailable"

    def __init__(self, message: str = "Account store unavailable"):
        super().__init__(message, code="STORE_UNAVAILABLE")
