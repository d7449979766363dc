"""Custom exceptions for SettleUp."""

from decimal import Decimal


class SettleUpError(Exception):
    """Base exception for all SettleUp errors."""

    pass


class ConfigurationError(SettleUpError, ValueError):
    """Raised when configuration is invalid or missing."""

    pass


class APIError(SettleUpError):
    """Base class for API-related errors."""

    pass


class TransportFailureError(APIError):
    """Raised when a service cannot be reached at all."""

    pass


class HTTPStatusError(APIError):
    """Raised when a service answers with a non-2xx status."""

    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"HTTP {status_code}: {body}")


class InvalidResponseError(APIError):
    """Raised when a 2xx response body does not match the expected shape."""

    pass


class NoActiveGroupError(SettleUpError):
    """Raised when an operation needs an active group and none is selected."""

    def __init__(self, message: str | None = None):
        super().__init__(message or "No active group selected")


class LedgerValidationError(SettleUpError):
    """Base class for expenses rejected before submission."""

    pass


class UnknownMemberError(LedgerValidationError):
    """Raised when a payer or split member is not in the loaded roster."""

    def __init__(self, member_id: int, group_id: int | None, role: str = "Member"):
        self.member_id = member_id
        self.group_id = group_id
        super().__init__(f"{role} {member_id} is not a member of group {group_id}")


class RosterNotLoadedError(LedgerValidationError):
    """Raised when the member roster is not loaded for the requested group."""

    def __init__(self, group_id: int):
        self.group_id = group_id
        super().__init__(f"Members of group {group_id} are not loaded")


class UnbalancedExpenseError(LedgerValidationError):
    """Raised when split shares don't add up to the expense total."""

    def __init__(self, total_amount: Decimal, share_total: Decimal):
        self.total_amount = total_amount
        self.share_total = share_total
        super().__init__(
            f"Sum of splits ({share_total}) must equal total amount ({total_amount})"
        )


class NegativeAmountError(LedgerValidationError):
    """Raised when a total or share amount is below zero."""

    pass


class DuplicateSplitError(LedgerValidationError):
    """Raised when the same member appears in more than one split."""

    def __init__(self, member_id: int):
        self.member_id = member_id
        super().__init__(f"Member {member_id} appears in more than one split")


class InvalidCurrencyError(LedgerValidationError):
    """Raised when a currency code is empty or not ISO-like."""

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Invalid currency code: {currency!r}")


class UnknownGroupError(SettleUpError):
    """Raised when selecting a group that isn't in the loaded group list."""

    def __init__(self, group_id: int):
        self.group_id = group_id
        super().__init__(f"Group {group_id} does not exist")
