"""
Privault Exception Hierarchy

All exceptions inherit from PrivaultError for easy catching.
Every failed check raises before any balance is touched.
"""


class PrivaultError(Exception):
    """Base exception for all Privault errors"""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ValidationError(PrivaultError):
    """Raised when arguments are malformed or a route is not offered"""
    pass


class ZeroAmountRejectedError(ValidationError):
    """Raised when an operation that disallows zero receives zero"""
    pass


class LimitExceededError(ValidationError):
    """Raised when an amount exceeds a configured per-operation cap"""
    pass


class ConfigError(PrivaultError):
    """Raised when a deployment configuration is invalid"""
    pass


class ArithmeticOverflowError(PrivaultError):
    """Raised when a conversion or balance leaves the uint128 range"""
    pass


class LedgerError(PrivaultError):
    """Raised when a balance store mutation fails"""
    pass


class InsufficientBalanceError(LedgerError):
    """Raised when an owner cannot cover the requested amount"""
    pass


class AuthorizationError(PrivaultError):
    """Raised when authorization fails"""
    pass


class InsufficientAuthorizationError(AuthorizationError):
    """Raised when a delegation is missing, invalid or mis-scoped"""
    pass


class AuthorizationReplayError(InsufficientAuthorizationError):
    """Raised when a delegation is reused (replay attack)"""
    pass


class SettlementError(PrivaultError):
    """Raised when settlement fails"""
    pass


class SlippageExceededError(SettlementError):
    """Raised when a computed amount violates a caller-supplied bound"""
    pass


class CommitmentError(SettlementError):
    """Raised when a commitment cannot be resolved"""
    pass


class UnknownCommitmentError(CommitmentError):
    """Raised when no commitment exists under the given id"""
    pass


class CommitmentAlreadyFinalizedError(CommitmentError):
    """Raised when a commitment is finalized a second time"""
    pass


class JournalError(PrivaultError):
    """Raised when the event journal is broken or cannot be written"""
    pass
