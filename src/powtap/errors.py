"""Faucet error taxonomy.

Every error is terminal for the request that raised it; nothing is retried
internally. Clients re-fetch a challenge and try again.
"""

from enum import Enum


class FaucetErrorKind(str, Enum):
    """Stable identifiers for faucet errors, exposed over JSON-RPC."""

    SALT_EXPIRED = "salt_expired"
    INVALID_SOLUTION = "invalid_solution"
    DUPLICATE_SOLUTION = "duplicate_solution"
    FEE_EXCEEDS_AMOUNT = "fee_exceeds_amount"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    UPSTREAM_UNREACHABLE = "upstream_unreachable"
    UPSTREAM_ERROR = "upstream_error"
    UNAUTHORIZED = "unauthorized"


class FaucetError(Exception):
    """Base class for faucet errors.

    Parameters
    ----------
    message : str
        Human readable description.
    """

    kind: FaucetErrorKind

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class SaltExpiredError(FaucetError):
    kind = FaucetErrorKind.SALT_EXPIRED

    def __init__(self, message: str = "salt expired"):
        super().__init__(message)


class InvalidSolutionError(FaucetError):
    kind = FaucetErrorKind.INVALID_SOLUTION

    def __init__(self, message: str = "invalid solution"):
        super().__init__(message)


class DuplicateSolutionError(FaucetError):
    kind = FaucetErrorKind.DUPLICATE_SOLUTION

    def __init__(self, message: str = "duplicate solution"):
        super().__init__(message)


class FeeExceedsAmountError(FaucetError):
    kind = FaucetErrorKind.FEE_EXCEEDS_AMOUNT


class InsufficientFundsError(FaucetError):
    kind = FaucetErrorKind.INSUFFICIENT_FUNDS


class UpstreamUnreachableError(FaucetError):
    kind = FaucetErrorKind.UPSTREAM_UNREACHABLE


class UpstreamError(FaucetError):
    """A chain call failed while serving a solve."""

    kind = FaucetErrorKind.UPSTREAM_ERROR


class UnauthorizedError(FaucetError):
    kind = FaucetErrorKind.UNAUTHORIZED

    def __init__(self, message: str = "unauthorized user"):
        super().__init__(message)
