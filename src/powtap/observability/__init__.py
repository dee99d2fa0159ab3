"""Observability module for the powtap faucet."""

from .health import CheckResult, HealthCheck, HealthRoutes, HealthStatus
from .logging import clear_request_id, configure_logging, get_logger, set_request_id
from .metrics import (
    DIFFICULTY,
    FAUCET_BALANCE,
    LEDGER_FAILURES,
    RPC_DURATION,
    SALT_ROTATIONS,
    SOLVE_ATTEMPTS,
    TOKENS_DISTRIBUTED,
    TRANSACTION_DURATION,
)

__all__ = [
    # Health
    "CheckResult",
    "HealthCheck",
    "HealthRoutes",
    "HealthStatus",
    # Logging
    "clear_request_id",
    "configure_logging",
    "get_logger",
    "set_request_id",
    # Metrics
    "DIFFICULTY",
    "FAUCET_BALANCE",
    "LEDGER_FAILURES",
    "RPC_DURATION",
    "SALT_ROTATIONS",
    "SOLVE_ATTEMPTS",
    "TOKENS_DISTRIBUTED",
    "TRANSACTION_DURATION",
]
