"""Faucet components for powtap."""

from .admin import AdminReconfigurator
from .checks import LedgerCheck, UpstreamCheck
from .guard import Disbursement, DisbursementGuard, validate_address
from .ledger import DisbursementRecord, TransactionLedger

__all__ = [
    "AdminReconfigurator",
    "Disbursement",
    "DisbursementGuard",
    "DisbursementRecord",
    "LedgerCheck",
    "TransactionLedger",
    "UpstreamCheck",
    "validate_address",
]
