"""Prometheus metrics for the powtap faucet.

Metrics:
- powtap_solve_attempts_total: Counter of solve attempts by outcome
- powtap_tokens_distributed_total: Counter of tokens distributed
- powtap_salt_rotations_total: Counter of salt rotations by reason
- powtap_ledger_failures_total: Counter of disbursements the ledger failed to record
- powtap_difficulty: Gauge of the current challenge difficulty
- powtap_balance: Gauge of the faucet balance
- powtap_rpc_duration_seconds: Histogram of JSON-RPC call duration
- powtap_transaction_duration_seconds: Histogram of transaction duration
"""

from prometheus_client import Counter, Gauge, Histogram

# Counters
SOLVE_ATTEMPTS = Counter(
    "powtap_solve_attempts_total",
    "Total number of challenge solve attempts",
    ["status"],
)

TOKENS_DISTRIBUTED = Counter(
    "powtap_tokens_distributed_total",
    "Total tokens distributed",
    ["asset"],
)

SALT_ROTATIONS = Counter(
    "powtap_salt_rotations_total",
    "Total salt rotations",
    ["reason"],
)

LEDGER_FAILURES = Counter(
    "powtap_ledger_failures_total",
    "Disbursements that could not be recorded in the ledger",
)

# Gauges
DIFFICULTY = Gauge(
    "powtap_difficulty",
    "Current challenge difficulty in leading zero bits",
)

FAUCET_BALANCE = Gauge(
    "powtap_balance",
    "Faucet balance in the dispensed asset",
    ["asset"],
)

# Histograms
RPC_DURATION = Histogram(
    "powtap_rpc_duration_seconds",
    "JSON-RPC call duration",
    ["method"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

TRANSACTION_DURATION = Histogram(
    "powtap_transaction_duration_seconds",
    "Blockchain transaction build and submit duration",
    ["operation"],
    buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)
