"""Pytest configuration and fixtures for powtap tests."""

import itertools
import os
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from powtap.blockchain.gateway import ChainGateway, NetworkIdentity, PreparedTransfer
from powtap.blockchain.networks import ChainEndpoint
from powtap.core.controller import ChallengeController
from powtap.core.pow_utils import search, verify
from powtap.faucet.guard import DisbursementGuard
from powtap.faucet.ledger import TransactionLedger

FAUCET_ADDRESS = "0xFCAd0B19bB29D4674531d6f115237E16AfCE377c"
RECIPIENT = "0x742d35Cc6634C0532925a3b844Bc9e7595f8fE00"
NODE_A = "http://node-a:8545"
NODE_B = "http://node-b:8545"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Clear powtap-related environment variables before each test."""
    env_prefixes = ("POWTAP_", "REDIS_")
    for key in list(os.environ.keys()):
        if key.startswith(env_prefixes):
            monkeypatch.delenv(key, raising=False)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_gateway(
    balance: Decimal = Decimal("1000"),
    fee: Decimal = Decimal("0.001"),
    network_id: int = 65100004,
    chain_id: int = 65100004,
) -> MagicMock:
    """Build a ChainGateway mock whose transfers record their submission."""
    gateway = MagicMock(spec=ChainGateway)
    gateway.connected = True
    gateway.network_identity.return_value = NetworkIdentity(
        network_id=network_id, chain_id=chain_id
    )
    gateway.balance.return_value = balance
    gateway.submitted = []
    counter = itertools.count(1)

    def build_transfer(destination, amount):
        tx_id = f"0x{next(counter):064x}"
        return PreparedTransfer(
            tx_id=tx_id,
            fee=fee,
            submit=lambda: gateway.submitted.append((tx_id, destination, amount)),
        )

    gateway.build_transfer.side_effect = build_transfer
    return gateway


def solve(salt: bytes, difficulty: int, start: int = 0) -> bytes:
    """Find a valid solution, searching from ``start``."""
    return search(salt, difficulty, start)


def unsolve(salt: bytes, difficulty: int) -> bytes:
    """Find a candidate that does not meet ``difficulty``."""
    for counter in itertools.count():
        candidate = counter.to_bytes(8, "big")
        if not verify(salt, candidate, difficulty):
            return candidate


@pytest.fixture
def clock():
    """Fake clock starting at t=1000."""
    return FakeClock()


@pytest.fixture
def gateway():
    """Gateway with ample funds and a small fee."""
    return make_gateway()


@pytest.fixture
def endpoint(gateway):
    """Endpoint bound to the default gateway."""
    return ChainEndpoint(
        rpc_endpoint=NODE_A,
        gateway=gateway,
        network_id=65100004,
        chain_id=65100004,
        block_explorer_url="https://explorer.example.com",
    )


@pytest.fixture
def controller(endpoint, clock):
    """Controller with floor difficulty 2, quota 3 and a 60 second period."""
    return ChallengeController(
        endpoint,
        start_difficulty=2,
        solutions_per_salt=3,
        target_duration_per_salt=60,
        clock=clock,
    )


@pytest.fixture
def ledger():
    """In-memory transaction ledger."""
    return TransactionLedger()


@pytest.fixture
def guard(controller, ledger):
    """Guard dispensing 1 ATN per solution."""
    return DisbursementGuard(controller, ledger, FAUCET_ADDRESS, Decimal("1"))
