"""Readiness checks for the powtap faucet."""

import asyncio

from powtap.core.controller import ChallengeController
from powtap.observability.health import CheckResult, HealthCheck, HealthStatus

from .ledger import TransactionLedger


class UpstreamCheck(HealthCheck):
    """Ready when the current upstream node answers."""

    def __init__(self, controller: ChallengeController):
        self._controller = controller

    @property
    def name(self) -> str:
        return "upstream"

    async def check(self) -> CheckResult:
        gateway = self._controller.endpoint.gateway
        if await asyncio.to_thread(lambda: gateway.connected):
            return CheckResult(name=self.name, status=HealthStatus.OK)
        return CheckResult(
            name=self.name,
            status=HealthStatus.ERROR,
            message=f"not connected to {self._controller.endpoint.rpc_endpoint}",
        )


class LedgerCheck(HealthCheck):
    """Ready when the ledger store answers."""

    def __init__(self, ledger: TransactionLedger):
        self._ledger = ledger

    @property
    def name(self) -> str:
        return "ledger"

    async def check(self) -> CheckResult:
        if await asyncio.to_thread(self._ledger.ping):
            return CheckResult(name=self.name, status=HealthStatus.OK)
        return CheckResult(name=self.name, status=HealthStatus.ERROR, message="ping failed")
