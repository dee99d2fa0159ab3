"""Disbursement guard for the powtap faucet.

A solved challenge is paid out only if:
- its salt is the current salt
- the work satisfies the current difficulty
- the same solution was not already paid this period
- the network fee does not exceed the dispense amount
- the faucet can cover fee and amount

Validation, transfer and dedup bookkeeping all happen under the controller's
exclusive lock, so two identical solutions can never both be paid.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from decimal import Decimal

from powtap.blockchain.gateway import ChainGateway, PreparedTransfer
from powtap.config import DispenseAsset
from powtap.core.controller import ChallengeController
from powtap.errors import (
    FaucetError,
    FeeExceedsAmountError,
    InsufficientFundsError,
    UpstreamError,
)
from powtap.observability.metrics import (
    FAUCET_BALANCE,
    LEDGER_FAILURES,
    SOLVE_ATTEMPTS,
    TOKENS_DISTRIBUTED,
    TRANSACTION_DURATION,
)

from .ledger import TransactionLedger

logger = logging.getLogger(__name__)

# Ethereum address pattern: 0x followed by 40 hex characters
ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")


def validate_address(address: str) -> bool:
    """Validate Ethereum address format.

    Parameters
    ----------
    address : str
        Address to validate.

    Returns
    -------
    bool
        True if valid Ethereum address format.
    """
    return bool(ADDRESS_PATTERN.match(address))


@dataclass(frozen=True)
class Disbursement:
    """Outcome of a paid-out solve."""

    tx_id: str
    destination: str
    amount: Decimal
    fee: Decimal
    tx_url: str | None = None


class DisbursementGuard:
    """Pays out solved challenges.

    Parameters
    ----------
    controller : ChallengeController
        Owner of the challenge state and upstream endpoint.
    ledger : TransactionLedger
        Where completed disbursements are recorded.
    faucet_address : str
        Address funds are sent from.
    amount : Decimal
        Amount dispensed per accepted solution.
    asset : DispenseAsset
        Asset dispensed, which also selects the balance checked.
    """

    def __init__(
        self,
        controller: ChallengeController,
        ledger: TransactionLedger,
        faucet_address: str,
        amount: Decimal,
        asset: DispenseAsset = DispenseAsset.ATN,
    ):
        self._controller = controller
        self._ledger = ledger
        self._faucet_address = faucet_address
        self._amount = amount
        self._asset = asset

    @property
    def amount(self) -> Decimal:
        """Amount dispensed per accepted solution."""
        return self._amount

    @property
    def asset(self) -> DispenseAsset:
        """Asset dispensed."""
        return self._asset

    async def solve(self, destination: str, salt: bytes, solution: bytes) -> Disbursement:
        """Validate a solved challenge and pay ``destination``.

        Parameters
        ----------
        destination : str
            Recipient address.
        salt : bytes
            Salt the client solved.
        solution : bytes
            The client's solution.

        Returns
        -------
        Disbursement
            Transaction hash, amount and fee of the payout.

        Raises
        ------
        FaucetError
            If the solution is rejected or the transfer fails. The solution
            stays unconsumed so it can be resubmitted while the salt is live.
        """
        try:
            async with self._controller.exclusive():
                key = self._controller.admit_locked(salt, solution)
                disbursement = await self.send_funds(destination)
                self._controller.commit_locked(key)
        except FaucetError as e:
            SOLVE_ATTEMPTS.labels(status=e.kind.value).inc()
            logger.warning(
                "Solve rejected",
                extra={"kind": e.kind.value, "destination": destination, "error": e.message},
            )
            raise

        SOLVE_ATTEMPTS.labels(status="success").inc()
        TOKENS_DISTRIBUTED.labels(asset=self._asset.value).inc(float(self._amount))
        logger.info(
            "Fauceted funds",
            extra={
                "tx_hash": disbursement.tx_id,
                "max_fee": str(disbursement.fee),
                "destination": destination,
                "amount": str(disbursement.amount),
                "tx_url": disbursement.tx_url,
            },
        )
        return disbursement

    async def send_funds(self, destination: str) -> Disbursement:
        """Transfer the dispense amount to ``destination``.

        Must be called while holding the controller's exclusive lock.

        Parameters
        ----------
        destination : str
            Recipient address.

        Returns
        -------
        Disbursement
            The submitted transfer.

        Raises
        ------
        FeeExceedsAmountError
            If the network fee is greater than the dispense amount.
        InsufficientFundsError
            If the faucet cannot cover fee and amount.
        UpstreamError
            If any chain call fails.
        """
        endpoint = self._controller.endpoint
        gateway = endpoint.gateway

        with TRANSACTION_DURATION.labels(operation="build").time():
            transfer = await _call_upstream(
                "build transaction", gateway.build_transfer, destination, self._amount
            )

        if transfer.fee > self._amount:
            logger.warning(
                "Abandoning airdrop because network fee is greater than amount",
                extra={"max_fee": str(transfer.fee), "amount": str(self._amount)},
            )
            raise FeeExceedsAmountError(
                f"network fee too high: {transfer.fee} > {self._amount}"
            )

        await self._check_balance(gateway, transfer)

        with TRANSACTION_DURATION.labels(operation="submit").time():
            await _call_upstream("submit transaction", transfer.submit)

        try:
            await self._ledger.record(transfer.tx_id, destination, self._amount)
        except Exception as e:
            # The transfer is already on chain; it must not be retried
            LEDGER_FAILURES.inc()
            logger.error(
                "Failed to record disbursement",
                extra={"tx_hash": transfer.tx_id, "destination": destination, "error": str(e)},
                exc_info=True,
            )

        return Disbursement(
            tx_id=transfer.tx_id,
            destination=destination,
            amount=self._amount,
            fee=transfer.fee,
            tx_url=endpoint.get_tx_url(transfer.tx_id),
        )

    async def _check_balance(self, gateway: ChainGateway, transfer: PreparedTransfer) -> None:
        """Best-effort balance guard; in-flight transactions are not counted."""
        balance = await _call_upstream(
            "fetch balance", gateway.balance, self._faucet_address, self._asset
        )
        FAUCET_BALANCE.labels(asset=self._asset.value).set(float(balance))

        if self._asset == DispenseAsset.ATN:
            required = transfer.fee + self._amount
            if balance < required:
                logger.warning("Faucet has insufficient funds", extra={"balance": str(balance)})
                raise InsufficientFundsError(f"insufficient balance: {balance} < {required}")
            return

        # Token transfers pay the fee in native coin
        if balance < self._amount:
            logger.warning("Faucet has insufficient funds", extra={"balance": str(balance)})
            raise InsufficientFundsError(f"insufficient balance: {balance} < {self._amount}")
        native = await _call_upstream(
            "fetch balance", gateway.balance, self._faucet_address, DispenseAsset.ATN
        )
        if native < transfer.fee:
            logger.warning("Faucet cannot cover network fee", extra={"balance": str(native)})
            raise InsufficientFundsError(f"insufficient balance for fee: {native} < {transfer.fee}")


async def _call_upstream(operation: str, func, *args):
    """Run a blocking gateway call in a worker thread.

    Raises
    ------
    UpstreamError
        Wrapping whatever the gateway raised.
    """
    try:
        return await asyncio.to_thread(func, *args)
    except Exception as e:
        logger.error(f"Failed to {operation}", extra={"error": str(e)})
        raise UpstreamError(f"failed to {operation}: {e}") from e
