"""Upstream reconfiguration for the powtap faucet."""

import asyncio
import logging
import secrets
from decimal import Decimal

from pydantic import SecretStr

from powtap.blockchain.gateway import GatewayFactory
from powtap.blockchain.networks import open_endpoint
from powtap.config import DispenseAsset
from powtap.core.controller import ChallengeController
from powtap.errors import UnauthorizedError
from powtap.observability.metrics import FAUCET_BALANCE

logger = logging.getLogger(__name__)


class AdminReconfigurator:
    """Swaps the upstream node and resets challenge state.

    Parameters
    ----------
    controller : ChallengeController
        Owner of the challenge state and upstream endpoint.
    gateway_factory : GatewayFactory
        Builds a gateway for a URL.
    admin_token : SecretStr | None
        Credential required by ``update_upstream``. None disables it.
    faucet_address : str
        Faucet address, used to report the balance after a swap.
    asset : DispenseAsset
        Asset whose balance is reported.
    """

    def __init__(
        self,
        controller: ChallengeController,
        gateway_factory: GatewayFactory,
        admin_token: SecretStr | None,
        faucet_address: str,
        asset: DispenseAsset = DispenseAsset.ATN,
    ):
        self._controller = controller
        self._gateway_factory = gateway_factory
        self._admin_token = admin_token
        self._faucet_address = faucet_address
        self._asset = asset

    def authorize(self, admin_token: str) -> None:
        """Check ``admin_token`` against the configured credential.

        Raises
        ------
        UnauthorizedError
            If the token is wrong or no credential is configured.
        """
        if self._admin_token is None or not self._admin_token.get_secret_value():
            raise UnauthorizedError("admin operations are disabled")
        expected = self._admin_token.get_secret_value().encode()
        if not secrets.compare_digest(admin_token.encode(), expected):
            raise UnauthorizedError()

    async def update_upstream(self, admin_token: str, new_address: str) -> Decimal | None:
        """Authorize the caller, then switch to ``new_address``.

        Parameters
        ----------
        admin_token : str
            Caller-supplied admin credential.
        new_address : str
            New upstream RPC URL.

        Returns
        -------
        Decimal | None
            Faucet balance on the new upstream, or None if it could not be read.
        """
        try:
            self.authorize(admin_token)
        except UnauthorizedError:
            logger.warning("Rejected upstream update", extra={"rpc_endpoint": new_address})
            raise
        return await self.update_endpoint(new_address)

    async def update_endpoint(self, new_address: str) -> Decimal | None:
        """Switch to ``new_address`` and reset all challenge state.

        The previous endpoint stays in place if the new one cannot be reached.

        Parameters
        ----------
        new_address : str
            New upstream RPC URL.

        Returns
        -------
        Decimal | None
            Faucet balance on the new upstream, or None if it could not be read.

        Raises
        ------
        UpstreamUnreachableError
            If the new upstream does not answer.
        """
        async with self._controller.exclusive():
            old = self._controller.endpoint
            logger.info(
                "Updating upstream RPC URL",
                extra={"old_url": old.rpc_endpoint, "new_url": new_address},
            )
            endpoint = await open_endpoint(
                new_address, self._gateway_factory, old.block_explorer_url
            )
            self._controller.reset_locked(endpoint)

            try:
                balance = await asyncio.to_thread(
                    endpoint.gateway.balance, self._faucet_address, self._asset
                )
            except Exception as e:
                logger.warning(
                    "Upstream updated but balance could not be fetched",
                    extra={"rpc_endpoint": new_address, "error": str(e)},
                )
                return None

            FAUCET_BALANCE.labels(asset=self._asset.value).set(float(balance))
            logger.info(
                "RPC client has been updated and faucet reinitialized",
                extra={
                    "rpc_endpoint": new_address,
                    "network_id": endpoint.network_id,
                    "chain_id": endpoint.chain_id,
                    "address": self._faucet_address,
                    "difficulty": self._controller.state.difficulty,
                    "balance": str(balance),
                },
            )
            return balance
