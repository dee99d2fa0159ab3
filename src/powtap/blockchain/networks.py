"""Upstream endpoint for powtap.

Network identifiers are discovered from the RPC endpoint at connection time.
An endpoint is replaced wholesale on reconfiguration, never mutated.
"""

import asyncio
import logging
from dataclasses import dataclass

from powtap.errors import UpstreamUnreachableError

from .gateway import ChainGateway, GatewayFactory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChainEndpoint:
    """Connected upstream node.

    Attributes
    ----------
    rpc_endpoint : str
        The RPC endpoint URL.
    gateway : ChainGateway
        Gateway bound to ``rpc_endpoint``.
    network_id : int
        The network ID (discovered from RPC).
    chain_id : int
        The chain ID (discovered from RPC).
    block_explorer_url : str | None
        Optional block explorer URL for transaction links.
    """

    rpc_endpoint: str
    gateway: ChainGateway
    network_id: int
    chain_id: int
    block_explorer_url: str | None = None

    def get_tx_url(self, tx_hash: str) -> str | None:
        """Get the block explorer URL for a transaction.

        Parameters
        ----------
        tx_hash : str
            The transaction hash.

        Returns
        -------
        str | None
            The block explorer URL, or None if no explorer configured.
        """
        return explorer_tx_url(self.block_explorer_url, tx_hash)


def explorer_tx_url(block_explorer_url: str | None, tx_hash: str) -> str | None:
    """Link to ``tx_hash`` on ``block_explorer_url``, if one is set."""
    if block_explorer_url:
        return f"{block_explorer_url.rstrip('/')}/tx/{tx_hash}"
    return None


def explorer_address_url(block_explorer_url: str | None, address: str) -> str | None:
    """Link to ``address`` on ``block_explorer_url``, if one is set."""
    if block_explorer_url:
        return f"{block_explorer_url.rstrip('/')}/address/{address}"
    return None


async def open_endpoint(
    rpc_endpoint: str,
    gateway_factory: GatewayFactory,
    block_explorer_url: str | None = None,
) -> ChainEndpoint:
    """Connect to ``rpc_endpoint`` and fetch its network identity.

    Parameters
    ----------
    rpc_endpoint : str
        The RPC endpoint URL.
    gateway_factory : GatewayFactory
        Builds a gateway for a URL.
    block_explorer_url : str | None
        Optional block explorer URL.

    Returns
    -------
    ChainEndpoint
        The connected endpoint.

    Raises
    ------
    UpstreamUnreachableError
        If the gateway cannot be built or the node does not answer.
    """
    try:
        gateway = gateway_factory(rpc_endpoint)
        identity = await asyncio.to_thread(gateway.network_identity)
    except Exception as e:
        logger.error(
            "Failed to fetch network details",
            extra={"rpc_endpoint": rpc_endpoint, "error": str(e)},
        )
        raise UpstreamUnreachableError(f"failed to fetch network details: {e}") from e

    logger.info(
        "Fetched network details",
        extra={
            "rpc_endpoint": rpc_endpoint,
            "network_id": identity.network_id,
            "chain_id": identity.chain_id,
        },
    )
    return ChainEndpoint(
        rpc_endpoint=rpc_endpoint,
        gateway=gateway,
        network_id=identity.network_id,
        chain_id=identity.chain_id,
        block_explorer_url=block_explorer_url,
    )
