"""Tests for upstream endpoints."""

from unittest.mock import MagicMock

import pytest
from conftest import NODE_A, make_gateway

from powtap.blockchain.networks import ChainEndpoint, explorer_address_url, open_endpoint
from powtap.errors import UpstreamUnreachableError


def endpoint(block_explorer_url=None):
    return ChainEndpoint(
        rpc_endpoint=NODE_A,
        gateway=make_gateway(),
        network_id=65100004,
        chain_id=65100004,
        block_explorer_url=block_explorer_url,
    )


class TestChainEndpoint:
    """Tests for ChainEndpoint dataclass."""

    def test_basic_creation(self):
        """ChainEndpoint stores identifiers and has no explorer by default."""
        ep = endpoint()

        assert ep.rpc_endpoint == NODE_A
        assert ep.chain_id == 65100004
        assert ep.block_explorer_url is None

    def test_get_tx_url_with_explorer(self):
        """get_tx_url returns correct URL when explorer configured."""
        ep = endpoint("https://explorer.example.com")

        assert ep.get_tx_url("0xabcd1234") == "https://explorer.example.com/tx/0xabcd1234"

    def test_get_tx_url_without_explorer(self):
        """get_tx_url returns None when no explorer configured."""
        assert endpoint().get_tx_url("0xabcd1234") is None

    def test_get_tx_url_strips_trailing_slash(self):
        """get_tx_url handles trailing slash in explorer URL."""
        ep = endpoint("https://explorer.example.com/")

        assert ep.get_tx_url("0xabcd1234") == "https://explorer.example.com/tx/0xabcd1234"

    def test_explorer_address_url(self):
        """explorer_address_url links to the address page."""
        address = "0x742d35Cc6634C0532925a3b844Bc9e7595f8fE00"

        assert (
            explorer_address_url("https://explorer.example.com/", address)
            == f"https://explorer.example.com/address/{address}"
        )
        assert explorer_address_url(None, address) is None

    def test_immutable(self):
        """Endpoints are replaced, never mutated."""
        ep = endpoint()

        with pytest.raises(AttributeError):
            ep.rpc_endpoint = "http://other:8545"


class TestOpenEndpoint:
    """Tests for open_endpoint."""

    @pytest.mark.asyncio
    async def test_discovers_identity(self):
        """Network and chain IDs come from the node."""
        gateway = make_gateway(network_id=7, chain_id=8)
        factory = MagicMock(return_value=gateway)

        ep = await open_endpoint(NODE_A, factory, "https://explorer.example.com")

        factory.assert_called_once_with(NODE_A)
        assert ep.gateway is gateway
        assert ep.network_id == 7
        assert ep.chain_id == 8
        assert ep.block_explorer_url == "https://explorer.example.com"

    @pytest.mark.asyncio
    async def test_unreachable(self):
        """A node that does not answer is reported as unreachable."""
        gateway = make_gateway()
        gateway.network_identity.side_effect = ConnectionError("refused")

        with pytest.raises(UpstreamUnreachableError, match="refused"):
            await open_endpoint(NODE_A, MagicMock(return_value=gateway))
