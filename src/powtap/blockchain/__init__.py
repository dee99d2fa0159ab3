"""Blockchain interaction layer for powtap."""

from .client import AutonityGateway
from .gateway import ChainGateway, GatewayFactory, NetworkIdentity, PreparedTransfer
from .networks import ChainEndpoint, open_endpoint

__all__ = [
    "AutonityGateway",
    "ChainEndpoint",
    "ChainGateway",
    "GatewayFactory",
    "NetworkIdentity",
    "PreparedTransfer",
    "open_endpoint",
]
