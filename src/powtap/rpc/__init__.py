"""JSON-RPC surface for powtap."""

from .client import FaucetClient, RPCError
from .server import FaucetRPCServer

__all__ = [
    "FaucetClient",
    "FaucetRPCServer",
    "RPCError",
]
