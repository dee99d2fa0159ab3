"""JSON-RPC client for a powtap faucet."""

import base64
import itertools
from decimal import Decimal

import aiohttp

from powtap.core.controller import Challenge


class RPCError(Exception):
    """Error object returned by the faucet.

    Parameters
    ----------
    code : int
        JSON-RPC error code.
    message : str
        Error message.
    data : dict | None
        Extra error data; faucet errors carry a ``kind``.
    """

    def __init__(self, code: int, message: str, data: dict | None = None):
        super().__init__(f"{message} (code {code})")
        self.code = code
        self.message = message
        self.data = data or {}

    @property
    def kind(self) -> str | None:
        """Faucet error kind, if the server reported one."""
        return self.data.get("kind")


class FaucetClient:
    """Talks to a faucet's JSON-RPC endpoint.

    Parameters
    ----------
    url : str
        Faucet URL.
    timeout : float
        Per-request timeout in seconds.
    """

    def __init__(self, url: str, timeout: float = 30):
        self._url = url
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: aiohttp.ClientSession | None = None
        self._ids = itertools.count(1)

    async def __aenter__(self) -> "FaucetClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    async def _call(self, method: str, params: dict | None = None) -> dict:
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)

        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params or {},
            "id": next(self._ids),
        }
        async with self._session.post(self._url, json=payload) as resp:
            resp.raise_for_status()
            body = await resp.json()

        if body.get("error"):
            error = body["error"]
            raise RPCError(error["code"], error["message"], error.get("data"))
        return body["result"]

    async def faucet_address(self) -> str:
        """Get the faucet's sending address."""
        result = await self._call("faucetAddress")
        return result["address"]

    async def challenge(self) -> Challenge:
        """Get the current challenge."""
        result = await self._call("challenge")
        return Challenge(salt=base64.b64decode(result["salt"]), difficulty=result["difficulty"])

    async def solve_challenge(
        self, address: str, salt: bytes, solution: bytes
    ) -> tuple[str, Decimal]:
        """Submit a solution.

        Returns
        -------
        tuple[str, Decimal]
            Transaction hash and amount sent.
        """
        result = await self._call(
            "solveChallenge",
            {
                "address": address,
                "salt": base64.b64encode(salt).decode(),
                "solution": base64.b64encode(solution).decode(),
            },
        )
        return result["txID"], Decimal(result["amount"])

    async def update_upstream(self, admin_token: str, upstream_url: str) -> bool:
        """Point the faucet at a new upstream node."""
        result = await self._call(
            "updateUpstream",
            {"adminToken": admin_token, "upstreamUrl": upstream_url},
        )
        return bool(result["success"])
