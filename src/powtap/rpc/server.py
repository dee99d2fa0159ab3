"""JSON-RPC server for the powtap faucet.

Methods:
- faucetAddress: address funds are sent from
- challenge: current salt and difficulty
- solveChallenge: submit a solution and receive a transfer
- updateUpstream: switch upstream node (admin token required)

Byte fields (salt, solution) travel as base64 strings.
"""

import base64
import logging
import uuid
from collections.abc import Awaitable, Callable

from aiohttp import web

from powtap.core.controller import ChallengeController
from powtap.errors import FaucetError
from powtap.faucet.admin import AdminReconfigurator
from powtap.faucet.guard import DisbursementGuard, validate_address
from powtap.observability.health import HealthRoutes
from powtap.observability.logging import clear_request_id, set_request_id
from powtap.observability.metrics import RPC_DURATION

logger = logging.getLogger(__name__)

JSONRPC_VERSION = "2.0"

# JSON-RPC error codes
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
SERVER_ERROR = -32000


class InvalidParamsError(ValueError):
    """Request parameters are missing or malformed."""


def _require(params: dict, key: str) -> str:
    value = params.get(key)
    if not isinstance(value, str):
        raise InvalidParamsError(f"Invalid params: {key} is required")
    return value


def _decode_bytes(params: dict, key: str) -> bytes:
    value = _require(params, key)
    try:
        return base64.b64decode(value, validate=True)
    except ValueError:
        raise InvalidParamsError(f"Invalid params: {key} must be base64") from None


class FaucetRPCServer:
    """HTTP server exposing the faucet over JSON-RPC.

    Parameters
    ----------
    controller : ChallengeController
        Source of challenges.
    guard : DisbursementGuard
        Pays out solved challenges.
    admin : AdminReconfigurator
        Handles upstream updates.
    faucet_address : str
        Address funds are sent from.
    health : HealthRoutes | None
        Health and metrics routes mounted on the same app.
    host : str
        Host to bind to.
    port : int
        Port to bind to.
    """

    def __init__(
        self,
        controller: ChallengeController,
        guard: DisbursementGuard,
        admin: AdminReconfigurator,
        faucet_address: str,
        health: HealthRoutes | None = None,
        host: str = "0.0.0.0",  # noqa: S104
        port: int = 10591,
    ):
        self._controller = controller
        self._guard = guard
        self._admin = admin
        self._faucet_address = faucet_address
        self._health = health or HealthRoutes()
        self._host = host
        self._port = port
        self._runner: web.AppRunner | None = None
        self._methods: dict[str, Callable[[dict], Awaitable[dict]]] = {
            "faucetAddress": self._faucet_address_method,
            "challenge": self._challenge_method,
            "solveChallenge": self._solve_challenge_method,
            "updateUpstream": self._update_upstream_method,
        }

    def create_app(self) -> web.Application:
        """Build the aiohttp application."""
        app = web.Application()
        app.router.add_post("/", self._handle_http)
        self._health.register(app)
        return app

    async def start(self) -> None:
        """Start serving."""
        self._runner = web.AppRunner(self.create_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._host, self._port)
        await site.start()
        logger.info("RPC server started", extra={"host": self._host, "port": self._port})

    async def stop(self) -> None:
        """Stop serving."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            logger.info("RPC server stopped")

    async def _handle_http(self, request: web.Request) -> web.Response:
        try:
            body = await request.json()
        except ValueError:
            logger.error("Failed to unmarshal JSON-RPC request")
            return web.Response(status=400, text="invalid JSON-RPC request")
        if not isinstance(body, dict) or not isinstance(body.get("method"), str):
            return web.Response(status=400, text="invalid JSON-RPC request")

        return web.json_response(await self.handle_request(body))

    async def handle_request(self, req: dict) -> dict:
        """Dispatch one JSON-RPC request.

        Parameters
        ----------
        req : dict
            Decoded request object.

        Returns
        -------
        dict
            JSON-RPC response object.
        """
        req_id = req.get("id")
        method = req.get("method")
        params = req.get("params")
        if params is None or params == []:
            params = {}

        set_request_id(str(req_id) if req_id is not None else uuid.uuid4().hex)
        try:
            handler = self._methods.get(method)
            if handler is None:
                return _error(req_id, METHOD_NOT_FOUND, "Method not found")
            if not isinstance(params, dict):
                return _error(req_id, INVALID_PARAMS, "Invalid params")

            with RPC_DURATION.labels(method=method).time():
                result = await handler(params)
            return {"jsonrpc": JSONRPC_VERSION, "result": result, "id": req_id}
        except InvalidParamsError as e:
            return _error(req_id, INVALID_PARAMS, str(e))
        except FaucetError as e:
            return _error(req_id, SERVER_ERROR, e.message, {"kind": e.kind.value})
        except Exception:
            logger.exception("Unhandled error in RPC method", extra={"method": method})
            return _error(req_id, INTERNAL_ERROR, "Internal error")
        finally:
            clear_request_id()

    async def _faucet_address_method(self, _params: dict) -> dict:
        return {"address": self._faucet_address}

    async def _challenge_method(self, _params: dict) -> dict:
        challenge = await self._controller.current_challenge()
        return {
            "salt": base64.b64encode(challenge.salt).decode(),
            "difficulty": challenge.difficulty,
        }

    async def _solve_challenge_method(self, params: dict) -> dict:
        address = _require(params, "address")
        if not validate_address(address):
            raise InvalidParamsError("Invalid address")
        salt = _decode_bytes(params, "salt")
        solution = _decode_bytes(params, "solution")

        disbursement = await self._guard.solve(address, salt, solution)
        return {"txID": disbursement.tx_id, "amount": str(disbursement.amount)}

    async def _update_upstream_method(self, params: dict) -> dict:
        admin_token = _require(params, "adminToken")
        upstream_url = _require(params, "upstreamUrl")
        await self._admin.update_upstream(admin_token, upstream_url)
        return {"success": True}


def _error(req_id, code: int, message: str, data: dict | None = None) -> dict:
    error = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": JSONRPC_VERSION, "error": error, "id": req_id}
