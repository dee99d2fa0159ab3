"""CLI subcommands for powtap operations.

Provides command-line interface for:
- Wallet operations (address, balance)
- Client operations against a running faucet (challenge, solve, update-upstream)
- Ledger inspection (list, get)
"""

import argparse
import base64
import asyncio
import json
import os
import secrets
import sys
import time
from decimal import Decimal

from powtap.blockchain.client import AutonityGateway
from powtap.blockchain.networks import explorer_address_url, explorer_tx_url
from powtap.config import DispenseAsset, PowtapConfig
from powtap.core.pow_utils import search
from powtap.core.wallet import EnvironmentWallet
from powtap.faucet.guard import validate_address
from powtap.faucet.ledger import TransactionLedger
from powtap.rpc.client import FaucetClient, RPCError

DEFAULT_FAUCET_URL = "http://localhost:10591"


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return number


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="powtap",
        description="powtap - proof-of-work gated testnet faucet",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    # Global flags
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output in JSON format",
    )
    parser.add_argument(
        "--url",
        default=os.environ.get("POWTAP_FAUCET_URL", DEFAULT_FAUCET_URL),
        help=f"Faucet JSON-RPC URL for client commands (default: {DEFAULT_FAUCET_URL})",
    )
    parser.add_argument(
        "--explorer-url",
        default=os.environ.get("POWTAP_BLOCK_EXPLORER_URL"),
        help="Block explorer URL for transaction links (default: POWTAP_BLOCK_EXPLORER_URL)",
    )
    parser.add_argument(
        "--generate-wallet",
        metavar="FILE",
        help="Generate a new wallet and save private key to FILE, then exit",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Run subcommand (start service)
    subparsers.add_parser("run", help="Start the faucet service")

    # Wallet subcommand
    wallet_parser = subparsers.add_parser("wallet", help="Wallet operations")
    wallet_sub = wallet_parser.add_subparsers(dest="wallet_command")
    wallet_sub.add_parser("address", help="Show faucet wallet address")
    wallet_sub.add_parser("balance", help="Show faucet ATN and NTN balances")

    # Client subcommands
    subparsers.add_parser("challenge", help="Fetch the current challenge")

    solve_parser = subparsers.add_parser("solve", help="Solve a challenge and claim funds")
    solve_parser.add_argument("address", type=str, help="Recipient address")

    update_parser = subparsers.add_parser("update-upstream", help="Switch the faucet upstream")
    update_parser.add_argument("upstream_url", type=str, help="New upstream RPC URL")
    update_parser.add_argument(
        "--admin-token",
        default=None,
        help="Admin token (default: POWTAP_ADMIN_TOKEN)",
    )

    # Ledger subcommand
    ledger_parser = subparsers.add_parser("ledger", help="Inspect recorded disbursements")
    ledger_sub = ledger_parser.add_subparsers(dest="ledger_command")
    list_parser = ledger_sub.add_parser("list", help="List recorded disbursements")
    list_parser.add_argument(
        "--limit", type=_positive_int, default=None, help="Show the N most recent"
    )
    get_parser = ledger_sub.add_parser("get", help="Show one disbursement")
    get_parser.add_argument("tx_id", type=str, help="Transaction hash")

    return parser


class CLIContext:
    """Shared context for CLI commands."""

    def __init__(
        self,
        config: PowtapConfig | None = None,
        url: str = DEFAULT_FAUCET_URL,
        explorer_url: str | None = None,
        json_output: bool = False,
    ):
        self._config = config
        self.url = url
        self.explorer_url = explorer_url
        self.json_output = json_output
        self._wallet: EnvironmentWallet | None = None
        self._gateway: AutonityGateway | None = None

    @property
    def config(self) -> PowtapConfig:
        """Get service config (lazy loaded; client commands do not need it)."""
        if self._config is None:
            self._config = PowtapConfig()
        return self._config

    @property
    def wallet(self) -> EnvironmentWallet:
        """Get wallet (lazy loaded)."""
        if self._wallet is None:
            self._wallet = EnvironmentWallet.from_config(self.config)
        return self._wallet

    @property
    def gateway(self) -> AutonityGateway:
        """Get chain gateway (lazy loaded)."""
        if self._gateway is None:
            self._gateway = AutonityGateway(
                self.config.rpc_endpoint, self.wallet, self.config.asset
            )
        return self._gateway

    def output(self, data: dict) -> None:
        """Output data in the appropriate format."""
        if self.json_output:

            def decimal_default(obj):
                if isinstance(obj, Decimal):
                    return str(obj)
                raise TypeError(f"Object of type {type(obj)} is not JSON serializable")

            print(json.dumps(data, default=decimal_default, indent=2))
        else:
            self._print_formatted(data)

    def _print_formatted(self, data: dict, indent: int = 0) -> None:
        """Print data in human-readable format."""
        prefix = "  " * indent
        for key, value in data.items():
            if isinstance(value, dict):
                print(f"{prefix}{key}:")
                self._print_formatted(value, indent + 1)
            elif isinstance(value, list):
                print(f"{prefix}{key}:")
                for item in value:
                    self._print_formatted(item, indent + 1)
                    print()
            else:
                print(f"{prefix}{key}: {value}")


def _rpc_error(e: RPCError) -> dict:
    data = {"error": e.message}
    if e.kind:
        data["kind"] = e.kind
    return data


# Wallet commands


def cmd_wallet_address(ctx: CLIContext) -> int:
    """Show wallet address."""
    try:
        data = {"address": ctx.wallet.address}
        explorer = explorer_address_url(ctx.config.block_explorer_url, ctx.wallet.address)
        if explorer:
            data["explorer"] = explorer
        ctx.output(data)
        return 0
    except Exception as e:
        ctx.output({"error": str(e)})
        return 1


def cmd_wallet_balance(ctx: CLIContext) -> int:
    """Show wallet balances."""
    try:
        if not ctx.gateway.connected:
            ctx.output({"error": "Not connected to RPC endpoint"})
            return 1

        identity = ctx.gateway.network_identity()
        ctx.output(
            {
                "address": ctx.wallet.address,
                "atn": ctx.gateway.balance(ctx.wallet.address, DispenseAsset.ATN),
                "ntn": ctx.gateway.balance(ctx.wallet.address, DispenseAsset.NTN),
                "dispensing": ctx.config.asset.value,
                "rpc": ctx.config.rpc_endpoint,
                "network_id": identity.network_id,
                "chain_id": identity.chain_id,
            }
        )
        return 0
    except Exception as e:
        ctx.output({"error": str(e)})
        return 1


# Client commands


def cmd_challenge(ctx: CLIContext) -> int:
    """Fetch the current challenge from a running faucet."""

    async def fetch():
        async with FaucetClient(ctx.url) as client:
            return await client.challenge()

    try:
        challenge = asyncio.run(fetch())
        ctx.output(
            {
                "salt": base64.b64encode(challenge.salt).decode(),
                "difficulty": challenge.difficulty,
            }
        )
        return 0
    except RPCError as e:
        ctx.output(_rpc_error(e))
        return 1
    except Exception as e:
        ctx.output({"error": str(e)})
        return 1


def cmd_solve(ctx: CLIContext, address: str) -> int:
    """Fetch a challenge, solve it locally and claim funds."""
    if not validate_address(address):
        ctx.output({"error": f"Invalid address format: {address}"})
        return 1

    async def claim():
        async with FaucetClient(ctx.url) as client:
            challenge = await client.challenge()
            started = time.monotonic()
            # Random offset so concurrent solvers do not find the same solution
            solution = await asyncio.to_thread(
                search, challenge.salt, challenge.difficulty, secrets.randbits(48)
            )
            elapsed = time.monotonic() - started
            tx_id, amount = await client.solve_challenge(address, challenge.salt, solution)
            return challenge.difficulty, elapsed, tx_id, amount

    try:
        difficulty, elapsed, tx_id, amount = asyncio.run(claim())
        data = {
            "success": True,
            "recipient": address,
            "difficulty": difficulty,
            "solve_seconds": round(elapsed, 2),
            "tx_hash": tx_id,
            "amount": amount,
        }
        tx_url = explorer_tx_url(ctx.explorer_url, tx_id)
        if tx_url:
            data["tx_url"] = tx_url
        ctx.output(data)
        return 0
    except RPCError as e:
        ctx.output(_rpc_error(e))
        return 1
    except Exception as e:
        ctx.output({"error": str(e)})
        return 1


def cmd_update_upstream(ctx: CLIContext, upstream_url: str, admin_token: str | None) -> int:
    """Point a running faucet at a new upstream node."""
    token = admin_token or os.environ.get("POWTAP_ADMIN_TOKEN")
    if not token:
        ctx.output({"error": "No admin token. Pass --admin-token or set POWTAP_ADMIN_TOKEN"})
        return 1

    async def update():
        async with FaucetClient(ctx.url) as client:
            return await client.update_upstream(token, upstream_url)

    try:
        success = asyncio.run(update())
        ctx.output({"success": success, "upstream": upstream_url})
        return 0 if success else 1
    except RPCError as e:
        ctx.output(_rpc_error(e))
        return 1
    except Exception as e:
        ctx.output({"error": str(e)})
        return 1


# Ledger commands


def cmd_ledger_list(ctx: CLIContext, limit: int | None) -> int:
    """List recorded disbursements."""
    try:
        ledger = TransactionLedger(ctx.config.redis_url)
        try:
            records = asyncio.run(ledger.list_records(limit))
        finally:
            ledger.close()
        ctx.output({"transactions": [r.to_dict() for r in records]})
        return 0
    except Exception as e:
        ctx.output({"error": str(e)})
        return 1


def cmd_ledger_get(ctx: CLIContext, tx_id: str) -> int:
    """Show one recorded disbursement."""
    try:
        ledger = TransactionLedger(ctx.config.redis_url)
        try:
            record = asyncio.run(ledger.get(tx_id))
        finally:
            ledger.close()
        if record is None:
            ctx.output({"error": f"No transaction found with txID: {tx_id}"})
            return 1
        ctx.output(record.to_dict())
        return 0
    except Exception as e:
        ctx.output({"error": str(e)})
        return 1


def run_cli(args: argparse.Namespace) -> int:
    """Execute CLI command based on parsed arguments.

    Returns
    -------
    int
        Exit code: 0 for success, positive for error, -1 signals caller
        to show help (no CLI command specified).
    """
    ctx = CLIContext(url=args.url, explorer_url=args.explorer_url, json_output=args.json)

    if args.command == "wallet":
        if args.wallet_command == "address":
            return cmd_wallet_address(ctx)
        elif args.wallet_command == "balance":
            return cmd_wallet_balance(ctx)
        else:
            print("Usage: powtap wallet [address|balance]", file=sys.stderr)
            return 1

    elif args.command == "challenge":
        return cmd_challenge(ctx)

    elif args.command == "solve":
        return cmd_solve(ctx, args.address)

    elif args.command == "update-upstream":
        return cmd_update_upstream(ctx, args.upstream_url, args.admin_token)

    elif args.command == "ledger":
        if args.ledger_command == "list":
            return cmd_ledger_list(ctx, args.limit)
        elif args.ledger_command == "get":
            return cmd_ledger_get(ctx, args.tx_id)
        else:
            print("Usage: powtap ledger [list|get]", file=sys.stderr)
            return 1

    return -1
