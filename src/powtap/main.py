#!/usr/bin/env python3
"""powtap - proof-of-work gated testnet faucet.

Entry point for the powtap service.
"""

import asyncio
import logging
import os
import signal
import sys
import tempfile
from pathlib import Path

from eth_account import Account

from powtap.blockchain.client import AutonityGateway
from powtap.blockchain.networks import open_endpoint
from powtap.cli import create_parser, run_cli
from powtap.config import PowtapConfig
from powtap.core.controller import ChallengeController
from powtap.core.wallet import EnvironmentWallet
from powtap.errors import FaucetError
from powtap.faucet import (
    AdminReconfigurator,
    DisbursementGuard,
    LedgerCheck,
    TransactionLedger,
    UpstreamCheck,
)
from powtap.observability.health import HealthRoutes
from powtap.observability.logging import configure_logging
from powtap.observability.metrics import FAUCET_BALANCE
from powtap.rpc.server import FaucetRPCServer


def generate_wallet(output_path: str) -> None:
    """Generate a new wallet and save the private key to a file.

    Parameters
    ----------
    output_path : str
        Path to save the private key file.
    """
    account = Account.create()

    # Temp file in the target directory so the rename stays on one filesystem
    key_path = Path(output_path)
    key_path.parent.mkdir(parents=True, exist_ok=True)

    fd, temp_path = tempfile.mkstemp(dir=key_path.parent, prefix=".powtap-key-")
    fd_closed = False
    try:
        os.fchmod(fd, 0o600)
        os.write(fd, account.key.hex().encode())
        os.close(fd)
        fd_closed = True
        os.rename(temp_path, key_path)
    except Exception:
        if not fd_closed:
            os.close(fd)
        Path(temp_path).unlink(missing_ok=True)
        raise

    print(f"""
Wallet generated successfully!

  Address:     {account.address}
  Private Key: {key_path.absolute()}

Next steps:

  1. Fund this address on your target network. It pays both the dispensed
     amount and the network fee of every transfer.

  2. Launch powtap with this wallet:

     # Recommended: Use the file path directly (more secure)
     export POWTAP_WALLET_PRIVATE_KEY_FILE={key_path.absolute()}
     powtap run

     # Alternative: Via environment variable
     # WARNING: This may expose your private key in shell history or process list!
     export POWTAP_WALLET_PRIVATE_KEY=$(cat {key_path})
     powtap run

  3. For Kubernetes deployment, create a secret:

     kubectl create secret generic powtap-wallet \\
       --from-file=private-key={key_path.absolute()}

     Then mount as POWTAP_WALLET_PRIVATE_KEY_FILE=/secrets/private-key

IMPORTANT: Keep this private key secure. Anyone with access can control the wallet.
""")


def parse_args():
    """Parse command line arguments."""
    return create_parser().parse_args()


async def run_service() -> None:
    """Run the powtap service (long-running mode).

    Wires up and starts all service components:
    - Wallet and upstream endpoint (AutonityGateway)
    - TransactionLedger for completed disbursements
    - ChallengeController with its rotation timer
    - DisbursementGuard and AdminReconfigurator
    - FaucetRPCServer with health and metrics routes
    """
    config = PowtapConfig()
    configure_logging(level=config.log_level, log_format=config.log_format)

    logger = logging.getLogger(__name__)
    logger.info("powtap starting")
    logger.info("RPC endpoint: %s", config.rpc_endpoint)
    logger.info("Dispensing %s %s per solution", config.amount, config.asset.value.upper())

    if config.wallet_private_key and config.wallet_private_key_file:
        logger.warning(
            "Both POWTAP_WALLET_PRIVATE_KEY and POWTAP_WALLET_PRIVATE_KEY_FILE set; "
            "using POWTAP_WALLET_PRIVATE_KEY"
        )
    try:
        wallet = EnvironmentWallet.from_config(config)
    except ValueError as e:
        logger.error(str(e))
        sys.exit(1)
    logger.info("Wallet loaded: %s", wallet.address)

    def gateway_factory(rpc_endpoint: str) -> AutonityGateway:
        return AutonityGateway(rpc_endpoint, wallet, config.asset)

    try:
        endpoint = await open_endpoint(
            config.rpc_endpoint, gateway_factory, config.block_explorer_url
        )
    except FaucetError as e:
        logger.error("Cannot start without an upstream: %s", e.message)
        sys.exit(1)

    ledger = TransactionLedger(redis_url=config.redis_url)
    logger.info("Transaction ledger initialized (persistent: %s)", ledger.persistent)

    controller = ChallengeController(
        endpoint,
        start_difficulty=config.start_difficulty,
        solutions_per_salt=config.solutions_per_salt,
        target_duration_per_salt=config.target_duration_per_salt,
    )
    guard = DisbursementGuard(
        controller,
        ledger,
        faucet_address=wallet.address,
        amount=config.amount,
        asset=config.asset,
    )
    admin = AdminReconfigurator(
        controller,
        gateway_factory,
        admin_token=config.admin_token,
        faucet_address=wallet.address,
        asset=config.asset,
    )
    if config.admin_token is None:
        logger.warning("POWTAP_ADMIN_TOKEN not set; updateUpstream is disabled")

    health = HealthRoutes([UpstreamCheck(controller), LedgerCheck(ledger)])
    server = FaucetRPCServer(
        controller,
        guard,
        admin,
        faucet_address=wallet.address,
        health=health,
        host=config.http_host,
        port=config.http_port,
    )

    try:
        balance = await asyncio.to_thread(
            endpoint.gateway.balance, wallet.address, config.asset
        )
        FAUCET_BALANCE.labels(asset=config.asset.value).set(float(balance))
        logger.info(
            "Faucet initialized",
            extra={
                "address": wallet.address,
                "network_id": endpoint.network_id,
                "chain_id": endpoint.chain_id,
                "balance": str(balance),
            },
        )
    except Exception as e:
        logger.warning("Could not fetch faucet balance: %s", e)

    # Create shutdown event
    shutdown_event = asyncio.Event()

    # Use asyncio signal handlers for event-loop-safe signal handling
    loop = asyncio.get_running_loop()

    def on_shutdown_signal(sig_name: str) -> None:
        logger.info("Received signal %s, initiating shutdown", sig_name)
        shutdown_event.set()

    loop.add_signal_handler(signal.SIGTERM, lambda: on_shutdown_signal("SIGTERM"))
    loop.add_signal_handler(signal.SIGINT, lambda: on_shutdown_signal("SIGINT"))

    await controller.start()
    await server.start()
    logger.info("powtap service ready on %s:%d", config.http_host, config.http_port)

    # Wait for shutdown signal
    await shutdown_event.wait()

    # Graceful shutdown
    logger.info("powtap shutting down...")
    await server.stop()
    await controller.stop()
    ledger.close()
    logger.info("powtap shutdown complete")


def main() -> None:
    """Main entry point for powtap."""
    args = parse_args()

    if args.generate_wallet:
        generate_wallet(args.generate_wallet)
        return

    # CLI subcommands manage their own event loops
    if args.command and args.command != "run":
        exit_code = run_cli(args)
        if exit_code >= 0:
            sys.exit(exit_code)
        # exit_code < 0 means show help
        create_parser().print_help()
        sys.exit(0)

    # No subcommand or "run" - start service
    asyncio.run(run_service())


if __name__ == "__main__":
    main()
