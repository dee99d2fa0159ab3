"""Autonity gateway for powtap operations."""

import logging
from decimal import Decimal

from autonity import Autonity
from web3 import Web3

from powtap.config import DispenseAsset
from powtap.core.wallet import WalletProvider

from .gateway import ChainGateway, NetworkIdentity, PreparedTransfer

logger = logging.getLogger(__name__)

NATIVE_TRANSFER_GAS = 21000
TOKEN_TRANSFER_GAS = 100000


class AutonityGateway(ChainGateway):
    """ChainGateway backed by web3.py and autonity.py.

    Parameters
    ----------
    rpc_endpoint : str
        The Autonity RPC endpoint URL.
    wallet : WalletProvider
        The wallet provider for signing transactions.
    asset : DispenseAsset
        Asset moved by ``build_transfer``.
    """

    def __init__(
        self,
        rpc_endpoint: str,
        wallet: WalletProvider,
        asset: DispenseAsset = DispenseAsset.ATN,
    ):
        self._w3 = Web3(Web3.HTTPProvider(rpc_endpoint))
        self._wallet = wallet
        self._asset = asset
        self._autonity = Autonity(self._w3)

    @property
    def connected(self) -> bool:
        """Check if connected to the RPC endpoint."""
        return self._w3.is_connected()

    def network_identity(self) -> NetworkIdentity:
        """Fetch network and chain IDs from the node.

        Returns
        -------
        NetworkIdentity
            The network ID (``net_version``) and chain ID (``eth_chainId``).
        """
        return NetworkIdentity(
            network_id=int(self._w3.net.version),
            chain_id=self._w3.eth.chain_id,
        )

    def balance(self, address: str, asset: DispenseAsset) -> Decimal:
        """Get ATN (native coin) or NTN (Newton token) balance.

        Parameters
        ----------
        address : str
            The address to query.
        asset : DispenseAsset
            Which balance to read.

        Returns
        -------
        Decimal
            Balance in ether units.
        """
        checksum_address = Web3.to_checksum_address(address)
        if asset == DispenseAsset.NTN:
            raw = self._autonity.balance_of(checksum_address)
        else:
            raw = self._w3.eth.get_balance(checksum_address)
        return Decimal(str(self._w3.from_wei(raw, "ether")))

    def build_transfer(self, destination: str, amount: Decimal) -> PreparedTransfer:
        """Build and sign a transfer of the configured asset.

        Parameters
        ----------
        destination : str
            The recipient address.
        amount : Decimal
            Amount to transfer in ether units.

        Returns
        -------
        PreparedTransfer
            Signed transaction ready for submission.
        """
        checksum_to = Web3.to_checksum_address(destination)
        amount_wei = self._w3.to_wei(amount, "ether")
        gas_price = self._w3.eth.gas_price
        base = {
            "gasPrice": gas_price,
            "nonce": self._w3.eth.get_transaction_count(self._wallet.address),
            "chainId": self._w3.eth.chain_id,
        }

        if self._asset == DispenseAsset.NTN:
            gas = TOKEN_TRANSFER_GAS
            tx = self._autonity.transfer(checksum_to, amount_wei).build_transaction(
                {"from": self._wallet.address, "gas": gas, **base}
            )
        else:
            gas = NATIVE_TRANSFER_GAS
            tx = {"to": checksum_to, "value": amount_wei, "gas": gas, **base}

        signed = self._wallet.get_account().sign_transaction(tx)
        tx_id = Web3.to_hex(signed.hash)
        fee = Decimal(str(self._w3.from_wei(gas * gas_price, "ether")))

        def submit() -> None:
            self._w3.eth.send_raw_transaction(signed.raw_transaction)
            logger.info(
                "Transfer submitted",
                extra={
                    "tx_hash": tx_id,
                    "to": checksum_to,
                    "amount": str(amount),
                    "asset": self._asset.value,
                },
            )

        return PreparedTransfer(tx_id=tx_id, fee=fee, submit=submit)
