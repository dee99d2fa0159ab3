"""Chain gateway capability consumed by the faucet core."""

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal

from powtap.config import DispenseAsset


@dataclass(frozen=True)
class NetworkIdentity:
    """Identifiers fetched from an upstream node at connection time."""

    network_id: int
    chain_id: int


@dataclass(frozen=True)
class PreparedTransfer:
    """A signed transfer that has not been broadcast yet.

    Attributes
    ----------
    tx_id : str
        Transaction hash, known before submission.
    fee : Decimal
        Maximum fee the transaction may consume, in native coin units.
    submit : Callable[[], None]
        Broadcasts the transaction. Raises on transport failure.
    """

    tx_id: str
    fee: Decimal
    submit: Callable[[], None]


class ChainGateway(ABC):
    """Narrow view of the upstream chain used by the faucet."""

    @property
    @abstractmethod
    def connected(self) -> bool:
        """Whether the upstream node answers."""
        ...

    @abstractmethod
    def network_identity(self) -> NetworkIdentity:
        """Fetch the network and chain identifiers.

        Returns
        -------
        NetworkIdentity
            Identifiers reported by the node.
        """
        ...

    @abstractmethod
    def balance(self, address: str, asset: DispenseAsset) -> Decimal:
        """Get the balance of ``address`` in ``asset`` units.

        Parameters
        ----------
        address : str
            Account to query.
        asset : DispenseAsset
            Asset denomination.

        Returns
        -------
        Decimal
            Balance in whole token units.
        """
        ...

    @abstractmethod
    def build_transfer(self, destination: str, amount: Decimal) -> PreparedTransfer:
        """Build and sign a single transfer of ``amount`` to ``destination``.

        Parameters
        ----------
        destination : str
            Recipient address.
        amount : Decimal
            Amount in whole token units of the gateway's asset.

        Returns
        -------
        PreparedTransfer
            The signed transaction, its hash and fee.
        """
        ...


GatewayFactory = Callable[[str], ChainGateway]
