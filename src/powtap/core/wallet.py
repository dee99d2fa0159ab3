"""Faucet signing wallet."""

from abc import ABC, abstractmethod
from pathlib import Path

from eth_account import Account
from eth_account.signers.local import LocalAccount
from pydantic import SecretStr

from powtap.config import PowtapConfig


class WalletProvider(ABC):
    """Abstract wallet provider for signing faucet transfers."""

    @abstractmethod
    def get_account(self) -> LocalAccount:
        """Get the account that signs faucet transfers."""
        ...

    @property
    def address(self) -> str:
        """Checksummed address the faucet dispenses from."""
        return self.get_account().address


class EnvironmentWallet(WalletProvider):
    """Load the faucet key from an environment variable or a file.

    Parameters
    ----------
    private_key : SecretStr, optional
        The private key as a SecretStr (from env var).
    private_key_file : str, optional
        Path to a file containing the private key.

    Raises
    ------
    ValueError
        If neither private_key nor private_key_file is provided.
    FileNotFoundError
        If private_key_file does not exist.
    """

    def __init__(
        self,
        private_key: SecretStr | None = None,
        private_key_file: str | None = None,
    ):
        if private_key is not None:
            self._account = Account.from_key(private_key.get_secret_value())
        elif private_key_file is not None:
            key_path = Path(private_key_file).expanduser()
            if not key_path.exists():
                raise FileNotFoundError(f"Private key file not found: {private_key_file}")
            self._account = Account.from_key(key_path.read_text().strip())
        else:
            raise ValueError("Either private_key or private_key_file must be provided")

    @classmethod
    def from_config(cls, config: PowtapConfig) -> "EnvironmentWallet":
        """Build the wallet from service configuration.

        The inline key wins when both the key and the key file are set.

        Raises
        ------
        ValueError
            If no key is configured.
        """
        if config.wallet_private_key:
            return cls(private_key=config.wallet_private_key)
        if config.wallet_private_key_file:
            return cls(private_key_file=config.wallet_private_key_file)
        raise ValueError(
            "No wallet configured. "
            "Set POWTAP_WALLET_PRIVATE_KEY or POWTAP_WALLET_PRIVATE_KEY_FILE"
        )

    def get_account(self) -> LocalAccount:
        return self._account
