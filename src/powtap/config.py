"""Configuration management for powtap using Pydantic Settings."""

from decimal import Decimal
from enum import Enum

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DispenseAsset(str, Enum):
    """Asset the faucet dispenses and checks its balance in."""

    ATN = "atn"
    NTN = "ntn"


class PowtapConfig(BaseSettings):
    """powtap service configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        frozen=True,
    )

    # Network
    rpc_endpoint: str = Field(alias="POWTAP_RPC_ENDPOINT")
    block_explorer_url: str | None = Field(default=None, alias="POWTAP_BLOCK_EXPLORER_URL")

    # Wallet
    wallet_private_key: SecretStr | None = Field(default=None, alias="POWTAP_WALLET_PRIVATE_KEY")
    wallet_private_key_file: str | None = Field(
        default=None, alias="POWTAP_WALLET_PRIVATE_KEY_FILE"
    )

    # JSON-RPC server
    http_host: str = Field(default="0.0.0.0", alias="POWTAP_HTTP_HOST")  # noqa: S104
    http_port: int = Field(default=10591, alias="POWTAP_HTTP_PORT", ge=1, le=65535)

    # Faucet
    asset: DispenseAsset = Field(default=DispenseAsset.ATN, alias="POWTAP_ASSET")
    amount: Decimal = Field(default=Decimal("1"), alias="POWTAP_AMOUNT", gt=0)
    start_difficulty: int = Field(default=25, alias="POWTAP_START_DIFFICULTY", ge=0, le=256)
    solutions_per_salt: int = Field(default=10, alias="POWTAP_SOLUTIONS_PER_SALT", gt=0)
    target_duration_per_salt: int = Field(
        default=300, alias="POWTAP_TARGET_DURATION_PER_SALT", gt=0
    )

    # Admin
    admin_token: SecretStr | None = Field(default=None, alias="POWTAP_ADMIN_TOKEN")

    # Redis
    redis_url: str = Field(default="redis://localhost:6379", alias="REDIS_URL")

    # Observability
    log_level: str = Field(default="INFO", alias="POWTAP_LOG_LEVEL")
    log_format: str = Field(default="json", alias="POWTAP_LOG_FORMAT")

    @field_validator("admin_token", mode="before")
    @classmethod
    def _empty_token_disables_admin(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value
