"""SDK configuration.

Values resolve in this order, first match wins: keyword arguments (the CLI
passes its flags this way), ``CURVANCE_*`` environment variables, a ``.env``
file, then a TOML config file. Secrets are never read from the TOML file.
"""

from __future__ import annotations

import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any

import tomllib

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from .constants import (
    DEFAULT_MAINNET_RPC_URL,
    DEFAULT_REFERRAL_ADDRESS,
    DEFAULT_TESTNET_RPC_URL,
    KURU_DEFAULTS,
    KYBERSWAP_DEFAULTS,
    REDSTONE_AUTHORIZED_SIGNERS,
    REDSTONE_DATA_SERVICE_ID,
    REDSTONE_GATEWAY_URLS,
    REDSTONE_UNIQUE_SIGNERS,
)

load_dotenv()

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "CURVANCE_CONFIG"
CONFIG_TABLE = "curvance"
SECRET_FIELDS = ("private_key",)
REDACTED = "***redacted***"


def config_search_paths() -> list[Path]:
    """Candidate config files, most specific first."""
    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        return [Path(explicit)]
    return [
        Path("curvance.toml"),
        Path.home() / ".config" / "curvance" / "config.toml",
    ]


def find_config_file() -> Path | None:
    return next((p for p in config_search_paths() if p.is_file()), None)


class CurvanceTomlSource(PydanticBaseSettingsSource):
    """Reads settings from a TOML file, top level or a ``[curvance]`` table."""

    def __init__(self, settings_cls: type[BaseSettings], path: Path | None):
        super().__init__(settings_cls)
        self.path = path

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        # Unused: __call__ returns the whole table at once
        return None, field_name, False

    def __call__(self) -> dict[str, Any]:
        if self.path is None:
            return {}
        with self.path.open("rb") as f:
            document = tomllib.load(f)
        table = document.get(CONFIG_TABLE, document)
        if not isinstance(table, dict):
            return {}

        leaked = [key for key in SECRET_FIELDS if key in table]
        if leaked:
            raise ValueError(
                f"Refusing to read secret {', '.join(leaked)} from {self.path}; "
                "set it through the environment or pass it explicitly"
            )
        logger.debug("Loaded %d settings from %s", len(table), self.path)
        return table


class Chain(str, Enum):
    MONAD_MAINNET = "monad-mainnet"
    MONAD_TESTNET = "monad-testnet"


class DexAggregator(str, Enum):
    KYBERSWAP = "kyberswap"
    KURU = "kuru"


CHAIN_RPC_DEFAULTS = {
    Chain.MONAD_MAINNET: DEFAULT_MAINNET_RPC_URL,
    Chain.MONAD_TESTNET: DEFAULT_TESTNET_RPC_URL,
}


class SdkSettings(BaseSettings):
    """Client configuration, grouped by the component that consumes it.

    Durations are in seconds. Read configuration only through this class.
    """

    # --- chain ---
    chain: Chain = Chain.MONAD_MAINNET
    rpc_url: str | None = None
    rpc_timeout: float = 15.0
    private_key: SecretStr | None = None

    # --- retry transport ---
    max_retries: int = Field(default=3, ge=0)
    base_delay: float = Field(default=1.0, gt=0, description="Seconds")
    max_delay: float = Field(default=10.0, gt=0, description="Seconds")
    backoff_multiplier: float = Field(default=2.0, gt=1.0)
    retryable_error_patterns: list[str] | None = None

    # --- push oracle (RedStone) ---
    redstone_data_service_id: str = REDSTONE_DATA_SERVICE_ID
    redstone_gateway_urls: list[str] = Field(
        default_factory=lambda: list(REDSTONE_GATEWAY_URLS)
    )
    redstone_unique_signers: int = Field(default=REDSTONE_UNIQUE_SIGNERS, ge=1)
    redstone_authorized_signers: list[str] = Field(
        default_factory=lambda: list(REDSTONE_AUTHORIZED_SIGNERS)
    )
    redstone_adaptor_address: str | None = None
    redstone_request_timeout: float = 10.0

    # --- protocol contracts ---
    oracle_manager_address: str | None = None
    simple_zapper_address: str | None = None
    native_vault_zapper_address: str | None = None
    simple_position_manager_address: str | None = None
    wrapped_native_address: str | None = None

    # --- swap quotes ---
    dex_aggregator: DexAggregator = DexAggregator.KYBERSWAP
    kyberswap_api_url: str = KYBERSWAP_DEFAULTS["api_url"]
    kyberswap_router: str = KYBERSWAP_DEFAULTS["router"]
    kyberswap_client_id: str = "curvance-sdk"
    kuru_api_url: str = KURU_DEFAULTS["api_url"]
    kuru_router: str = KURU_DEFAULTS["router"]
    quote_rate_window: float = Field(default=2.0, gt=0, description="Seconds")
    quote_timeout: float = 10.0
    referral_address: str = DEFAULT_REFERRAL_ADDRESS

    # --- misc ---
    approval_protection: bool = True

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="CURVANCE_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("private_key", mode="before")
    @classmethod
    def wrap_secret(cls, value: Any) -> SecretStr | None:
        if value is None or isinstance(value, SecretStr):
            return value
        return SecretStr(str(value))

    @model_validator(mode="after")
    def validate_retry_bounds(self) -> "SdkSettings":
        if self.base_delay > self.max_delay:
            raise ValueError(
                f"base_delay ({self.base_delay}) must not exceed max_delay ({self.max_delay})"
            )
        return self

    @model_validator(mode="after")
    def validate_signer_quorum(self) -> "SdkSettings":
        if self.redstone_unique_signers > len(self.redstone_authorized_signers):
            raise ValueError(
                f"redstone_unique_signers ({self.redstone_unique_signers}) exceeds the "
                f"{len(self.redstone_authorized_signers)} authorized signers"
            )
        return self

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Earlier sources win
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            CurvanceTomlSource(settings_cls, find_config_file()),
            file_secret_settings,
        )

    def as_safe_dict(self) -> dict[str, Any]:
        """JSON-ready dump with every secret replaced by a marker."""
        data = self.model_dump(mode="json")
        for key in SECRET_FIELDS:
            if getattr(self, key) is not None:
                data[key] = REDACTED
        return data

    def _require(self, name: str, purpose: str = "") -> Any:
        value = getattr(self, name)
        if value is None:
            raise ValueError(f"{name} must be configured{purpose}")
        return value

    @property
    def rpc_url_resolved(self) -> str:
        """Configured RPC endpoint, falling back to the chain default."""
        return self.rpc_url or CHAIN_RPC_DEFAULTS[self.chain]

    @property
    def redstone_adaptor_required(self) -> str:
        return self._require("redstone_adaptor_address")

    @property
    def oracle_manager_required(self) -> str:
        return self._require("oracle_manager_address")

    @property
    def private_key_required(self) -> str:
        key = self._require("private_key", " to send transactions")
        return key.get_secret_value()
