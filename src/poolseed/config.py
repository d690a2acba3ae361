import tomllib
from pathlib import Path
from typing import Annotated, Any

import tomlkit
from eth_typing import ChecksumAddress
from pydantic import (
    BaseModel,
    BeforeValidator,
    Field,
    HttpUrl,
    PlainSerializer,
    WebsocketUrl,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from poolseed.checksum_cache import get_checksum_address
from poolseed.constants import BALANCER_V2_VAULT, BALANCER_V2_WEIGHTED_POOL_FACTORY
from poolseed.logging import logger
from poolseed.types import ChainId

CONFIG_DIR = Path.home() / ".config" / "poolseed"
CONFIG_FILE = CONFIG_DIR / "config.toml"
DB_PATH = CONFIG_DIR / "poolseed.db"

Address = Annotated[ChecksumAddress, BeforeValidator(get_checksum_address)]


class DatabaseSettings(BaseModel):
    # Serialize the path as a string representation of the absolute path
    path: Annotated[
        Path,
        PlainSerializer(lambda path: str(path.absolute()), return_type=str),
    ]


class BalancerSettings(BaseModel):
    """
    Balancer V2 contract addresses, keyed by chain ID.
    """

    vault: dict[ChainId, Address] = Field(
        default_factory=lambda: dict.fromkeys(BALANCER_V2_WEIGHTED_POOL_FACTORY, BALANCER_V2_VAULT)
    )
    weighted_pool_factory: dict[ChainId, Address] = Field(
        default_factory=lambda: dict(BALANCER_V2_WEIGHTED_POOL_FACTORY)
    )


class TransactionSettings(BaseModel):
    confirmation_timeout: float = Field(default=300.0, gt=0)
    poll_interval: float = Field(default=1.0, gt=0)
    max_poll_interval: float = Field(default=15.0, gt=0)
    gas_limit_multiplier: float = Field(default=1.2, ge=1.0)
    max_read_retries: int = Field(default=5, ge=1)
    validate_balances: bool = True


class Settings(BaseSettings):
    model_config = SettingsConfigDict()

    database: DatabaseSettings
    rpc: dict[
        ChainId,
        HttpUrl | WebsocketUrl | Path,
    ]
    balancer: BalancerSettings = Field(default_factory=BalancerSettings)
    transaction: TransactionSettings = Field(default_factory=TransactionSettings)

    @field_validator("rpc", mode="after")
    def validate_paths(
        cls,  # noqa: N805
        rpc_dict: dict[ChainId, HttpUrl | WebsocketUrl | Path],
    ) -> dict[ChainId, HttpUrl | WebsocketUrl | Path]:
        """
        Validate the endpoints.

        This will convert all file paths to an absolute reference, leaving HTTP and WS URLs as-is.
        """

        return {
            chain_id: endpoint.expanduser().absolute() if isinstance(endpoint, Path) else endpoint
            for chain_id, endpoint in rpc_dict.items()
        }


def _stringify_keys(value: Any) -> Any:
    # TOML tables only accept string keys, so chain IDs are written as strings
    if isinstance(value, dict):
        return {str(key): _stringify_keys(item) for key, item in value.items()}
    return value


def dump_config(config: Settings) -> dict[str, Any]:
    return _stringify_keys(config.model_dump(mode="json"))


def load_config_from_file(config_path: Path) -> Settings:
    return Settings.model_validate(
        tomllib.loads(
            config_path.read_text(),
        ),
    )


def save_config_to_file(config: Settings, config_path: Path = CONFIG_FILE) -> None:
    config_path.write_text(
        tomlkit.dumps(
            dump_config(config),
        ),
    )


if not CONFIG_DIR.exists():
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    logger.info(f"Created a configuration directory at {CONFIG_DIR}.")

if CONFIG_FILE.exists():
    settings = load_config_from_file(CONFIG_FILE)
else:
    settings = Settings(
        database=DatabaseSettings(
            path=DB_PATH,
        ),
        rpc={},
    )

    save_config_to_file(settings)
    logger.info(f"Created a configuration file at {CONFIG_FILE}.")

    if not settings.database.path.exists():
        from poolseed.database.operations import create_new_sqlite_database

        create_new_sqlite_database(db_path=settings.database.path)
