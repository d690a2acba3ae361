from .checksum_cache import get_checksum_address
from .config import settings
from .connection import async_connection_manager, get_async_web3, set_async_web3
from .version import __version__

# isort: split

from .balancer import (
    JoinRequest,
    Pool,
    PoolFactoryClient,
    VaultClient,
    build_join_payload,
    decode_join_payload,
    sort_tokens,
)
from .deployment import (
    DatabaseStateStore,
    DeploymentStage,
    DeploymentState,
    MemoryStateStore,
    PoolDeploymentOrchestrator,
    PoolParameters,
    TokenParameters,
    load_pool_parameters,
)
from .erc20 import AllowanceManager, AlreadySufficient, Approved, Erc20Token, TokenAllowance
from .logging import logger
from .numeric import (
    TokenAmount,
    max_unsigned_int,
    normalize_scientific,
    to_base_units,
    to_exact_integer,
)
from .observer import LoggingSubscriber
from .transaction import TransactionSender

__all__ = (
    "AllowanceManager",
    "AlreadySufficient",
    "Approved",
    "DatabaseStateStore",
    "DeploymentStage",
    "DeploymentState",
    "Erc20Token",
    "JoinRequest",
    "LoggingSubscriber",
    "MemoryStateStore",
    "Pool",
    "PoolDeploymentOrchestrator",
    "PoolFactoryClient",
    "PoolParameters",
    "TokenAllowance",
    "TokenAmount",
    "TokenParameters",
    "TransactionSender",
    "VaultClient",
    "__version__",
    "async_connection_manager",
    "build_join_payload",
    "decode_join_payload",
    "get_async_web3",
    "get_checksum_address",
    "load_pool_parameters",
    "logger",
    "max_unsigned_int",
    "normalize_scientific",
    "set_async_web3",
    "settings",
    "sort_tokens",
    "to_base_units",
    "to_exact_integer",
)
