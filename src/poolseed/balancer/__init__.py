from .events import PoolBalanceChangedEvent, PoolCreatedEvent, decode_events
from .factory import PoolFactoryClient, sort_tokens
from .types import JoinRequest, Pool
from .vault import VaultClient, build_join_payload, decode_join_payload

__all__ = (
    "JoinRequest",
    "Pool",
    "PoolBalanceChangedEvent",
    "PoolCreatedEvent",
    "PoolFactoryClient",
    "VaultClient",
    "build_join_payload",
    "decode_join_payload",
    "decode_events",
    "sort_tokens",
)
