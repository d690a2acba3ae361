import dataclasses
from typing import Any

from eth_typing import ChecksumAddress

from poolseed.constants import MAX_UINT256
from poolseed.exceptions import InvalidTokenOrderError, PoolseedValueError
from poolseed.functions import is_sorted_by_address


@dataclasses.dataclass(slots=True, frozen=True, kw_only=True)
class Pool:
    """
    A Balancer V2 pool, identified by its contract address and by the pool ID assigned by the vault.
    """

    address: ChecksumAddress
    pool_id: bytes
    tokens: tuple[ChecksumAddress, ...]

    def __post_init__(self) -> None:
        if len(self.pool_id) != 32:
            raise PoolseedValueError(message=f"Pool ID must be 32 bytes, got {len(self.pool_id)}")
        if not is_sorted_by_address(self.tokens):
            raise InvalidTokenOrderError(tokens=self.tokens)


@dataclasses.dataclass(slots=True, frozen=True, kw_only=True)
class JoinRequest:
    """
    The `JoinPoolRequest` struct accepted by `Vault.joinPool`.

    `assets` must match the pool's registered token order, and `max_amounts_in` is aligned with it
    by position.
    """

    assets: tuple[ChecksumAddress, ...]
    max_amounts_in: tuple[int, ...]
    user_data: bytes
    from_internal_balance: bool = False

    ABI_TYPE = "(address[],uint256[],bytes,bool)"

    def __post_init__(self) -> None:
        if len(self.assets) != len(self.max_amounts_in):
            raise PoolseedValueError(
                message=f"{len(self.assets)} assets but {len(self.max_amounts_in)} maximum amounts"
            )
        if any(not 0 <= amount <= MAX_UINT256 for amount in self.max_amounts_in):
            raise PoolseedValueError(message="Maximum amounts must be valid uint256 values")

    def as_abi_tuple(self) -> tuple[Any, ...]:
        return (
            list(self.assets),
            list(self.max_amounts_in),
            self.user_data,
            self.from_internal_balance,
        )
