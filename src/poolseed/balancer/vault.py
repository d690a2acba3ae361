from collections.abc import Awaitable, Callable, Sequence
from typing import cast

import eth_abi.abi
from eth_typing import ChecksumAddress
from web3.types import TxReceipt

from poolseed.balancer.events import PoolBalanceChangedEvent, decode_events
from poolseed.balancer.types import JoinRequest, Pool
from poolseed.checksum_cache import get_checksum_address
from poolseed.constants import BALANCER_V2_VAULT, JOIN_KIND_INIT, MAX_UINT256
from poolseed.exceptions import PoolseedValueError
from poolseed.functions import DEFAULT_READ_RETRIES, encode_function_calldata, raw_call_retrying
from poolseed.numeric import TokenAmount
from poolseed.transaction import TransactionSender

JOIN_USER_DATA_TYPES = ("uint256", "uint256[]")


def build_join_payload(initial_balances: Sequence[TokenAmount | int]) -> bytes:
    """
    Encode the `userData` for an initialization join: `abi.encode(uint256 joinKind, uint256[])` with
    `joinKind = 0` (INIT) followed by the initial balances in pool token order.
    """

    balances = [int(balance) for balance in initial_balances]
    if any(not 0 <= balance <= MAX_UINT256 for balance in balances):
        raise PoolseedValueError(message="Initial balances must be valid uint256 values")

    return eth_abi.abi.encode(
        types=JOIN_USER_DATA_TYPES,
        args=[JOIN_KIND_INIT, balances],
    )


def decode_join_payload(payload: bytes) -> tuple[int, tuple[int, ...]]:
    join_kind, balances = eth_abi.abi.decode(types=JOIN_USER_DATA_TYPES, data=payload)
    return join_kind, tuple(balances)


class VaultClient:
    """
    Reads pool registration data from the Balancer V2 vault and submits joins.
    """

    JOIN_POOL_FUNCTION_PROTOTYPE = f"joinPool(bytes32,address,address,{JoinRequest.ABI_TYPE})"

    def __init__(
        self,
        sender: TransactionSender,
        vault_address: str = BALANCER_V2_VAULT,
        *,
        max_read_retries: int = DEFAULT_READ_RETRIES,
    ) -> None:
        self.address = get_checksum_address(vault_address)
        self.sender = sender
        self.max_read_retries = max_read_retries

    def __repr__(self) -> str:  # pragma: no cover
        return f"{self.__class__.__name__}(address={self.address})"

    async def resolve_pool_id(self, pool_address: str) -> bytes:
        (pool_id,) = await raw_call_retrying(
            w3=self.sender.w3,
            address=get_checksum_address(pool_address),
            calldata=encode_function_calldata(
                function_prototype="getPoolId()",
                function_arguments=None,
            ),
            return_types=["bytes32"],
            max_retries=self.max_read_retries,
        )
        return cast("bytes", pool_id)

    async def get_pool_tokens(self, pool_id: bytes) -> tuple[ChecksumAddress, ...]:
        """
        Return the tokens registered for the pool, in the order the vault expects for joins.
        """

        tokens, _, _ = await raw_call_retrying(
            w3=self.sender.w3,
            address=self.address,
            calldata=encode_function_calldata(
                function_prototype="getPoolTokens(bytes32)",
                function_arguments=[pool_id],
            ),
            return_types=["address[]", "uint256[]", "uint256"],
            max_retries=self.max_read_retries,
        )
        return tuple(get_checksum_address(token) for token in tokens)

    async def get_pool(self, pool_address: str) -> Pool:
        pool_id = await self.resolve_pool_id(pool_address)
        return Pool(
            address=get_checksum_address(pool_address),
            pool_id=pool_id,
            tokens=await self.get_pool_tokens(pool_id),
        )

    def build_join_request(
        self,
        assets: Sequence[str],
        max_amounts_in: Sequence[TokenAmount | int],
        initial_balances: Sequence[TokenAmount | int],
        *,
        from_internal_balance: bool = False,
    ) -> JoinRequest:
        if len(initial_balances) != len(assets):
            raise PoolseedValueError(
                message=f"{len(assets)} assets but {len(initial_balances)} initial balances"
            )
        return JoinRequest(
            assets=tuple(get_checksum_address(asset) for asset in assets),
            max_amounts_in=tuple(int(amount) for amount in max_amounts_in),
            user_data=build_join_payload(initial_balances),
            from_internal_balance=from_internal_balance,
        )

    async def join(
        self,
        pool_id: bytes,
        treasury: str,
        assets: Sequence[str],
        max_amounts_in: Sequence[TokenAmount | int],
        initial_balances: Sequence[TokenAmount | int],
        *,
        from_internal_balance: bool = False,
        on_broadcast: Callable[[str], Awaitable[None]] | None = None,
    ) -> TxReceipt:
        """
        Fund the pool with its initial balances. The treasury is both the sender of the tokens and
        the recipient of the pool tokens.

        Raises `TransactionRevertedError` on revert (e.g. insufficient allowance or balance) and
        `ConfirmationTimeoutError` if the outcome is not observed in time.
        """

        treasury = get_checksum_address(treasury)
        request = self.build_join_request(
            assets=assets,
            max_amounts_in=max_amounts_in,
            initial_balances=initial_balances,
            from_internal_balance=from_internal_balance,
        )

        return await self.sender.send(
            to=self.address,
            data=encode_function_calldata(
                function_prototype=self.JOIN_POOL_FUNCTION_PROTOTYPE,
                function_arguments=[pool_id, treasury, treasury, request.as_abi_tuple()],
            ),
            on_broadcast=on_broadcast,
        )

    def balance_changes_from_receipt(self, receipt: TxReceipt) -> list[PoolBalanceChangedEvent]:
        return decode_events(receipt, PoolBalanceChangedEvent, emitters=[self.address])
