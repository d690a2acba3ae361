from collections.abc import Awaitable, Callable, Sequence
from fractions import Fraction

from eth_typing import ChecksumAddress
from web3.types import TxReceipt

from poolseed.balancer.events import PoolCreatedEvent, decode_events
from poolseed.checksum_cache import get_checksum_address
from poolseed.constants import FIXED_POINT_ONE, ZERO_ADDRESS
from poolseed.exceptions import EventNotFoundError, InvalidTokenOrderError, PoolseedValueError
from poolseed.functions import encode_function_calldata, is_sorted_by_address
from poolseed.transaction import TransactionSender, receipt_hash

BASIS_POINTS_DENOMINATOR = 10_000

# Limits enforced by the WeightedPool constructor
MIN_WEIGHT = Fraction(1, 100)
MIN_SWAP_FEE_BPS = 1
MAX_SWAP_FEE_BPS = 1_000  # 10%


def weight_to_fixed_point(weight: Fraction) -> int:
    """
    Convert a weight to the 18 decimal fixed-point representation used by the factory. The
    conversion must be exact, since the pool requires normalized weights to sum to exactly 1e18.
    """

    scaled = weight * FIXED_POINT_ONE
    if scaled.denominator != 1:
        raise PoolseedValueError(message=f"Weight {weight} is not representable with 18 decimals")
    return int(scaled)


def swap_fee_bps_to_fixed_point(swap_fee_bps: int) -> int:
    return swap_fee_bps * FIXED_POINT_ONE // BASIS_POINTS_DENOMINATOR


def sort_tokens(
    tokens: Sequence[str],
    *values: Sequence[object],
) -> tuple[list[ChecksumAddress], ...]:
    """
    Sort `tokens` by ascending address and reorder each sequence in `values` the same way, keeping
    per-token values (weights, balances) aligned with their token.

    Raises `InvalidTokenOrderError` if the tokens contain duplicates.
    """

    checksummed = [get_checksum_address(token) for token in tokens]
    if len(set(checksummed)) != len(checksummed):
        raise InvalidTokenOrderError(tokens=checksummed, reason="tokens must be unique")
    for sequence in values:
        if len(sequence) != len(checksummed):
            raise PoolseedValueError(message="Each value sequence must have one entry per token")

    order = sorted(range(len(checksummed)), key=lambda index: int(checksummed[index], 16))
    return (
        [checksummed[index] for index in order],
        *([sequence[index] for index in order] for sequence in values),  # type: ignore[misc]
    )


class PoolFactoryClient:
    """
    Creates Balancer V2 weighted pools through a `WeightedPoolFactory`.
    """

    CREATE_FUNCTION_PROTOTYPE = "create(string,string,address[],uint256[],uint256,address)"

    def __init__(self, factory_address: str, sender: TransactionSender) -> None:
        self.address = get_checksum_address(factory_address)
        self.sender = sender

    def __repr__(self) -> str:  # pragma: no cover
        return f"{self.__class__.__name__}(address={self.address})"

    def build_create_calldata(
        self,
        *,
        name: str,
        symbol: str,
        tokens: Sequence[str],
        weights: Sequence[Fraction],
        swap_fee_bps: int,
        owner: str = ZERO_ADDRESS,
    ) -> bytes:
        """
        Validate the pool parameters and encode the factory `create` call.

        Tokens must already be sorted by ascending address, with no duplicates. Use `sort_tokens`
        to reorder tokens and weights together before calling.
        """

        checksummed_tokens = [get_checksum_address(token) for token in tokens]
        if len(set(checksummed_tokens)) != len(checksummed_tokens):
            raise InvalidTokenOrderError(tokens=checksummed_tokens, reason="tokens must be unique")
        if not is_sorted_by_address(checksummed_tokens):
            raise InvalidTokenOrderError(tokens=checksummed_tokens)
        if len(weights) != len(checksummed_tokens):
            raise PoolseedValueError(
                message=f"{len(checksummed_tokens)} tokens but {len(weights)} weights"
            )
        if any(weight < MIN_WEIGHT for weight in weights):
            raise PoolseedValueError(message=f"Each weight must be at least {MIN_WEIGHT}")
        if not MIN_SWAP_FEE_BPS <= swap_fee_bps <= MAX_SWAP_FEE_BPS:
            raise PoolseedValueError(
                message=f"Swap fee must be between {MIN_SWAP_FEE_BPS} and {MAX_SWAP_FEE_BPS} "
                "basis points"
            )

        return encode_function_calldata(
            function_prototype=self.CREATE_FUNCTION_PROTOTYPE,
            function_arguments=[
                name,
                symbol,
                checksummed_tokens,
                [weight_to_fixed_point(weight) for weight in weights],
                swap_fee_bps_to_fixed_point(swap_fee_bps),
                get_checksum_address(owner),
            ],
        )

    def pool_address_from_receipt(self, receipt: TxReceipt) -> ChecksumAddress:
        """
        Extract the new pool's address from the `PoolCreated` event emitted by this factory.

        Raises `EventNotFoundError` if the receipt has no such event. The creation transaction
        succeeded in that case, so it must be resolved by hand instead of retried.
        """

        events = decode_events(receipt, PoolCreatedEvent, emitters=[self.address])
        if not events:
            raise EventNotFoundError(
                tx_hash=receipt_hash(receipt),
                event_name=PoolCreatedEvent.SIGNATURE,
            )
        return events[0].pool

    async def create_weighted_pool(
        self,
        *,
        name: str,
        symbol: str,
        tokens: Sequence[str],
        weights: Sequence[Fraction],
        swap_fee_bps: int,
        owner: str = ZERO_ADDRESS,
        on_broadcast: Callable[[str], Awaitable[None]] | None = None,
    ) -> ChecksumAddress:
        """
        Create a weighted pool and return its address.

        Raises `TransactionRevertedError` if the creation reverts, and `EventNotFoundError` if it
        succeeds without a decodable `PoolCreated` event.
        """

        calldata = self.build_create_calldata(
            name=name,
            symbol=symbol,
            tokens=tokens,
            weights=weights,
            swap_fee_bps=swap_fee_bps,
            owner=owner,
        )
        receipt = await self.sender.send(to=self.address, data=calldata, on_broadcast=on_broadcast)
        return self.pool_address_from_receipt(receipt)
