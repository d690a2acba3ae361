"""
Typed decoding of the Balancer V2 events consumed by the deployment pipeline.

Each event class owns its log schema: the event signature, which arguments are indexed, and how the
data field is laid out. Callers work with the decoded dataclasses and never index into raw topics.
"""

import dataclasses
from collections.abc import Sequence
from typing import ClassVar, Protocol, Self

import eth_abi.abi
from eth_abi.exceptions import DecodingError
from eth_typing import ChecksumAddress
from eth_utils.crypto import keccak
from hexbytes import HexBytes
from web3.types import LogReceipt, TxReceipt

from poolseed.checksum_cache import get_checksum_address
from poolseed.logging import logger


class MalformedEventLog(ValueError):
    """
    A log carries the event's topic but its contents do not match the event schema.
    """


def _topic_to_address(topic: bytes) -> ChecksumAddress:
    if len(topic) != 32 or any(topic[:12]):
        msg = "Topic is not an ABI-encoded address"
        raise MalformedEventLog(msg)
    return get_checksum_address(topic[-20:])


class DecodableEvent(Protocol):
    SIGNATURE: ClassVar[str]

    @classmethod
    def topic(cls) -> HexBytes: ...

    @classmethod
    def from_log(cls, log: LogReceipt) -> Self: ...


class _EventBase:
    SIGNATURE: ClassVar[str]

    @classmethod
    def topic(cls) -> HexBytes:
        return HexBytes(keccak(text=cls.SIGNATURE))


@dataclasses.dataclass(slots=True, frozen=True, kw_only=True)
class PoolCreatedEvent(_EventBase):
    """
    `event PoolCreated(address indexed pool)`, emitted by Balancer pool factories.
    """

    SIGNATURE: ClassVar[str] = "PoolCreated(address)"

    factory: ChecksumAddress
    pool: ChecksumAddress

    @classmethod
    def from_log(cls, log: LogReceipt) -> Self:
        topics = log["topics"]
        if len(topics) != 2:
            msg = f"Expected 2 topics, found {len(topics)}"
            raise MalformedEventLog(msg)
        return cls(
            factory=get_checksum_address(log["address"]),
            pool=_topic_to_address(HexBytes(topics[1])),
        )


@dataclasses.dataclass(slots=True, frozen=True, kw_only=True)
class PoolBalanceChangedEvent(_EventBase):
    """
    `event PoolBalanceChanged(bytes32 indexed poolId, address indexed liquidityProvider,
    address[] tokens, int256[] deltas, uint256[] protocolFeeAmounts)`, emitted by the vault on joins
    and exits.
    """

    SIGNATURE: ClassVar[str] = "PoolBalanceChanged(bytes32,address,address[],int256[],uint256[])"

    pool_id: bytes
    liquidity_provider: ChecksumAddress
    tokens: tuple[ChecksumAddress, ...]
    deltas: tuple[int, ...]
    protocol_fee_amounts: tuple[int, ...]

    @classmethod
    def from_log(cls, log: LogReceipt) -> Self:
        topics = log["topics"]
        if len(topics) != 3:
            msg = f"Expected 3 topics, found {len(topics)}"
            raise MalformedEventLog(msg)

        try:
            tokens, deltas, protocol_fee_amounts = eth_abi.abi.decode(
                types=["address[]", "int256[]", "uint256[]"],
                data=HexBytes(log["data"]),
            )
        except DecodingError as exc:
            raise MalformedEventLog(str(exc)) from exc

        return cls(
            pool_id=bytes(HexBytes(topics[1])),
            liquidity_provider=_topic_to_address(HexBytes(topics[2])),
            tokens=tuple(get_checksum_address(token) for token in tokens),
            deltas=tuple(deltas),
            protocol_fee_amounts=tuple(protocol_fee_amounts),
        )


def decode_events[T: DecodableEvent](
    receipt: TxReceipt,
    event: type[T],
    emitters: Sequence[str] | None = None,
) -> list[T]:
    """
    Decode all logs in `receipt` matching `event`, optionally limited to logs emitted by the
    addresses in `emitters`. Logs with a matching topic that do not fit the event schema are skipped.
    """

    allowed_emitters = (
        {get_checksum_address(emitter) for emitter in emitters} if emitters is not None else None
    )
    topic = event.topic()

    decoded: list[T] = []
    for log in receipt["logs"]:
        if not log["topics"] or HexBytes(log["topics"][0]) != topic:
            continue
        if (
            allowed_emitters is not None
            and get_checksum_address(log["address"]) not in allowed_emitters
        ):
            continue
        try:
            decoded.append(event.from_log(log))
        except MalformedEventLog as exc:
            logger.warning(f"Skipped malformed {event.SIGNATURE} log: {exc}")
    return decoded
