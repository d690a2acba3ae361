"""
An in-memory stand-in for an Ethereum node running the contracts used by the deployment pipeline:
ERC-20 tokens, a Balancer V2 weighted pool factory, the pools it creates, and the vault.

Only the behavior the pipeline depends on is modeled. Calldata is decoded with eth_abi, so the
encoders under test are checked against the real ABI layout.
"""

import collections
import itertools
from typing import Any

import eth_abi.abi
from eth_typing import ChecksumAddress
from eth_utils.crypto import keccak
from hexbytes import HexBytes
from web3.exceptions import ContractLogicError, TransactionNotFound, Web3RPCError

from poolseed.balancer.events import PoolBalanceChangedEvent, PoolCreatedEvent
from poolseed.checksum_cache import get_checksum_address
from poolseed.constants import BALANCER_V2_VAULT, BALANCER_V2_WEIGHTED_POOL_FACTORY
from poolseed.functions import extract_argument_types_from_function_prototype, function_selector
from poolseed.types import AbstractPublisherMessage, Publisher

GNT = get_checksum_address("0x33c41eE5647c012f8CE9930EE05FC7aF86244921")
DAI = get_checksum_address("0xc7AD46e0b8a400Bb3C915120d284AafbA8fc4735")
TREASURY = get_checksum_address("0x1111111111111111111111111111111111111111")
OTHER_ACCOUNT = get_checksum_address("0x2222222222222222222222222222222222222222")
VAULT = BALANCER_V2_VAULT
FACTORY = BALANCER_V2_WEIGHTED_POOL_FACTORY[1]

ALLOWANCE = "allowance(address,address)"
APPROVE = "approve(address,uint256)"
BALANCE_OF = "balanceOf(address)"
CREATE = "create(string,string,address[],uint256[],uint256,address)"
GET_POOL_ID = "getPoolId()"
GET_POOL_TOKENS = "getPoolTokens(bytes32)"
JOIN_POOL = "joinPool(bytes32,address,address,(address[],uint256[],bytes,bool))"

SELECTORS = {
    function_selector(prototype): prototype
    for prototype in (
        ALLOWANCE,
        APPROVE,
        BALANCE_OF,
        CREATE,
        GET_POOL_ID,
        GET_POOL_TOKENS,
        JOIN_POOL,
    )
}


def _decode_call(data: bytes) -> tuple[str, tuple[Any, ...]]:
    prototype = SELECTORS[data[:4]]
    return prototype, tuple(
        eth_abi.abi.decode(
            types=extract_argument_types_from_function_prototype(prototype),
            data=data[4:],
        )
    )


def _address_topic(address: str) -> HexBytes:
    return HexBytes(bytes(12) + HexBytes(address))


class FakeChain:
    """
    Node and contract state.

    Failure injection:
    - `read_failures`: the next N `eth_call` requests fail with a transient `OSError`
    - `estimate_reverts`: function prototype -> revert reason raised during gas estimation
    - `mined_reverts`: function prototype -> revert reason; the transaction is mined with status 0
    - `withhold_receipts`: receipts for newly sent transactions are not observable until released
    - `reject_signatures`: sends fail with an EIP-1193 user rejection
    - `emit_pool_created`: whether the factory emits `PoolCreated`
    """

    def __init__(self, chain_id: int = 1) -> None:
        self.chain_id = chain_id
        self.block_number = 1_000

        self.balances: collections.defaultdict[tuple[str, str], int] = collections.defaultdict(int)
        self.allowances: collections.defaultdict[tuple[str, str, str], int] = (
            collections.defaultdict(int)
        )
        self.pools: dict[ChecksumAddress, tuple[bytes, tuple[ChecksumAddress, ...]]] = {}
        self.pool_balances: collections.defaultdict[tuple[bytes, str], int] = (
            collections.defaultdict(int)
        )

        self.transactions: dict[str, dict[str, Any]] = {}
        self.receipts: dict[str, dict[str, Any]] = {}
        self.withheld: set[str] = set()
        self.sent: list[tuple[ChecksumAddress, str]] = []
        self.calls: list[tuple[ChecksumAddress, str]] = []

        self.read_failures = 0
        self.estimate_reverts: dict[str, str] = {}
        self.mined_reverts: dict[str, str] = {}
        self.withhold_receipts = False
        self.reject_signatures = False
        self.emit_pool_created = True

        self._nonce = itertools.count()
        self._pool_counter = itertools.count(1)

    def sent_count(self, prototype: str) -> int:
        return sum(1 for _, sent_prototype in self.sent if sent_prototype == prototype)

    def release_receipts(self) -> None:
        self.withheld.clear()

    # Read-only calls

    def call(self, transaction: dict[str, Any]) -> bytes:
        if self.read_failures:
            self.read_failures -= 1
            msg = "connection reset by peer"
            raise OSError(msg)

        to = get_checksum_address(transaction["to"])
        prototype, args = _decode_call(HexBytes(transaction["data"]))
        self.calls.append((to, prototype))

        match prototype:
            case "allowance(address,address)":
                owner, spender = args
                return eth_abi.abi.encode(
                    ["uint256"],
                    [self.allowances[(to, get_checksum_address(owner), get_checksum_address(spender))]],
                )
            case "balanceOf(address)":
                (account,) = args
                return eth_abi.abi.encode(
                    ["uint256"], [self.balances[(to, get_checksum_address(account))]]
                )
            case "getPoolId()":
                pool_id, _ = self.pools[to]
                return eth_abi.abi.encode(["bytes32"], [pool_id])
            case "getPoolTokens(bytes32)":
                (pool_id,) = args
                for registered_id, tokens in self.pools.values():
                    if registered_id == pool_id:
                        return eth_abi.abi.encode(
                            ["address[]", "uint256[]", "uint256"],
                            [
                                list(tokens),
                                [self.pool_balances[(pool_id, token)] for token in tokens],
                                self.block_number,
                            ],
                        )
                raise ContractLogicError("BAL#500")
            case _:
                # Replaying a state-mutating call, to recover its revert reason
                reason = self.mined_reverts.get(prototype)
                if reason is None and prototype == JOIN_POOL:
                    reason = self._join_failure(get_checksum_address(transaction["from"]), args)
                raise ContractLogicError(reason or "execution reverted")

    def estimate_gas(self, transaction: dict[str, Any]) -> int:
        prototype, _ = _decode_call(HexBytes(transaction["data"]))
        if prototype in self.estimate_reverts:
            raise ContractLogicError(f"execution reverted: {self.estimate_reverts[prototype]}")
        return 150_000

    # State-mutating transactions

    def send_transaction(self, transaction: dict[str, Any]) -> HexBytes:
        if self.reject_signatures:
            raise Web3RPCError(
                "User rejected the request.",
                rpc_response={
                    "jsonrpc": "2.0",
                    "id": 1,
                    "error": {"code": 4001, "message": "User rejected the request."},
                },
            )

        sender = get_checksum_address(transaction["from"])
        to = get_checksum_address(transaction["to"])
        data = HexBytes(transaction["data"])
        prototype, args = _decode_call(data)

        tx_hash = HexBytes(keccak(text=f"tx{next(self._nonce)}")).to_0x_hex()
        self.block_number += 1
        self.sent.append((to, prototype))
        self.transactions[tx_hash] = {
            "from": sender,
            "to": to,
            "input": data,
            "value": 0,
        }

        logs: list[dict[str, Any]] = []
        status = 1
        if prototype in self.mined_reverts:
            status = 0
        else:
            match prototype:
                case "approve(address,uint256)":
                    spender, amount = args
                    self.allowances[(to, sender, get_checksum_address(spender))] = amount
                case "create(string,string,address[],uint256[],uint256,address)":
                    logs = self._create_pool(factory=to, tokens=args[2])
                case "joinPool(bytes32,address,address,(address[],uint256[],bytes,bool))":
                    if self._join_failure(sender, args) is not None:
                        status = 0
                    else:
                        logs = self._join_pool(sender, args)

        self.receipts[tx_hash] = {
            "transactionHash": HexBytes(tx_hash),
            "blockNumber": self.block_number,
            "status": status,
            "logs": logs,
        }
        if self.withhold_receipts:
            self.withheld.add(tx_hash)
        return HexBytes(tx_hash)

    def get_receipt(self, tx_hash: bytes) -> dict[str, Any]:
        key = HexBytes(tx_hash).to_0x_hex()
        if key in self.withheld or key not in self.receipts:
            msg = f"Transaction {key} not found"
            raise TransactionNotFound(msg)
        return self.receipts[key]

    def _create_pool(self, factory: ChecksumAddress, tokens: list[str]) -> list[dict[str, Any]]:
        number = next(self._pool_counter)
        pool = get_checksum_address(keccak(text=f"pool{number}")[-20:])
        # Balancer pool IDs are the pool address, the specialization, and a nonce
        pool_id = HexBytes(pool) + bytes(2) + number.to_bytes(10, "big")
        self.pools[pool] = (pool_id, tuple(get_checksum_address(token) for token in tokens))

        if not self.emit_pool_created:
            return []
        return [
            {
                "address": factory,
                "topics": [PoolCreatedEvent.topic(), _address_topic(pool)],
                "data": HexBytes(b""),
            }
        ]

    def _join_failure(self, sender: ChecksumAddress, args: tuple[Any, ...]) -> str | None:
        pool_id, _, _, (assets, _, user_data, _) = args
        if not any(registered_id == pool_id for registered_id, _ in self.pools.values()):
            return "BAL#500"
        _, amounts = eth_abi.abi.decode(["uint256", "uint256[]"], user_data)
        for asset, amount in zip(assets, amounts, strict=True):
            asset = get_checksum_address(asset)
            if self.allowances[(asset, sender, VAULT)] < amount:
                return "ERC20: transfer amount exceeds allowance"
            if self.balances[(asset, sender)] < amount:
                return "ERC20: transfer amount exceeds balance"
        return None

    def _join_pool(self, sender: ChecksumAddress, args: tuple[Any, ...]) -> list[dict[str, Any]]:
        pool_id, _, _, (assets, _, user_data, _) = args
        _, amounts = eth_abi.abi.decode(["uint256", "uint256[]"], user_data)
        for asset, amount in zip(assets, amounts, strict=True):
            asset = get_checksum_address(asset)
            self.balances[(asset, sender)] -= amount
            self.allowances[(asset, sender, VAULT)] -= amount
            self.pool_balances[(pool_id, asset)] += amount

        return [
            {
                "address": VAULT,
                "topics": [
                    PoolBalanceChangedEvent.topic(),
                    HexBytes(pool_id),
                    _address_topic(sender),
                ],
                "data": HexBytes(
                    eth_abi.abi.encode(
                        ["address[]", "int256[]", "uint256[]"],
                        [list(assets), list(amounts), [0] * len(amounts)],
                    )
                ),
            }
        ]


async def _resolved[T](value: T) -> T:
    return value


class FakeEth:
    def __init__(self, chain: FakeChain) -> None:
        self.chain = chain

    @property
    def chain_id(self):  # noqa: ANN201
        return _resolved(self.chain.chain_id)

    @property
    def max_priority_fee(self):  # noqa: ANN201
        return _resolved(10**9)

    async def call(self, transaction: dict[str, Any], block_identifier: Any = "latest") -> bytes:  # noqa: ARG002
        return self.chain.call(transaction)

    async def estimate_gas(self, transaction: dict[str, Any]) -> int:
        return self.chain.estimate_gas(transaction)

    async def send_transaction(self, transaction: dict[str, Any]) -> HexBytes:
        return self.chain.send_transaction(transaction)

    async def get_transaction_receipt(self, tx_hash: bytes) -> dict[str, Any]:
        return self.chain.get_receipt(tx_hash)

    async def get_transaction(self, tx_hash: bytes) -> dict[str, Any]:
        return self.chain.transactions[HexBytes(tx_hash).to_0x_hex()]

    async def get_block(self, block_identifier: Any) -> dict[str, Any]:  # noqa: ARG002
        return {"number": self.chain.block_number, "baseFeePerGas": 10 * 10**9}

    async def get_transaction_count(self, account: str, block_identifier: Any = "latest") -> int:  # noqa: ARG002
        return len(self.chain.transactions)


class FakeWeb3:
    def __init__(self, chain: FakeChain) -> None:
        self.eth = FakeEth(chain)


class RecordingSubscriber:
    """
    Keeps every message it receives, for assertions.
    """

    def __init__(self) -> None:
        self.messages: list[AbstractPublisherMessage] = []

    def notify(self, publisher: Publisher, message: AbstractPublisherMessage) -> None:  # noqa: ARG002
        self.messages.append(message)

    def of_type[T](self, message_type: type[T]) -> list[T]:
        return [message for message in self.messages if isinstance(message, message_type)]
