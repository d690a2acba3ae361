import asyncio
import dataclasses
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any
from weakref import WeakSet

from eth_typing import ChecksumAddress
from hexbytes import HexBytes
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_delay,
    wait_exponential,
)
from web3 import AsyncBaseProvider, AsyncWeb3
from web3._utils.threads import Timeout
from web3.exceptions import ContractLogicError, TransactionNotFound, Web3Exception, Web3RPCError
from web3.types import TxParams, TxReceipt

from poolseed.checksum_cache import get_checksum_address
from poolseed.exceptions import (
    ConfirmationTimeoutError,
    PoolseedValueError,
    TransactionRevertedError,
    UserRejectedSignatureError,
)
from poolseed.logging import logger
from poolseed.types import AbstractPublisherMessage, PublisherMixin, Subscriber

if TYPE_CHECKING:
    from eth_account.signers.local import LocalAccount

# EIP-1193 error code returned by wallets when the user declines a request
USER_REJECTED_REQUEST = 4001

DEFAULT_CONFIRMATION_TIMEOUT = 300.0
DEFAULT_POLL_INTERVAL = 1.0
DEFAULT_MAX_POLL_INTERVAL = 15.0
DEFAULT_GAS_LIMIT_MULTIPLIER = 1.2


@dataclasses.dataclass(slots=True, frozen=True)
class TransactionBroadcast(AbstractPublisherMessage):
    """
    A state-mutating transaction was accepted by the node. It cannot be withdrawn.
    """

    tx_hash: str
    to: ChecksumAddress


@dataclasses.dataclass(slots=True, frozen=True)
class TransactionConfirmed(AbstractPublisherMessage):
    tx_hash: str
    block_number: int
    status: int


def receipt_hash(receipt: TxReceipt) -> str:
    return HexBytes(receipt["transactionHash"]).to_0x_hex()


def _is_user_rejection(exc: Web3RPCError) -> bool:
    response = exc.rpc_response or {}
    error: Any = response.get("error") or {}
    return isinstance(error, dict) and error.get("code") == USER_REJECTED_REQUEST


class TransactionSender(PublisherMixin):
    """
    Signs, broadcasts, and confirms state-mutating transactions for a single account.

    Transactions from one account must be broadcast in nonce order, so all sends are serialized by an
    `asyncio.Lock`. A send holds the lock until its receipt is observed. Sends are never retried: a
    failure after broadcast leaves the transaction in an unknown or reverted state, which is reported
    to the caller.

    If `account` is provided, transactions are signed locally and broadcast with
    `eth_sendRawTransaction`. Otherwise they are submitted with `eth_sendTransaction` from `address`,
    which must be managed by the provider (e.g. a wallet or an unlocked node account).
    """

    def __init__(
        self,
        w3: AsyncWeb3[AsyncBaseProvider],
        *,
        account: "LocalAccount | None" = None,
        address: str | None = None,
        confirmation_timeout: float = DEFAULT_CONFIRMATION_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_poll_interval: float = DEFAULT_MAX_POLL_INTERVAL,
        gas_limit_multiplier: float = DEFAULT_GAS_LIMIT_MULTIPLIER,
    ) -> None:
        if account is None and address is None:
            raise PoolseedValueError(message="An account or a provider-managed address is required.")
        if account is not None and address is not None and account.address != address:
            raise PoolseedValueError(message="The address does not match the signing account.")

        self.w3 = w3
        self._account = account
        self.address = get_checksum_address(account.address if account is not None else address)
        self.confirmation_timeout = confirmation_timeout
        self.poll_interval = poll_interval
        self.max_poll_interval = max_poll_interval
        self.gas_limit_multiplier = gas_limit_multiplier

        self._lock = asyncio.Lock()
        self._subscribers: WeakSet[Subscriber] = WeakSet()

    def __repr__(self) -> str:  # pragma: no cover
        return f"{self.__class__.__name__}(address={self.address})"

    async def send(
        self,
        to: ChecksumAddress,
        data: bytes,
        on_broadcast: Callable[[str], Awaitable[None]] | None = None,
    ) -> TxReceipt:
        """
        Send a transaction calling `to` with `data` and wait for its receipt.

        `on_broadcast` is awaited with the transaction hash as soon as the node accepts the
        transaction, before waiting for confirmation, so the caller can record it.
        """

        async with self._lock:
            tx_hash = await self._broadcast(to=to, data=data)
            self._notify_subscribers(TransactionBroadcast(tx_hash=tx_hash, to=to))
            if on_broadcast is not None:
                await on_broadcast(tx_hash)
            return await self.wait_for_receipt(tx_hash)

    async def _build_transaction(self, to: ChecksumAddress, data: bytes) -> TxParams:
        eth = self.w3.eth
        params = TxParams(
            {
                "from": self.address,
                "to": to,
                "data": HexBytes(data).to_0x_hex(),
                "chainId": await eth.chain_id,
            }
        )

        try:
            gas_estimate = await eth.estimate_gas(params)
        except ContractLogicError as exc:
            raise TransactionRevertedError(reason=exc.message) from exc
        params["gas"] = int(gas_estimate * self.gas_limit_multiplier)

        if self._account is not None:
            latest_block = await eth.get_block("latest")
            priority_fee = await eth.max_priority_fee
            params["nonce"] = await eth.get_transaction_count(self.address, "pending")
            params["type"] = 2
            params["maxPriorityFeePerGas"] = priority_fee
            params["maxFeePerGas"] = 2 * latest_block["baseFeePerGas"] + priority_fee

        return params

    async def _broadcast(self, to: ChecksumAddress, data: bytes) -> str:
        params = await self._build_transaction(to=to, data=data)

        try:
            if self._account is not None:
                signed = self._account.sign_transaction(params)  # type: ignore[arg-type]
                tx_hash = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
            else:
                tx_hash = await self.w3.eth.send_transaction(params)
        except ContractLogicError as exc:
            raise TransactionRevertedError(reason=exc.message) from exc
        except Web3RPCError as exc:
            if _is_user_rejection(exc):
                raise UserRejectedSignatureError from exc
            raise

        return HexBytes(tx_hash).to_0x_hex()

    async def wait_for_receipt(self, tx_hash: str) -> TxReceipt:
        """
        Poll for the receipt of `tx_hash` with exponential backoff, bounded by the confirmation
        timeout.

        Raises `ConfirmationTimeoutError` if no receipt is observed in time, and
        `TransactionRevertedError` if the transaction was mined with a failure status.
        """

        retrier = AsyncRetrying(
            stop=stop_after_delay(self.confirmation_timeout),
            wait=wait_exponential(multiplier=self.poll_interval, max=self.max_poll_interval),
            retry=retry_if_exception_type((TransactionNotFound, Timeout, Web3Exception, OSError)),
        )

        try:
            async for attempt in retrier:
                with attempt:
                    receipt = await self.w3.eth.get_transaction_receipt(HexBytes(tx_hash))
        except RetryError:
            raise ConfirmationTimeoutError(
                tx_hash=tx_hash, timeout_seconds=self.confirmation_timeout
            ) from None

        self._notify_subscribers(
            TransactionConfirmed(
                tx_hash=tx_hash,
                block_number=receipt["blockNumber"],
                status=receipt["status"],
            )
        )

        if receipt["status"] == 0:
            raise TransactionRevertedError(
                tx_hash=tx_hash,
                reason=await self._replay_for_revert_reason(tx_hash, receipt),
            )

        return receipt

    async def _replay_for_revert_reason(self, tx_hash: str, receipt: TxReceipt) -> str | None:
        """
        Re-execute a failed transaction as a call against the block it was mined in, to recover the
        revert reason. Returns `None` if the reason cannot be determined.
        """

        try:
            transaction = await self.w3.eth.get_transaction(HexBytes(tx_hash))
            await self.w3.eth.call(
                TxParams(
                    {
                        "from": transaction["from"],
                        "to": transaction["to"],
                        "data": transaction["input"],
                        "value": transaction.get("value", 0),
                    }
                ),
                block_identifier=receipt["blockNumber"],
            )
        except ContractLogicError as exc:
            return exc.message
        except Exception as exc:  # noqa: BLE001
            # The revert is already confirmed by the receipt, only its reason is lost
            logger.debug(f"Could not replay transaction {tx_hash} for a revert reason: {exc!r}")
            return None
        return None
