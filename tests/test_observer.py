import logging
from weakref import WeakSet

import pytest
from fakes import DAI, GNT, TREASURY, VAULT

from poolseed.balancer.events import PoolBalanceChangedEvent
from poolseed.checksum_cache import get_checksum_address
from poolseed.deployment import (
    AllowanceChecked,
    DeploymentKey,
    DeploymentStageReached,
    DeploymentState,
    PendingTransactionResumed,
    PoolFunded,
)
from poolseed.erc20 import TokenAllowance
from poolseed.observer import LoggingSubscriber
from poolseed.transaction import TransactionBroadcast, TransactionConfirmed
from poolseed.types import AbstractPublisherMessage, PublisherMixin

KEY = DeploymentKey(chain_id=1, treasury=TREASURY)
TX_HASH = "0x" + "ab" * 32
POOL_ADDRESS = get_checksum_address("0x39cd55ff7e7d7c66d7d2736f1d5d4791cdab895b")
POOL_ID = bytes.fromhex("39cd55ff7e7d7c66d7d2736f1d5d4791cdab895b0002000000000000000000a1")


class Publisher(PublisherMixin):
    def __init__(self) -> None:
        self._subscribers: WeakSet = WeakSet()

    def publish(self, message: AbstractPublisherMessage) -> None:
        self._notify_subscribers(message)


@pytest.fixture
def test_logger() -> logging.Logger:
    return logging.getLogger("poolseed_observer_test")


@pytest.mark.parametrize(
    ("message", "expected"),
    [
        (
            DeploymentStageReached(
                key=KEY,
                state=DeploymentState().pool_created(pool_address=POOL_ADDRESS, pool_id=POOL_ID),
            ),
            f"reached POOL_CREATED (pool {POOL_ADDRESS}, ID 0x{POOL_ID.hex()})",
        ),
        (
            PendingTransactionResumed(key=KEY, tx_hash=TX_HASH),
            f"Waiting for transaction {TX_HASH}",
        ),
        (
            AllowanceChecked(
                allowance=TokenAllowance(
                    token=GNT, owner=TREASURY, spender=VAULT, current=5, required=10
                )
            ),
            f"Allowance for {GNT}: 5 (required 10)",
        ),
        (
            PoolFunded(
                event=PoolBalanceChangedEvent(
                    pool_id=POOL_ID,
                    liquidity_provider=TREASURY,
                    tokens=(GNT, DAI),
                    deltas=(1, 2),
                    protocol_fee_amounts=(0, 0),
                )
            ),
            "Pool funded with [1, 2]",
        ),
        (TransactionBroadcast(tx_hash=TX_HASH, to=VAULT), f"Sent transaction {TX_HASH} to {VAULT}"),
        (
            TransactionConfirmed(tx_hash=TX_HASH, block_number=69, status=0),
            "mined in block 69 (failed)",
        ),
    ],
    ids=lambda value: type(value).__name__,
)
def test_logging_subscriber(
    caplog: pytest.LogCaptureFixture,
    test_logger: logging.Logger,
    message: AbstractPublisherMessage,
    expected: str,
):
    publisher = Publisher()
    subscriber = LoggingSubscriber(target=test_logger, level=logging.WARNING)
    publisher.subscribe(subscriber)

    with caplog.at_level(logging.WARNING, logger=test_logger.name):
        publisher.publish(message)

    (record,) = caplog.records
    assert record.levelno == logging.WARNING
    assert expected in record.getMessage()


def test_unsubscribe(caplog: pytest.LogCaptureFixture, test_logger: logging.Logger):
    publisher = Publisher()
    subscriber = LoggingSubscriber(target=test_logger)
    publisher.subscribe(subscriber)
    publisher.unsubscribe(subscriber)

    with caplog.at_level(logging.INFO, logger=test_logger.name):
        publisher.publish(TransactionBroadcast(tx_hash=TX_HASH, to=VAULT))
    assert caplog.records == []
