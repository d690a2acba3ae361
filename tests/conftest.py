import logging
from fractions import Fraction

import pytest
from fakes import DAI, FACTORY, GNT, TREASURY, VAULT, FakeChain, FakeWeb3, RecordingSubscriber

from poolseed.balancer.factory import PoolFactoryClient
from poolseed.balancer.vault import VaultClient
from poolseed.connection import async_connection_manager
from poolseed.deployment.orchestrator import PoolDeploymentOrchestrator
from poolseed.deployment.parameters import PoolParameters, TokenParameters
from poolseed.deployment.store import MemoryStateStore
from poolseed.erc20.allowance import AllowanceManager
from poolseed.logging import logger
from poolseed.transaction import TransactionSender

INITIAL_BALANCE = 10**6


@pytest.fixture(autouse=True)
def _initialize_and_reset_after_each_test():
    """
    Before each test, clear/reset global values and singletons
    """
    async_connection_manager.connections.clear()
    async_connection_manager._default_chain_id = None


@pytest.fixture(scope="session", autouse=True)
def _set_poolseed_logging():
    """
    Set the logging level to DEBUG for the test run
    """
    logger.setLevel(logging.DEBUG)


@pytest.fixture
def chain() -> FakeChain:
    chain = FakeChain()
    chain.balances[(GNT, TREASURY)] = 10 * INITIAL_BALANCE
    chain.balances[(DAI, TREASURY)] = 10 * INITIAL_BALANCE
    return chain


@pytest.fixture
def w3(chain: FakeChain) -> FakeWeb3:
    return FakeWeb3(chain)


@pytest.fixture
def sender(w3: FakeWeb3) -> TransactionSender:
    return TransactionSender(
        w3,  # type: ignore[arg-type]
        address=TREASURY,
        confirmation_timeout=0.2,
        poll_interval=0.01,
        max_poll_interval=0.05,
    )


@pytest.fixture
def factory(sender: TransactionSender) -> PoolFactoryClient:
    return PoolFactoryClient(FACTORY, sender)


@pytest.fixture
def vault(sender: TransactionSender) -> VaultClient:
    return VaultClient(sender, VAULT, max_read_retries=2)


@pytest.fixture
def allowance_manager(sender: TransactionSender) -> AllowanceManager:
    return AllowanceManager(sender, max_read_retries=2)


@pytest.fixture
def store() -> MemoryStateStore:
    return MemoryStateStore()


@pytest.fixture
def orchestrator(
    sender: TransactionSender,
    factory: PoolFactoryClient,
    vault: VaultClient,
    allowance_manager: AllowanceManager,
    store: MemoryStateStore,
) -> PoolDeploymentOrchestrator:
    return PoolDeploymentOrchestrator(
        chain_id=1,
        sender=sender,
        factory=factory,
        vault=vault,
        allowances=allowance_manager,
        store=store,
    )


@pytest.fixture
def recorder() -> RecordingSubscriber:
    return RecordingSubscriber()


@pytest.fixture
def pool_parameters() -> PoolParameters:
    # DAI is listed first, but GNT has the lower address
    return PoolParameters(
        name="GovernanceToken DAI pool v2",
        symbol="xGNT-yDAI",
        swap_fee_bps=50,
        tokens=[
            TokenParameters(address=DAI, weight=Fraction(9, 10), initial_balance="1e6"),
            TokenParameters(address=GNT, weight=Fraction(1, 10), initial_balance="1e6"),
        ],
    )
