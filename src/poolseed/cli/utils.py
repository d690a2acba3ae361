import os
from pathlib import Path

from eth_account import Account
from eth_account.signers.local import LocalAccount
from pydantic import HttpUrl, WebsocketUrl
from web3 import AsyncBaseProvider, AsyncHTTPProvider, AsyncIPCProvider, AsyncWeb3, WebSocketProvider

from poolseed.balancer.factory import PoolFactoryClient
from poolseed.balancer.vault import VaultClient
from poolseed.config import CONFIG_FILE, settings
from poolseed.connection import async_connection_manager
from poolseed.constants import BALANCER_V2_VAULT
from poolseed.database import get_scoped_sqlite_session
from poolseed.deployment.orchestrator import PoolDeploymentOrchestrator
from poolseed.deployment.store import DatabaseStateStore
from poolseed.erc20.allowance import AllowanceManager
from poolseed.transaction import TransactionSender

PRIVATE_KEY_ENV_VAR = "POOLSEED_PRIVATE_KEY"


async def get_async_web3_from_config(
    *,
    chain_id: int,
    optimize: bool = True,
) -> AsyncWeb3[AsyncBaseProvider]:
    w3: AsyncWeb3[AsyncBaseProvider]
    match endpoint := settings.rpc.get(chain_id):
        case HttpUrl():
            w3 = AsyncWeb3(AsyncHTTPProvider(str(endpoint)))
        case WebsocketUrl():
            w3 = await AsyncWeb3(WebSocketProvider(str(endpoint)))  # type: ignore[assignment]
        case Path():
            w3 = await AsyncWeb3(AsyncIPCProvider(str(endpoint)))  # type: ignore[assignment]
        case None:
            msg = f"Chain ID {chain_id} does not have an RPC defined in config file {CONFIG_FILE}"
            raise ValueError(msg)

    if (endpoint_chain_id := await w3.eth.chain_id) != chain_id:
        msg = (
            f"The chain ID ({endpoint_chain_id}) at endpoint {endpoint} does not match "
            f"the chain ID ({chain_id}) defined in the config file."
        )
        raise ValueError(msg)

    await async_connection_manager.register_web3(w3, optimize=optimize)
    return w3


def get_local_account(env_var: str = PRIVATE_KEY_ENV_VAR) -> LocalAccount | None:
    """
    Load a signing account from the private key held in `env_var`, if it is set.
    """

    private_key = os.environ.get(env_var)
    if not private_key:
        return None
    return Account.from_key(private_key)


def build_orchestrator(
    *,
    w3: AsyncWeb3[AsyncBaseProvider],
    chain_id: int,
    account: LocalAccount | None,
    address: str | None,
) -> PoolDeploymentOrchestrator:
    """
    Assemble the deployment pipeline for `chain_id` from the configured contracts and transaction
    settings, persisting progress to the configured database.
    """

    try:
        factory_address = settings.balancer.weighted_pool_factory[chain_id]
    except KeyError:
        msg = (
            f"Chain ID {chain_id} does not have a weighted pool factory defined in config file "
            f"{CONFIG_FILE}"
        )
        raise ValueError(msg) from None

    tx_settings = settings.transaction
    sender = TransactionSender(
        w3,
        account=account,
        address=address,
        confirmation_timeout=tx_settings.confirmation_timeout,
        poll_interval=tx_settings.poll_interval,
        max_poll_interval=tx_settings.max_poll_interval,
        gas_limit_multiplier=tx_settings.gas_limit_multiplier,
    )

    return PoolDeploymentOrchestrator(
        chain_id=chain_id,
        sender=sender,
        factory=PoolFactoryClient(factory_address, sender),
        vault=VaultClient(
            sender,
            settings.balancer.vault.get(chain_id, BALANCER_V2_VAULT),
            max_read_retries=tx_settings.max_read_retries,
        ),
        allowances=AllowanceManager(sender, max_read_retries=tx_settings.max_read_retries),
        store=get_state_store(),
        validate_balances=tx_settings.validate_balances,
    )


def get_state_store() -> DatabaseStateStore:
    return DatabaseStateStore(get_scoped_sqlite_session(database_path=settings.database.path))
