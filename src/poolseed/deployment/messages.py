import dataclasses

from poolseed.balancer.events import PoolBalanceChangedEvent
from poolseed.deployment.state import DeploymentKey, DeploymentState
from poolseed.erc20.allowance import TokenAllowance
from poolseed.types import AbstractPublisherMessage


@dataclasses.dataclass(slots=True, frozen=True)
class DeploymentStageReached(AbstractPublisherMessage):
    """
    The deployment reached a new stage, and the new state has been persisted.
    """

    key: DeploymentKey
    state: DeploymentState


@dataclasses.dataclass(slots=True, frozen=True)
class PendingTransactionResumed(AbstractPublisherMessage):
    """
    A transaction broadcast by an earlier attempt is being awaited instead of sending a new one.
    """

    key: DeploymentKey
    tx_hash: str


@dataclasses.dataclass(slots=True, frozen=True)
class AllowanceChecked(AbstractPublisherMessage):
    allowance: TokenAllowance


@dataclasses.dataclass(slots=True, frozen=True)
class PoolFunded(AbstractPublisherMessage):
    event: PoolBalanceChangedEvent
