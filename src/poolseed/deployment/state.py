import dataclasses
import enum
from typing import Self

from eth_typing import ChecksumAddress

from poolseed.exceptions import PoolseedValueError
from poolseed.types import ChainId


class DeploymentStage(enum.IntEnum):
    NOT_STARTED = 0
    POOL_CREATED = 1
    ALLOWANCES_READY = 2
    JOINED = 3

    @property
    def next(self) -> "DeploymentStage":
        if self is DeploymentStage.JOINED:
            raise PoolseedValueError(message="A joined deployment has no further stage.")
        return DeploymentStage(self + 1)


@dataclasses.dataclass(slots=True, frozen=True)
class DeploymentKey:
    """
    Identifies a deployment. Only one deployment per treasury account and chain may be in flight.
    """

    chain_id: ChainId
    treasury: ChecksumAddress


@dataclasses.dataclass(slots=True, frozen=True, kw_only=True)
class DeploymentState:
    """
    The progress of a pool deployment.

    `pending_transaction` holds the hash of a transaction that was broadcast for the next stage but
    whose outcome has not been observed. It is resolved before anything else is sent.
    """

    stage: DeploymentStage = DeploymentStage.NOT_STARTED
    pool_address: ChecksumAddress | None = None
    pool_id: bytes | None = None
    join_tx_hash: str | None = None
    join_block_number: int | None = None
    pending_transaction: str | None = None

    def __post_init__(self) -> None:
        if self.stage >= DeploymentStage.POOL_CREATED and (
            self.pool_address is None or self.pool_id is None
        ):
            raise PoolseedValueError(
                message=f"{self.stage.name} requires a pool address and pool ID"
            )
        if self.stage is DeploymentStage.JOINED:
            if self.join_tx_hash is None:
                raise PoolseedValueError(message="JOINED requires a join transaction hash")
            if self.pending_transaction is not None:
                raise PoolseedValueError(message="JOINED cannot have a pending transaction")

    def with_pending(self, tx_hash: str | None) -> Self:
        return dataclasses.replace(self, pending_transaction=tx_hash)

    def pool_created(self, pool_address: ChecksumAddress, pool_id: bytes) -> Self:
        return dataclasses.replace(
            self,
            stage=DeploymentStage.POOL_CREATED,
            pool_address=pool_address,
            pool_id=pool_id,
            pending_transaction=None,
        )

    def allowances_ready(self) -> Self:
        return dataclasses.replace(
            self,
            stage=DeploymentStage.ALLOWANCES_READY,
            pending_transaction=None,
        )

    def joined(self, tx_hash: str, block_number: int) -> Self:
        return dataclasses.replace(
            self,
            stage=DeploymentStage.JOINED,
            join_tx_hash=tx_hash,
            join_block_number=block_number,
            pending_transaction=None,
        )


@dataclasses.dataclass(slots=True, frozen=True, kw_only=True)
class DeploymentRecord:
    """
    A persisted deployment: its key, the fingerprint of the pool parameters it was started with,
    and its latest state.
    """

    key: DeploymentKey
    parameters_fingerprint: str
    state: DeploymentState
