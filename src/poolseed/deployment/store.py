from typing import Protocol

from hexbytes import HexBytes
from sqlalchemy import delete, select
from sqlalchemy.orm import Session, scoped_session

from poolseed.checksum_cache import get_checksum_address
from poolseed.database.models import DeploymentTable
from poolseed.deployment.state import (
    DeploymentKey,
    DeploymentRecord,
    DeploymentStage,
    DeploymentState,
)
from poolseed.exceptions import PoolseedValueError


class StateStore(Protocol):
    """
    Durable storage for deployment progress. `save` must not return until the record is persisted.
    """

    def load(self, key: DeploymentKey) -> DeploymentRecord | None: ...

    def save(self, record: DeploymentRecord) -> None: ...

    def discard(self, key: DeploymentKey) -> None: ...


class MemoryStateStore:
    """
    A non-durable store, for tests and dry runs.
    """

    def __init__(self) -> None:
        self.records: dict[DeploymentKey, DeploymentRecord] = {}
        self.history: list[DeploymentRecord] = []

    def load(self, key: DeploymentKey) -> DeploymentRecord | None:
        return self.records.get(key)

    def save(self, record: DeploymentRecord) -> None:
        self.records[record.key] = record
        self.history.append(record)

    def discard(self, key: DeploymentKey) -> None:
        self.records.pop(key, None)


class DatabaseStateStore:
    """
    Stores deployment records in the `deployments` table, one row per chain and treasury.
    """

    def __init__(self, session: Session | scoped_session[Session]) -> None:
        self.session = session

    def _get_row(self, key: DeploymentKey) -> DeploymentTable | None:
        # Always re-read the row, since another process may have updated it
        return self.session.scalar(
            select(DeploymentTable)
            .where(
                DeploymentTable.chain_id == key.chain_id,
                DeploymentTable.treasury == key.treasury,
            )
            .execution_options(populate_existing=True)
        )

    def load(self, key: DeploymentKey) -> DeploymentRecord | None:
        row = self._get_row(key)
        if row is None:
            return None

        return DeploymentRecord(
            key=key,
            parameters_fingerprint=row.parameters_fingerprint,
            state=DeploymentState(
                stage=DeploymentStage(row.stage),
                pool_address=get_checksum_address(row.pool_address)
                if row.pool_address is not None
                else None,
                pool_id=bytes(HexBytes(row.pool_id)) if row.pool_id is not None else None,
                join_tx_hash=row.join_tx_hash,
                join_block_number=row.join_block_number,
                pending_transaction=row.pending_transaction,
            ),
        )

    def save(self, record: DeploymentRecord) -> None:
        row = self._get_row(record.key)
        if row is None:
            row = DeploymentTable(
                chain_id=record.key.chain_id,
                treasury=record.key.treasury,
            )
            self.session.add(row)

        state = record.state
        row.parameters_fingerprint = record.parameters_fingerprint
        row.stage = int(state.stage)
        row.pool_address = state.pool_address
        row.pool_id = HexBytes(state.pool_id).to_0x_hex() if state.pool_id is not None else None
        row.join_tx_hash = state.join_tx_hash
        row.join_block_number = state.join_block_number
        row.pending_transaction = state.pending_transaction
        self.session.commit()

    def discard(self, key: DeploymentKey) -> None:
        self.session.execute(
            delete(DeploymentTable).where(
                DeploymentTable.chain_id == key.chain_id,
                DeploymentTable.treasury == key.treasury,
            )
        )
        self.session.commit()


def discard_deployment(store: StateStore, key: DeploymentKey, *, force: bool = False) -> bool:
    """
    Remove the stored record for `key`. Unfinished deployments are only removed with `force=True`,
    after the caller has resolved them by other means.

    Returns `False` if there was no record.
    """

    record = store.load(key)
    if record is None:
        return False
    if record.state.stage is not DeploymentStage.JOINED and not force:
        raise PoolseedValueError(
            message=f"The deployment for {key.treasury} has only reached "
            f"{record.state.stage.name}. Use force to discard it."
        )
    store.discard(key)
    return True
