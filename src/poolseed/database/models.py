from datetime import UTC, datetime
from typing import Annotated, ClassVar

from sqlalchemy import DateTime, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

PrimaryKeyInt = Annotated[
    int,
    mapped_column(primary_key=True, autoincrement=True),
]
Address = Annotated[str, mapped_column(String(42))]
TransactionHash = Annotated[str, mapped_column(String(66))]


class Base(DeclarativeBase):
    type_annotation_map: ClassVar = {
        # keys must be Python types (native or Annotated)
        # values must be SQLAlchemy types
        str: Text,
    }


class DeploymentTable(Base):
    __tablename__ = "deployments"
    __table_args__ = (UniqueConstraint("chain_id", "treasury"),)

    id: Mapped[PrimaryKeyInt]
    chain_id: Mapped[int]
    treasury: Mapped[Address]
    parameters_fingerprint: Mapped[str]
    stage: Mapped[int]
    pool_address: Mapped[Address | None]
    pool_id: Mapped[str | None] = mapped_column(String(66))
    join_tx_hash: Mapped[TransactionHash | None]
    join_block_number: Mapped[int | None]
    pending_transaction: Mapped[TransactionHash | None]
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )
