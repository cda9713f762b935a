from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from investtrack.db.base import Base
from investtrack.models.enums import AssetCategory


class Snapshot(Base):
    __tablename__ = "snapshots"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    month: Mapped[str] = mapped_column(String(7), nullable=False, unique=True, index=True)
    note: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # Cached sums of the records; rewritten whenever a record changes.
    total_value: Mapped[Decimal] = mapped_column(Numeric(24, 2), default=0, nullable=False)
    total_invested: Mapped[Decimal] = mapped_column(Numeric(24, 2), default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    records: Mapped[list["HoldingRecord"]] = relationship(
        "HoldingRecord",
        back_populates="snapshot",
        cascade="all, delete-orphan",
        order_by="HoldingRecord.sort_order",
    )


class HoldingRecord(Base):
    __tablename__ = "holding_records"
    __table_args__ = (
        UniqueConstraint("snapshot_id", "asset_id", name="uq_holding_records_snapshot_asset"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    snapshot_id: Mapped[str] = mapped_column(
        ForeignKey("snapshots.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    asset_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    asset_name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[AssetCategory] = mapped_column(
        Enum(AssetCategory, name="asset_category"),
        nullable=False,
    )

    unit_price: Mapped[Decimal] = mapped_column(Numeric(24, 6), default=0, nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(24, 6), default=0, nullable=False)
    market_value: Mapped[Decimal] = mapped_column(Numeric(24, 2), default=0, nullable=False)
    total_cost: Mapped[Decimal] = mapped_column(Numeric(24, 2), default=0, nullable=False)
    added_quantity: Mapped[Decimal] = mapped_column(Numeric(24, 6), default=0, nullable=False)
    added_principal: Mapped[Decimal] = mapped_column(Numeric(24, 2), default=0, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    snapshot: Mapped["Snapshot"] = relationship("Snapshot", back_populates="records")
