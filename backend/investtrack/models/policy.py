from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, DateTime, Enum, ForeignKey, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from investtrack.db.base import Base
from investtrack.models.enums import PolicyStatus


class PolicyVersion(Base):
    __tablename__ = "policy_versions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    rationale: Mapped[str] = mapped_column(Text, nullable=False, default="")
    start_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    status: Mapped[PolicyStatus] = mapped_column(
        Enum(PolicyStatus, name="policy_status"),
        default=PolicyStatus.active,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    layers: Mapped[list["PolicyLayer"]] = relationship(
        "PolicyLayer",
        back_populates="version",
        cascade="all, delete-orphan",
        order_by="PolicyLayer.sort_order",
    )


class PolicyLayer(Base):
    __tablename__ = "policy_layers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    version_id: Mapped[str] = mapped_column(
        ForeignKey("policy_versions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # Percent of the whole portfolio.
    weight_pct: Mapped[Decimal] = mapped_column(Numeric(9, 4), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    version: Mapped["PolicyVersion"] = relationship("PolicyVersion", back_populates="layers")
    targets: Mapped[list["PolicyTarget"]] = relationship(
        "PolicyTarget",
        back_populates="layer",
        cascade="all, delete-orphan",
        order_by="PolicyTarget.sort_order",
    )


class PolicyTarget(Base):
    __tablename__ = "policy_targets"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    layer_id: Mapped[str] = mapped_column(
        ForeignKey("policy_layers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Not a foreign key: a deleted asset leaves the cached name in place.
    asset_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # Percent of the layer, or -1 for an auto-distributed share.
    intra_layer_weight_pct: Mapped[Decimal] = mapped_column(Numeric(9, 4), nullable=False)
    color: Mapped[str] = mapped_column(String(20), nullable=False, default="#94a3b8")
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    layer: Mapped["PolicyLayer"] = relationship("PolicyLayer", back_populates="targets")
