"""Plain-data types shared by the analytics engine.

Every engine operation takes and returns these frozen dataclasses. They are
built by the repository from ORM rows (or directly in tests) and never hold
references to sessions, caches or other live resources.

Numeric fields are coerced to ``Decimal`` on construction so a collaborator
that hands over a non-numeric weight or price fails immediately rather than
producing a silently wrong report.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal

from investtrack.models.enums import AssetCategory, CategoryBucket, PolicyStatus
from investtrack.utils.decimal_math import ZERO, money, qty, to_decimal


# Target weight meaning "share the layer's unclaimed weight equally".
AUTO_WEIGHT = Decimal("-1")

MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")

CASH_LIKE_CATEGORIES = frozenset({AssetCategory.fixed, AssetCategory.wealth})

CATEGORY_BUCKETS: dict[AssetCategory, CategoryBucket] = {
    AssetCategory.security: CategoryBucket.equity,
    AssetCategory.fund: CategoryBucket.equity,
    AssetCategory.fixed: CategoryBucket.cash_fixed_income,
    AssetCategory.wealth: CategoryBucket.cash_fixed_income,
    AssetCategory.gold: CategoryBucket.alternative,
    AssetCategory.crypto: CategoryBucket.alternative,
    AssetCategory.other: CategoryBucket.other,
}

BUCKET_ORDER: tuple[CategoryBucket, ...] = (
    CategoryBucket.equity,
    CategoryBucket.cash_fixed_income,
    CategoryBucket.alternative,
    CategoryBucket.other,
)

BUCKET_LABELS: dict[CategoryBucket, str] = {
    CategoryBucket.equity: "Equities & Funds",
    CategoryBucket.cash_fixed_income: "Cash & Fixed Income",
    CategoryBucket.alternative: "Commodities & Alternatives",
    CategoryBucket.other: "Other",
}

BUCKET_COLORS: dict[CategoryBucket, str] = {
    CategoryBucket.equity: "#3b82f6",
    CategoryBucket.alternative: "#f59e0b",
    CategoryBucket.cash_fixed_income: "#64748b",
    CategoryBucket.other: "#a855f7",
}

LAYER_COLORS: tuple[str, ...] = ("#3b82f6", "#f59e0b", "#10b981", "#ef4444", "#8b5cf6", "#64748b")
DEFAULT_TARGET_COLOR = "#94a3b8"


def validate_month(value: str) -> str:
    if not isinstance(value, str) or not MONTH_PATTERN.match(value):
        raise ValueError(f"Month must be formatted as YYYY-MM, got {value!r}.")
    return value


def coerce_category(value: AssetCategory | str) -> AssetCategory:
    if isinstance(value, AssetCategory):
        return value
    return AssetCategory(value)


def bucket_for(category: AssetCategory | str) -> CategoryBucket:
    return CATEGORY_BUCKETS[coerce_category(category)]


def layer_color(index: int) -> str:
    return LAYER_COLORS[index % len(LAYER_COLORS)]


@dataclass(frozen=True)
class Asset:
    id: str
    category: AssetCategory
    name: str
    ticker: str | None = None
    note: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "category", coerce_category(self.category))


@dataclass(frozen=True)
class PolicyTarget:
    id: str
    asset_id: str
    name: str
    intra_layer_weight_pct: Decimal
    color: str = DEFAULT_TARGET_COLOR
    note: str | None = None

    def __post_init__(self) -> None:
        weight = to_decimal(self.intra_layer_weight_pct)
        if weight < 0 and weight != AUTO_WEIGHT:
            raise ValueError(
                f"Target {self.id} weight must be >= 0 or the auto sentinel {AUTO_WEIGHT}, got {weight}."
            )
        object.__setattr__(self, "intra_layer_weight_pct", weight)

    @property
    def is_auto(self) -> bool:
        return self.intra_layer_weight_pct == AUTO_WEIGHT


@dataclass(frozen=True)
class PolicyLayer:
    id: str
    name: str
    weight_pct: Decimal
    targets: tuple[PolicyTarget, ...] = ()
    description: str | None = None

    def __post_init__(self) -> None:
        weight = to_decimal(self.weight_pct)
        if weight < 0:
            raise ValueError(f"Layer {self.id} weight must be >= 0, got {weight}.")
        object.__setattr__(self, "weight_pct", weight)
        object.__setattr__(self, "targets", tuple(self.targets))


@dataclass(frozen=True)
class PolicyVersion:
    id: str
    name: str
    start_date: date
    status: PolicyStatus = PolicyStatus.active
    layers: tuple[PolicyLayer, ...] = ()
    rationale: str = ""

    def __post_init__(self) -> None:
        if isinstance(self.start_date, str):
            object.__setattr__(self, "start_date", date.fromisoformat(self.start_date))
        elif not isinstance(self.start_date, date):
            raise TypeError(f"start_date must be a date, got {self.start_date!r}.")
        object.__setattr__(self, "status", PolicyStatus(self.status))
        object.__setattr__(self, "layers", tuple(self.layers))

    def find_layer(self, layer_id: str) -> PolicyLayer | None:
        for layer in self.layers:
            if layer.id == layer_id:
                return layer
        return None


@dataclass(frozen=True)
class HoldingRecord:
    asset_id: str
    name: str
    category: AssetCategory
    unit_price: Decimal
    quantity: Decimal
    market_value: Decimal
    total_cost: Decimal
    added_quantity: Decimal = ZERO
    added_principal: Decimal = ZERO
    id: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "category", coerce_category(self.category))
        object.__setattr__(self, "unit_price", qty(self.unit_price))
        object.__setattr__(self, "quantity", qty(self.quantity))
        object.__setattr__(self, "added_quantity", qty(self.added_quantity))
        object.__setattr__(self, "market_value", money(self.market_value))
        object.__setattr__(self, "total_cost", money(self.total_cost))
        object.__setattr__(self, "added_principal", money(self.added_principal))

    @property
    def bucket(self) -> CategoryBucket:
        return bucket_for(self.category)


@dataclass(frozen=True)
class Snapshot:
    id: str
    month: str
    total_value: Decimal
    total_invested: Decimal
    records: tuple[HoldingRecord, ...] = ()
    note: str = ""

    def __post_init__(self) -> None:
        validate_month(self.month)
        object.__setattr__(self, "total_value", money(self.total_value))
        object.__setattr__(self, "total_invested", money(self.total_invested))
        object.__setattr__(self, "records", tuple(self.records))

    @classmethod
    def from_records(
        cls,
        *,
        id: str,
        month: str,
        records: tuple[HoldingRecord, ...] | list[HoldingRecord],
        note: str = "",
    ) -> "Snapshot":
        records = tuple(records)
        return cls(
            id=id,
            month=month,
            total_value=money(sum((record.market_value for record in records), ZERO)),
            total_invested=money(sum((record.total_cost for record in records), ZERO)),
            records=records,
            note=note,
        )

    def summary(self) -> "Snapshot":
        return replace(self, records=())

    def find_record(self, asset_id: str) -> HoldingRecord | None:
        for record in self.records:
            if record.asset_id == asset_id:
                return record
        return None


@dataclass(frozen=True)
class RootDrill:
    """Top of the allocation drill-down: groups are whole layers or buckets."""


@dataclass(frozen=True)
class LayerDrill:
    """Drilled into one policy layer: groups are that layer's targets."""

    layer_id: str


DrillScope = RootDrill | LayerDrill

ROOT = RootDrill()


def drill_for(layer_id: str | None) -> DrillScope:
    if layer_id:
        return LayerDrill(layer_id=layer_id)
    return ROOT
