from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Sequence

from investtrack.models.enums import ViewScope
from investtrack.services.policy_resolver import build_asset_map
from investtrack.services.portfolio_types import (
    BUCKET_COLORS,
    BUCKET_LABELS,
    BUCKET_ORDER,
    ROOT,
    DrillScope,
    HoldingRecord,
    LayerDrill,
    PolicyVersion,
    RootDrill,
    Snapshot,
    layer_color,
)
from investtrack.utils.decimal_math import money


TOTALS_ROW_ID = "total"


@dataclass(frozen=True)
class AttributionRow:
    id: str
    name: str
    color: str
    end_value: Decimal
    end_cost: Decimal
    change_value: Decimal
    change_input: Decimal
    profit: Decimal

    @property
    def is_empty(self) -> bool:
        return self.end_value == 0 and self.change_value == 0 and self.profit == 0


@dataclass(frozen=True)
class AttributionTable:
    rows: tuple[AttributionRow, ...]
    totals: AttributionRow


@dataclass(frozen=True)
class _Stats:
    value: Decimal
    cost: Decimal


RecordFilter = Callable[[HoldingRecord], bool]


def _stats(snapshot: Snapshot | None, include: RecordFilter) -> _Stats:
    value = money(0)
    cost = money(0)
    if snapshot is None:
        return _Stats(value=value, cost=cost)
    for record in snapshot.records:
        if include(record):
            value = money(value + record.market_value)
            cost = money(cost + record.total_cost)
    return _Stats(value=value, cost=cost)


def _row(
    *,
    id: str,
    name: str,
    color: str,
    start: Snapshot | None,
    end: Snapshot,
    include: RecordFilter,
) -> AttributionRow:
    end_stats = _stats(end, include)
    start_stats = _stats(start, include)
    return AttributionRow(
        id=id,
        name=name,
        color=color,
        end_value=end_stats.value,
        end_cost=end_stats.cost,
        change_value=money(end_stats.value - start_stats.value),
        change_input=money(end_stats.cost - start_stats.cost),
        profit=money((end_stats.value - end_stats.cost) - (start_stats.value - start_stats.cost)),
    )


def _totals(rows: Sequence[AttributionRow]) -> AttributionRow:
    # Column sums of the displayed rows, never recomputed from the snapshots.
    return AttributionRow(
        id=TOTALS_ROW_ID,
        name="Total",
        color="",
        end_value=money(sum((row.end_value for row in rows), money(0))),
        end_cost=money(sum((row.end_cost for row in rows), money(0))),
        change_value=money(sum((row.change_value for row in rows), money(0))),
        change_input=money(sum((row.change_input for row in rows), money(0))),
        profit=money(sum((row.profit for row in rows), money(0))),
    )


def _table(rows: Sequence[AttributionRow]) -> AttributionTable:
    return AttributionTable(rows=tuple(rows), totals=_totals(rows))


def _bucket_rows(start: Snapshot | None, end: Snapshot) -> list[AttributionRow]:
    rows = [
        _row(
            id=bucket.value,
            name=BUCKET_LABELS[bucket],
            color=BUCKET_COLORS[bucket],
            start=start,
            end=end,
            include=lambda record, bucket=bucket: record.bucket == bucket,
        )
        for bucket in BUCKET_ORDER
    ]
    kept = [row for row in rows if not row.is_empty]
    return sorted(kept, key=lambda row: row.end_value, reverse=True)


def _layer_rows(start: Snapshot | None, end: Snapshot, policy: PolicyVersion) -> list[AttributionRow]:
    asset_map = build_asset_map(policy)

    def in_layer(layer_id: str) -> RecordFilter:
        def include(record: HoldingRecord) -> bool:
            mapping = asset_map.get(record.asset_id)
            return mapping is not None and mapping.layer_id == layer_id

        return include

    return [
        _row(
            id=layer.id,
            name=layer.name,
            color=layer_color(index),
            start=start,
            end=end,
            include=in_layer(layer.id),
        )
        for index, layer in enumerate(policy.layers)
    ]


def _target_rows(
    start: Snapshot | None,
    end: Snapshot,
    policy: PolicyVersion,
    layer_id: str,
) -> list[AttributionRow]:
    layer = policy.find_layer(layer_id)
    if layer is None:
        return []
    rows = [
        _row(
            id=target.id,
            name=target.name,
            color=target.color,
            start=start,
            end=end,
            include=lambda record, asset_id=target.asset_id: record.asset_id == asset_id,
        )
        for target in layer.targets
    ]
    return sorted(rows, key=lambda row: row.end_value, reverse=True)


def attribution_breakdown(
    start: Snapshot | None,
    end: Snapshot | None,
    policy: PolicyVersion | None,
    scope: ViewScope,
    drill: DrillScope = ROOT,
) -> AttributionTable:
    """Split the window's value change into net capital flow and profit.

    ``start`` is the baseline snapshot (``None`` measures from zero) and
    ``policy`` the policy in force at ``end``. Category rows that are zero in
    every column are dropped; layer and target rows are always kept so a
    configured entity with no holdings still shows up.
    """
    if end is None:
        return _table([])
    if ViewScope(scope) == ViewScope.total:
        return _table(_bucket_rows(start, end))
    if policy is None:
        return _table([])
    if isinstance(drill, RootDrill):
        return _table(_layer_rows(start, end, policy))
    if isinstance(drill, LayerDrill):
        return _table(_target_rows(start, end, policy, drill.layer_id))
    raise TypeError(f"Unsupported drill scope: {drill!r}")
