from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Iterator, Sequence

from investtrack.models.enums import ViewScope
from investtrack.services.policy_resolver import build_asset_map, layer_asset_ids, resolve_policy
from investtrack.services.portfolio_types import (
    ROOT,
    DrillScope,
    LayerDrill,
    PolicyVersion,
    RootDrill,
    Snapshot,
)
from investtrack.utils.decimal_math import money


@dataclass(frozen=True)
class TrendPoint:
    month: str
    value: Decimal
    invested: Decimal


@dataclass(frozen=True)
class TrendSeries:
    points: tuple[TrendPoint, ...] = ()

    def __iter__(self) -> Iterator[TrendPoint]:
        return iter(self.points)

    def __len__(self) -> int:
        return len(self.points)

    def __getitem__(self, index: int) -> TrendPoint:
        return self.points[index]


def _policy_point(
    snapshot: Snapshot,
    versions: Sequence[PolicyVersion],
    layer_members: frozenset[str] | None,
) -> TrendPoint:
    asset_map = build_asset_map(resolve_policy(versions, snapshot.month))
    value = money(0)
    invested = money(0)
    for record in snapshot.records:
        if record.asset_id not in asset_map:
            continue
        if layer_members is not None and record.asset_id not in layer_members:
            continue
        value = money(value + record.market_value)
        invested = money(invested + record.total_cost)
    return TrendPoint(month=snapshot.month, value=value, invested=invested)


def build_trend_series(
    snapshots: Iterable[Snapshot],
    versions: Sequence[PolicyVersion],
    scope: ViewScope,
    drill: DrillScope = ROOT,
    end_policy: PolicyVersion | None = None,
    start_month: str | None = None,
) -> TrendSeries:
    """One (month, value, invested) point per snapshot, ascending by month.

    For the policy scope every point re-resolves the policy in force at its
    own month. Drilling into a layer additionally restricts every point to
    the assets that layer holds in ``end_policy`` (the policy in force at the
    end of the range, resolved from the latest snapshot when not given), so
    an asset that joined the layer later contributes zero to earlier points.
    """
    ordered = sorted(snapshots, key=lambda snapshot: snapshot.month)
    scope = ViewScope(scope)

    layer_members: frozenset[str] | None = None
    if scope == ViewScope.policy and isinstance(drill, LayerDrill):
        if end_policy is None and ordered:
            end_policy = resolve_policy(versions, ordered[-1].month)
        layer_members = layer_asset_ids(end_policy, drill.layer_id)
    elif not isinstance(drill, (RootDrill, LayerDrill)):
        raise TypeError(f"Unsupported drill scope: {drill!r}")

    if start_month is not None:
        ordered = [snapshot for snapshot in ordered if snapshot.month >= start_month]

    points: list[TrendPoint] = []
    for snapshot in ordered:
        if scope == ViewScope.total:
            points.append(
                TrendPoint(
                    month=snapshot.month,
                    value=money(snapshot.total_value),
                    invested=money(snapshot.total_invested),
                )
            )
        else:
            points.append(_policy_point(snapshot, versions, layer_members))
    return TrendSeries(points=tuple(points))
