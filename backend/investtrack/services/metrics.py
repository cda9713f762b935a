from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, Sequence

from investtrack.models.enums import TimeRange, ViewScope
from investtrack.services.policy_resolver import build_asset_map, resolve_policy
from investtrack.services.portfolio_types import PolicyVersion, Snapshot
from investtrack.utils.decimal_math import money, safe_pct


PERIOD_LABELS: dict[TimeRange, str] = {
    TimeRange.all: "All history",
    TimeRange.ytd: "Year to date",
    TimeRange.one_year: "Last 12 months",
}


@dataclass(frozen=True)
class SnapshotMetrics:
    value: Decimal
    invested: Decimal

    @property
    def gain(self) -> Decimal:
        return money(self.value - self.invested)


ZERO_METRICS = SnapshotMetrics(value=money(0), invested=money(0))


@dataclass(frozen=True)
class PeriodMetrics:
    label: str
    end_value: Decimal
    end_invested: Decimal
    profit: Decimal
    return_rate: Decimal
    windowed: bool
    end_month: str | None = None
    window_start_month: str | None = None
    baseline_month: str | None = None


def snapshot_metrics(
    snapshot: Snapshot | None,
    scope: ViewScope,
    versions: Iterable[PolicyVersion],
) -> SnapshotMetrics:
    """Value and invested capital of one snapshot within ``scope``.

    The policy scope sums only records mapped by the policy in force at the
    snapshot's own month, which is not necessarily the policy in force at the
    end of the report.
    """
    if snapshot is None:
        return ZERO_METRICS
    if ViewScope(scope) == ViewScope.total:
        return SnapshotMetrics(value=money(snapshot.total_value), invested=money(snapshot.total_invested))

    asset_map = build_asset_map(resolve_policy(versions, snapshot.month))
    value = money(0)
    invested = money(0)
    for record in snapshot.records:
        if record.asset_id not in asset_map:
            continue
        value = money(value + record.market_value)
        invested = money(invested + record.total_cost)
    return SnapshotMetrics(value=value, invested=invested)


def period_profit(start: SnapshotMetrics | None, end: SnapshotMetrics, windowed: bool) -> Decimal:
    if not windowed:
        return end.gain
    baseline = start if start is not None else ZERO_METRICS
    return money(end.gain - baseline.gain)


def return_rate(profit: Decimal, end: SnapshotMetrics) -> Decimal:
    return safe_pct(profit, end.invested)


def window_start_month(time_range: TimeRange, today: date) -> str | None:
    time_range = TimeRange(time_range)
    if time_range == TimeRange.ytd:
        return f"{today.year:04d}-01"
    if time_range == TimeRange.one_year:
        return f"{today.year - 1:04d}-{today.month:02d}"
    return None


def _chronological(history: Iterable[Snapshot]) -> list[Snapshot]:
    # Month strings sort lexically in chronological order.
    return sorted(history, key=lambda snapshot: snapshot.month)


def select_window(history: Iterable[Snapshot], time_range: TimeRange, today: date) -> tuple[Snapshot, ...]:
    ordered = _chronological(history)
    start_month = window_start_month(time_range, today)
    if start_month is None:
        return tuple(ordered)
    window = [snapshot for snapshot in ordered if snapshot.month >= start_month]
    if not window:
        # Nothing recorded since the window opened: report over the whole history.
        return tuple(ordered)
    return tuple(window)


def select_baseline(history: Iterable[Snapshot], window: Sequence[Snapshot]) -> Snapshot | None:
    """Snapshot immediately preceding the window's first element in full history."""
    if not window:
        return None
    ordered = _chronological(history)
    first = window[0]
    for index, snapshot in enumerate(ordered):
        if snapshot.id == first.id:
            return ordered[index - 1] if index > 0 else None
    earlier = [snapshot for snapshot in ordered if snapshot.month < first.month]
    return earlier[-1] if earlier else None


def period_metrics(
    history: Sequence[Snapshot],
    versions: Sequence[PolicyVersion],
    scope: ViewScope,
    time_range: TimeRange,
    today: date,
) -> PeriodMetrics:
    time_range = TimeRange(time_range)
    label = PERIOD_LABELS[time_range]
    windowed = time_range != TimeRange.all
    window = select_window(history, time_range, today)
    if not window:
        return PeriodMetrics(
            label=label,
            end_value=money(0),
            end_invested=money(0),
            profit=money(0),
            return_rate=safe_pct(money(0), money(0)),
            windowed=windowed,
        )

    end_snapshot = window[-1]
    baseline = select_baseline(history, window) if windowed else None
    end = snapshot_metrics(end_snapshot, scope, versions)
    start = snapshot_metrics(baseline, scope, versions) if baseline is not None else None
    profit = period_profit(start, end, windowed)

    return PeriodMetrics(
        label=label,
        end_value=end.value,
        end_invested=end.invested,
        profit=profit,
        return_rate=return_rate(profit, end),
        windowed=windowed,
        end_month=end_snapshot.month,
        window_start_month=window[0].month,
        baseline_month=baseline.month if baseline is not None else None,
    )
