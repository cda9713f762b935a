from datetime import date
from decimal import Decimal

from investtrack.models.enums import TimeRange, ViewScope
from investtrack.services.metrics import (
    SnapshotMetrics,
    period_metrics,
    period_profit,
    return_rate,
    select_baseline,
    select_window,
    snapshot_metrics,
    window_start_month,
)
from investtrack.services.portfolio_types import HoldingRecord, PolicyLayer, PolicyTarget, PolicyVersion, Snapshot
from investtrack.utils.decimal_math import money, pct


def _record(asset_id: str, value: str, cost: str, category: str = "fund") -> HoldingRecord:
    return HoldingRecord(
        asset_id=asset_id,
        name=asset_id.upper(),
        category=category,
        unit_price=value,
        quantity="1",
        market_value=value,
        total_cost=cost,
    )


def _snapshot(month: str, *records: HoldingRecord) -> Snapshot:
    return Snapshot.from_records(id=f"s-{month}", month=month, records=records)


def _policy(version_id: str, start: str, *asset_ids: str) -> PolicyVersion:
    return PolicyVersion(
        id=version_id,
        name=version_id,
        start_date=start,
        layers=(
            PolicyLayer(
                id=f"{version_id}-core",
                name="Core",
                weight_pct=Decimal("100"),
                targets=tuple(
                    PolicyTarget(id=f"{version_id}-{asset_id}", asset_id=asset_id, name=asset_id, intra_layer_weight_pct=Decimal("-1"))
                    for asset_id in asset_ids
                ),
            ),
        ),
    )


HISTORY = (
    _snapshot("2023-11", _record("a", "1000", "1000")),
    _snapshot("2023-12", _record("a", "1100", "1000")),
    _snapshot("2024-01", _record("a", "1300", "1100"), _record("b", "500", "400")),
    _snapshot("2024-02", _record("a", "1500", "1200"), _record("b", "450", "400")),
)


def test_window_start_month_per_range() -> None:
    today = date(2024, 3, 10)
    assert window_start_month(TimeRange.all, today) is None
    assert window_start_month(TimeRange.ytd, today) == "2024-01"
    assert window_start_month(TimeRange.one_year, today) == "2023-03"


def test_baseline_is_predecessor_in_full_history() -> None:
    window = select_window(HISTORY, TimeRange.ytd, date(2024, 3, 10))
    assert [snapshot.month for snapshot in window] == ["2024-01", "2024-02"]
    assert select_baseline(HISTORY, window).month == "2023-12"
    assert select_baseline(HISTORY, select_window(HISTORY, TimeRange.all, date(2024, 3, 10))) is None


def test_windowed_profit_is_change_in_gain() -> None:
    result = period_metrics(HISTORY, (), ViewScope.total, TimeRange.ytd, date(2024, 3, 10))
    # Feb gain 350 minus Dec gain 100.
    assert result.profit == money("250")
    assert result.end_value == money("1950")
    assert result.end_invested == money("1600")
    assert result.return_rate == pct("15.625")
    assert result.baseline_month == "2023-12"
    assert result.windowed is True


def test_all_history_profit_is_end_gain() -> None:
    result = period_metrics(HISTORY, (), ViewScope.total, TimeRange.all, date(2024, 3, 10))
    assert result.profit == money("350")
    assert result.windowed is False
    assert result.baseline_month is None
    assert result.label == "All history"


def test_window_without_baseline_measures_from_zero() -> None:
    history = HISTORY[2:]
    ytd = period_metrics(history, (), ViewScope.total, TimeRange.ytd, date(2024, 6, 1))
    everything = period_metrics(history, (), ViewScope.total, TimeRange.all, date(2024, 6, 1))
    assert ytd.baseline_month is None
    assert ytd.profit == money("350")
    assert ytd.profit == everything.profit


def test_empty_window_covers_the_whole_history() -> None:
    window = select_window(HISTORY, TimeRange.ytd, date(2026, 5, 1))
    assert [snapshot.month for snapshot in window] == ["2023-11", "2023-12", "2024-01", "2024-02"]
    assert select_baseline(HISTORY, window) is None

    result = period_metrics(HISTORY, (), ViewScope.total, TimeRange.ytd, date(2026, 5, 1))
    assert result.window_start_month == "2023-11"
    assert result.end_month == "2024-02"
    assert result.baseline_month is None
    # Feb value 1950 less Feb invested 1600.
    assert result.profit == money("350")
    assert result.windowed is True


def test_no_history_yields_zeroes() -> None:
    result = period_metrics((), (), ViewScope.policy, TimeRange.one_year, date(2024, 1, 1))
    assert result.end_value == money(0)
    assert result.profit == money(0)
    assert result.return_rate == pct(0)
    assert result.end_month is None


def test_policy_scope_re_resolves_policy_per_snapshot() -> None:
    versions = (_policy("early", "2023-01-01", "a"), _policy("late", "2024-02-01", "b"))
    january = snapshot_metrics(HISTORY[2], ViewScope.policy, versions)
    february = snapshot_metrics(HISTORY[3], ViewScope.policy, versions)
    assert january == SnapshotMetrics(value=money("1300"), invested=money("1100"))
    assert february == SnapshotMetrics(value=money("450"), invested=money("400"))
    assert snapshot_metrics(HISTORY[3], ViewScope.total, versions).value == money("1950")


def test_return_rate_guards_zero_invested() -> None:
    end = SnapshotMetrics(value=money("10"), invested=money("0"))
    assert period_profit(None, end, windowed=True) == money("10")
    assert return_rate(money("10"), end) == pct(0)
    assert snapshot_metrics(None, ViewScope.total, ()) == SnapshotMetrics(value=money(0), invested=money(0))


def test_period_metrics_is_idempotent() -> None:
    args = (HISTORY, (), ViewScope.total, TimeRange.one_year, date(2024, 3, 10))
    assert period_metrics(*args) == period_metrics(*args)
