from __future__ import annotations

from datetime import date

from investtrack.models.enums import TimeRange, ViewScope
from investtrack.services.allocation import AllocationSlice, allocation_breakdown
from investtrack.services.attribution import AttributionTable, attribution_breakdown
from investtrack.services.metrics import PeriodMetrics, period_metrics, select_baseline, select_window, window_start_month
from investtrack.services.policy_resolver import resolve_policy
from investtrack.services.portfolio_types import ROOT, DrillScope, Snapshot
from investtrack.services.repository import PortfolioRepository
from investtrack.services.trend import TrendSeries, build_trend_series


def _latest(summaries: tuple[Snapshot, ...]) -> Snapshot | None:
    if not summaries:
        return None
    return max(summaries, key=lambda snapshot: snapshot.month)


def _history_for(repo: PortfolioRepository, scope: ViewScope) -> tuple[Snapshot, ...]:
    # The total scope only reads cached aggregates.
    if ViewScope(scope) == ViewScope.total:
        return repo.list_snapshot_summaries()
    return repo.list_snapshot_history()


def dashboard_metrics(
    repo: PortfolioRepository,
    *,
    scope: ViewScope,
    time_range: TimeRange,
    today: date | None = None,
) -> PeriodMetrics:
    return period_metrics(
        _history_for(repo, scope),
        repo.list_policy_versions(),
        scope,
        time_range,
        today or date.today(),
    )


def dashboard_allocation(
    repo: PortfolioRepository,
    *,
    scope: ViewScope,
    drill: DrillScope = ROOT,
) -> tuple[AllocationSlice, ...]:
    """Allocation of the latest snapshot under the policy in force at its month."""
    latest = _latest(repo.list_snapshot_summaries())
    if latest is None:
        return ()
    end = repo.get_snapshot_detail(latest.id)
    policy = resolve_policy(repo.list_policy_versions(), end.month)
    return allocation_breakdown(end, policy, scope, drill)


def dashboard_trend(
    repo: PortfolioRepository,
    *,
    scope: ViewScope,
    drill: DrillScope = ROOT,
    time_range: TimeRange = TimeRange.all,
    start_month: str | None = None,
    today: date | None = None,
) -> TrendSeries:
    """Monthly trend; an explicit ``start_month`` wins over ``time_range``."""
    if start_month is None:
        start_month = window_start_month(time_range, today or date.today())
    return build_trend_series(
        _history_for(repo, scope),
        repo.list_policy_versions(),
        scope,
        drill,
        start_month=start_month,
    )


def dashboard_breakdown(
    repo: PortfolioRepository,
    *,
    scope: ViewScope,
    time_range: TimeRange,
    drill: DrillScope = ROOT,
    today: date | None = None,
) -> AttributionTable:
    """Attribution between the window's baseline and its last snapshot."""
    summaries = repo.list_snapshot_summaries()
    window = select_window(summaries, time_range, today or date.today())
    if not window:
        return attribution_breakdown(None, None, None, scope, drill)

    end = repo.get_snapshot_detail(window[-1].id)
    start = None
    if TimeRange(time_range) != TimeRange.all:
        baseline = select_baseline(summaries, window)
        if baseline is not None:
            start = repo.get_snapshot_detail(baseline.id)
    policy = resolve_policy(repo.list_policy_versions(), end.month)
    return attribution_breakdown(start, end, policy, scope, drill)
