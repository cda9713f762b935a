from fastapi import APIRouter, Depends, Query

from investtrack.api.deps import get_repository
from investtrack.models.enums import TimeRange, ViewScope
from investtrack.schemas.common import MONTH_REGEX
from investtrack.schemas.dashboard import AllocationSliceOut, BreakdownOut, MetricsOut, TrendPointOut
from investtrack.services.dashboard import (
    dashboard_allocation,
    dashboard_breakdown,
    dashboard_metrics,
    dashboard_trend,
)
from investtrack.services.portfolio_types import drill_for
from investtrack.services.repository import PortfolioRepository


router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/metrics", response_model=MetricsOut)
def get_metrics(
    scope: ViewScope = Query(default=ViewScope.policy),
    time_range: TimeRange = Query(default=TimeRange.all),
    repo: PortfolioRepository = Depends(get_repository),
):
    return MetricsOut.model_validate(dashboard_metrics(repo, scope=scope, time_range=time_range))


@router.get("/allocation", response_model=list[AllocationSliceOut])
def get_allocation(
    scope: ViewScope = Query(default=ViewScope.policy),
    layer_id: str | None = Query(default=None),
    repo: PortfolioRepository = Depends(get_repository),
):
    slices = dashboard_allocation(repo, scope=scope, drill=drill_for(layer_id))
    return [AllocationSliceOut.model_validate(item) for item in slices]


@router.get("/trend", response_model=list[TrendPointOut])
def get_trend(
    scope: ViewScope = Query(default=ViewScope.policy),
    time_range: TimeRange = Query(default=TimeRange.all),
    layer_id: str | None = Query(default=None),
    start_month: str | None = Query(default=None, pattern=MONTH_REGEX),
    repo: PortfolioRepository = Depends(get_repository),
):
    series = dashboard_trend(
        repo,
        scope=scope,
        drill=drill_for(layer_id),
        time_range=time_range,
        start_month=start_month,
    )
    return [TrendPointOut.model_validate(point) for point in series]


@router.get("/breakdown", response_model=BreakdownOut)
def get_breakdown(
    scope: ViewScope = Query(default=ViewScope.policy),
    time_range: TimeRange = Query(default=TimeRange.all),
    layer_id: str | None = Query(default=None),
    repo: PortfolioRepository = Depends(get_repository),
):
    table = dashboard_breakdown(repo, scope=scope, time_range=time_range, drill=drill_for(layer_id))
    return BreakdownOut.model_validate(table)
