from decimal import Decimal

from investtrack.schemas.common import ORMModel


class MetricsOut(ORMModel):
    label: str
    end_value: Decimal
    end_invested: Decimal
    profit: Decimal
    return_rate: Decimal
    windowed: bool
    end_month: str | None = None
    window_start_month: str | None = None
    baseline_month: str | None = None


class AllocationSliceOut(ORMModel):
    id: str
    name: str
    value: Decimal
    percent: Decimal
    color: str
    is_layer: bool = False
    target_percent: Decimal | None = None
    deviation: Decimal | None = None


class TrendPointOut(ORMModel):
    month: str
    value: Decimal
    invested: Decimal


class AttributionRowOut(ORMModel):
    id: str
    name: str
    color: str
    end_value: Decimal
    end_cost: Decimal
    change_value: Decimal
    change_input: Decimal
    profit: Decimal


class BreakdownOut(ORMModel):
    rows: list[AttributionRowOut]
    totals: AttributionRowOut
