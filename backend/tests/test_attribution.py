from datetime import date
from decimal import Decimal

from investtrack.models.enums import ViewScope
from investtrack.services.attribution import TOTALS_ROW_ID, AttributionTable, attribution_breakdown
from investtrack.services.portfolio_types import (
    ROOT,
    HoldingRecord,
    LayerDrill,
    PolicyLayer,
    PolicyTarget,
    PolicyVersion,
    Snapshot,
)
from investtrack.utils.decimal_math import money


def _record(asset_id: str, category: str, value: str, cost: str) -> HoldingRecord:
    return HoldingRecord(
        asset_id=asset_id,
        name=asset_id.upper(),
        category=category,
        unit_price=value,
        quantity="1",
        market_value=value,
        total_cost=cost,
    )


def _layer(layer_id: str, *asset_ids: str) -> PolicyLayer:
    return PolicyLayer(
        id=layer_id,
        name=layer_id.title(),
        weight_pct=Decimal("30"),
        targets=tuple(
            PolicyTarget(id=f"t-{asset_id}", asset_id=asset_id, name=asset_id.upper(), intra_layer_weight_pct=Decimal("-1"))
            for asset_id in asset_ids
        ),
    )


POLICY = PolicyVersion(
    id="p",
    name="Policy",
    start_date=date(2024, 1, 1),
    layers=(_layer("growth", "x"), _layer("defensive", "c", "g"), _layer("empty", "z")),
)

START = Snapshot.from_records(
    id="start",
    month="2024-01",
    records=[
        _record("x", "fund", "500", "400"),
        _record("g", "gold", "200", "200"),
        _record("c", "fixed", "100", "100"),
    ],
)

END = Snapshot.from_records(
    id="end",
    month="2024-06",
    records=[
        _record("x", "fund", "700", "500"),
        _record("c", "fixed", "100", "100"),
        _record("o", "other", "0", "0"),
    ],
)


def _assert_totals_are_column_sums(table: AttributionTable) -> None:
    for column in ("end_value", "end_cost", "change_value", "change_input", "profit"):
        assert getattr(table.totals, column) == sum((getattr(row, column) for row in table.rows), money(0))
    assert table.totals.id == TOTALS_ROW_ID


def test_total_scope_drops_rows_that_are_zero_everywhere() -> None:
    table = attribution_breakdown(START, END, POLICY, ViewScope.total)
    assert [row.id for row in table.rows] == ["equity", "cash_fixed_income", "alternative"]

    equity, cash, alternative = table.rows
    assert (equity.end_value, equity.change_value, equity.change_input, equity.profit) == (
        money("700"),
        money("200"),
        money("100"),
        money("100"),
    )
    assert cash.change_value == money(0)
    assert alternative.end_value == money(0)
    assert alternative.change_value == money("-200")
    assert alternative.profit == money(0)
    _assert_totals_are_column_sums(table)
    assert table.totals.change_input == money("-100")


def test_policy_scope_keeps_configured_layers_without_holdings() -> None:
    table = attribution_breakdown(START, END, POLICY, ViewScope.policy, ROOT)
    assert [row.id for row in table.rows] == ["growth", "defensive", "empty"]
    growth, defensive, empty = table.rows
    assert growth.profit == money("100")
    assert defensive.change_input == money("-200")
    assert defensive.profit == money(0)
    assert empty.is_empty
    _assert_totals_are_column_sums(table)


def test_layer_drill_rows_are_targets_sorted_by_end_value() -> None:
    table = attribution_breakdown(START, END, POLICY, ViewScope.policy, LayerDrill("defensive"))
    assert [row.id for row in table.rows] == ["t-c", "t-g"]
    assert table.rows[1].end_value == money(0)
    assert table.rows[1].change_value == money("-200")
    _assert_totals_are_column_sums(table)


def test_missing_start_measures_from_zero() -> None:
    table = attribution_breakdown(None, END, POLICY, ViewScope.policy, ROOT)
    growth = table.rows[0]
    assert growth.change_value == money("700")
    assert growth.change_input == money("500")
    assert growth.profit == money("200")


def test_degenerate_inputs_give_empty_tables() -> None:
    for table in (
        attribution_breakdown(START, None, POLICY, ViewScope.total),
        attribution_breakdown(START, END, None, ViewScope.policy),
        attribution_breakdown(START, END, POLICY, ViewScope.policy, LayerDrill("missing")),
    ):
        assert table.rows == ()
        assert table.totals.profit == money(0)


def test_breakdown_is_idempotent() -> None:
    assert attribution_breakdown(START, END, POLICY, ViewScope.policy, ROOT) == attribution_breakdown(
        START, END, POLICY, ViewScope.policy, ROOT
    )
