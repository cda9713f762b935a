from decimal import Decimal

import pytest

from investtrack.models.enums import AssetCategory, FlowDirection
from investtrack.services.ledger_replay import (
    FlowInput,
    rebuild_chain,
    replay_holding,
    replay_snapshot,
    signed_flow,
    summarize_records,
)
from investtrack.utils.decimal_math import money, qty


def test_cash_like_interest_is_implied_from_unmatched_quantity() -> None:
    result = replay_holding(
        category=AssetCategory.fixed,
        unit_price="1.37",
        added_quantity="5",
        added_principal="0",
        previous_quantity="1000",
        previous_cost="1000",
    )
    assert result.unit_price == qty(1)
    assert result.quantity == qty("1005")
    assert result.total_cost == money("1000")
    assert result.market_value == money("1005")
    assert result.implied_income == money("5")


def test_cash_like_fee_shows_as_negative_income() -> None:
    result = replay_holding(
        category=AssetCategory.wealth,
        unit_price="1",
        added_quantity="-2",
        added_principal="0",
        previous_quantity="500",
        previous_cost="500",
    )
    assert result.market_value == money("498")
    assert result.implied_income == money("-2")


def test_priced_asset_uses_supplied_price() -> None:
    result = replay_holding(
        category=AssetCategory.fund,
        unit_price="3.5",
        added_quantity="100",
        added_principal="340",
        previous_quantity="1000",
        previous_cost="3000",
    )
    assert result.quantity == qty("1100")
    assert result.total_cost == money("3340")
    assert result.market_value == money("3850")
    assert result.implied_income == money(0)


def test_signed_flow_turns_direction_into_signed_deltas() -> None:
    assert signed_flow(FlowDirection.buy, "10", "-250") == (qty("10"), money("250"))
    assert signed_flow("sell", "10", "250") == (qty("-10"), money("-250"))


def test_replay_snapshot_keeps_ledger_and_aggregate_invariants() -> None:
    january = replay_snapshot(
        snapshot_id="s1",
        month="2024-01",
        flows=[
            FlowInput(asset_id="etf", name="ETF", category="fund", unit_price="2", added_quantity="100", added_principal="200"),
            FlowInput(asset_id="cash", name="Cash", category="fixed", added_quantity="1000", added_principal="1000"),
        ],
        previous=None,
    )
    february = replay_snapshot(
        snapshot_id="s2",
        month="2024-02",
        flows=[
            FlowInput(asset_id="etf", name="ETF", category="fund", unit_price="2.5", added_quantity="-20", added_principal="-40"),
            FlowInput(asset_id="cash", name="Cash", category="fixed", added_quantity="5"),
        ],
        previous=january,
    )

    for record in february.records:
        prior = january.find_record(record.asset_id)
        assert record.quantity == prior.quantity + record.added_quantity
        assert record.total_cost == prior.total_cost + record.added_principal
    assert february.find_record("etf").market_value == money("200")
    assert february.find_record("cash").market_value == money("1005")
    assert february.total_value == sum(record.market_value for record in february.records)
    assert february.total_invested == sum(record.total_cost for record in february.records)
    assert summarize_records(february.records) == (february.total_value, february.total_invested)


def test_untouched_holdings_are_carried_forward_at_previous_price() -> None:
    january = replay_snapshot(
        snapshot_id="s1",
        month="2024-01",
        flows=[
            FlowInput(asset_id="gold", name="Gold", category="gold", unit_price="480", added_quantity="10", added_principal="4800"),
            FlowInput(asset_id="btc", name="BTC", category="crypto", unit_price="1000", added_quantity="1", added_principal="1000"),
        ],
        previous=None,
    )
    february = replay_snapshot(
        snapshot_id="s2",
        month="2024-02",
        flows=[FlowInput(asset_id="btc", name="BTC", category="crypto")],
        previous=january,
    )
    gold = february.find_record("gold")
    assert gold.quantity == qty("10")
    assert gold.unit_price == qty("480")
    assert gold.added_quantity == qty(0)
    assert february.find_record("btc").unit_price == qty("1000")


def test_fully_closed_position_with_no_flow_is_dropped_next_month() -> None:
    january = replay_snapshot(
        snapshot_id="s1",
        month="2024-01",
        flows=[FlowInput(asset_id="etf", name="ETF", category="fund", unit_price="1", added_quantity="10", added_principal="10")],
        previous=None,
    )
    february = replay_snapshot(
        snapshot_id="s2",
        month="2024-02",
        flows=[FlowInput(asset_id="etf", name="ETF", category="fund", unit_price="1", added_quantity="-10", added_principal="-10")],
        previous=january,
    )
    march = replay_snapshot(snapshot_id="s3", month="2024-03", flows=[], previous=february)
    assert february.find_record("etf") is not None
    assert march.records == ()
    assert march.total_value == money(0)


def test_duplicate_asset_in_one_snapshot_is_rejected() -> None:
    flow = FlowInput(asset_id="etf", name="ETF", category="fund", unit_price="1", added_quantity="1", added_principal="1")
    with pytest.raises(ValueError):
        replay_snapshot(snapshot_id="s1", month="2024-01", flows=[flow, flow], previous=None)


def test_rebuild_chain_propagates_an_earlier_edit() -> None:
    january = replay_snapshot(
        snapshot_id="s1",
        month="2024-01",
        flows=[FlowInput(asset_id="etf", name="ETF", category="fund", unit_price="1", added_quantity="100", added_principal="100")],
        previous=None,
    )
    february = replay_snapshot(
        snapshot_id="s2",
        month="2024-02",
        flows=[FlowInput(asset_id="etf", name="ETF", category="fund", unit_price="2", added_quantity="50", added_principal="100")],
        previous=january,
    )
    march = replay_snapshot(snapshot_id="s3", month="2024-03", flows=[], previous=february)

    edited = replay_snapshot(
        snapshot_id="s1",
        month="2024-01",
        flows=[FlowInput(asset_id="etf", name="ETF", category="fund", unit_price="1", added_quantity="200", added_principal="200")],
        previous=None,
    )
    rebuilt = rebuild_chain(edited, [february, march])

    assert [snapshot.id for snapshot in rebuilt] == ["s2", "s3"]
    assert rebuilt[0].find_record("etf").quantity == qty("250")
    assert rebuilt[0].find_record("etf").total_cost == money("300")
    assert rebuilt[1].find_record("etf").quantity == qty("250")
    assert rebuilt[1].total_value == money("500")
    assert rebuilt[1].total_invested == money("300")


def test_flow_fields_are_validated_on_construction() -> None:
    with pytest.raises(ValueError):
        FlowInput(asset_id="a", name="A", category="fund", added_quantity="lots")
    with pytest.raises(ValueError):
        FlowInput(asset_id="a", name="A", category="shares")
    assert isinstance(FlowInput(asset_id="a", name="A", category="fund").added_principal, Decimal)
