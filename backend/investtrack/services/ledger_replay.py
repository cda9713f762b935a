"""Replay of period flows into point-in-time holdings.

A holding record only stores what happened this period (signed quantity and
principal deltas plus the month's unit price). Cumulative quantity and cost
come from the same asset in the chronologically preceding snapshot, so a
snapshot is always rebuilt from its predecessor and later snapshots must be
rebuilt again whenever an earlier month is edited.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Sequence

from investtrack.models.enums import AssetCategory, FlowDirection
from investtrack.services.portfolio_types import (
    CASH_LIKE_CATEGORIES,
    HoldingRecord,
    Snapshot,
    coerce_category,
)
from investtrack.utils.decimal_math import ZERO, money, qty, to_decimal


CASH_UNIT_PRICE = Decimal("1")


@dataclass(frozen=True)
class LedgerResult:
    unit_price: Decimal
    quantity: Decimal
    total_cost: Decimal
    market_value: Decimal
    implied_income: Decimal


@dataclass(frozen=True)
class FlowInput:
    asset_id: str
    name: str
    category: AssetCategory
    unit_price: Decimal | None = None
    added_quantity: Decimal = ZERO
    added_principal: Decimal = ZERO
    record_id: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "category", coerce_category(self.category))
        if self.unit_price is not None:
            object.__setattr__(self, "unit_price", qty(self.unit_price))
        object.__setattr__(self, "added_quantity", qty(self.added_quantity))
        object.__setattr__(self, "added_principal", money(self.added_principal))


def is_cash_like(category: AssetCategory | str) -> bool:
    return coerce_category(category) in CASH_LIKE_CATEGORIES


def signed_flow(
    direction: FlowDirection | str,
    quantity_change: Decimal | int | float | str,
    principal_change: Decimal | int | float | str,
) -> tuple[Decimal, Decimal]:
    sign = Decimal("-1") if FlowDirection(direction) == FlowDirection.sell else Decimal("1")
    return (
        qty(abs(to_decimal(quantity_change)) * sign),
        money(abs(to_decimal(principal_change)) * sign),
    )


def replay_holding(
    *,
    category: AssetCategory | str,
    unit_price: Decimal | int | float | str,
    added_quantity: Decimal | int | float | str,
    added_principal: Decimal | int | float | str,
    previous_quantity: Decimal | int | float | str = ZERO,
    previous_cost: Decimal | int | float | str = ZERO,
) -> LedgerResult:
    cash_like = is_cash_like(category)
    price = CASH_UNIT_PRICE if cash_like else qty(unit_price)
    quantity_delta = qty(added_quantity)
    principal_delta = money(added_principal)

    quantity = qty(to_decimal(previous_quantity) + quantity_delta)
    total_cost = money(to_decimal(previous_cost) + principal_delta)
    implied_income = money(quantity_delta - principal_delta) if cash_like else money(0)

    return LedgerResult(
        unit_price=qty(price),
        quantity=quantity,
        total_cost=total_cost,
        market_value=money(quantity * price),
        implied_income=implied_income,
    )


def _is_empty(record: HoldingRecord) -> bool:
    return (
        record.quantity == 0
        and record.total_cost == 0
        and record.added_quantity == 0
        and record.added_principal == 0
    )


def _record_from_flow(flow: FlowInput, previous: HoldingRecord | None) -> HoldingRecord:
    if flow.unit_price is not None:
        price = flow.unit_price
    elif previous is not None:
        price = previous.unit_price
    else:
        price = ZERO
    result = replay_holding(
        category=flow.category,
        unit_price=price,
        added_quantity=flow.added_quantity,
        added_principal=flow.added_principal,
        previous_quantity=previous.quantity if previous is not None else ZERO,
        previous_cost=previous.total_cost if previous is not None else ZERO,
    )
    return HoldingRecord(
        id=flow.record_id,
        asset_id=flow.asset_id,
        name=flow.name,
        category=flow.category,
        unit_price=result.unit_price,
        quantity=result.quantity,
        market_value=result.market_value,
        total_cost=result.total_cost,
        added_quantity=flow.added_quantity,
        added_principal=flow.added_principal,
    )


def replay_snapshot(
    *,
    snapshot_id: str,
    month: str,
    flows: Iterable[FlowInput],
    previous: Snapshot | None,
    note: str = "",
) -> Snapshot:
    """Build a snapshot from this month's flows and the preceding snapshot.

    - A flow without a unit price reuses the previous month's price.
    - Holdings from ``previous`` with no flow this month are carried forward
      unchanged at their previous price.
    - Records with nothing held, no cost and no flow are dropped.
    """
    records: list[HoldingRecord] = []
    seen: set[str] = set()
    for flow in flows:
        if flow.asset_id in seen:
            raise ValueError(f"Asset {flow.asset_id} appears more than once in snapshot {month}.")
        seen.add(flow.asset_id)
        prior = previous.find_record(flow.asset_id) if previous is not None else None
        record = _record_from_flow(flow, prior)
        if not _is_empty(record):
            records.append(record)

    if previous is not None:
        for prior in previous.records:
            if prior.asset_id in seen:
                continue
            carried = _record_from_flow(
                FlowInput(asset_id=prior.asset_id, name=prior.name, category=prior.category),
                prior,
            )
            if not _is_empty(carried):
                records.append(carried)

    return Snapshot.from_records(id=snapshot_id, month=month, records=records, note=note)


def flows_from_snapshot(snapshot: Snapshot) -> tuple[FlowInput, ...]:
    return tuple(
        FlowInput(
            asset_id=record.asset_id,
            name=record.name,
            category=record.category,
            unit_price=record.unit_price,
            added_quantity=record.added_quantity,
            added_principal=record.added_principal,
            record_id=record.id,
        )
        for record in snapshot.records
    )


def rebuild_chain(previous: Snapshot | None, later: Sequence[Snapshot]) -> list[Snapshot]:
    """Re-replay ``later`` (ascending by month) on top of ``previous``."""
    rebuilt: list[Snapshot] = []
    anchor = previous
    for snapshot in later:
        replayed = replay_snapshot(
            snapshot_id=snapshot.id,
            month=snapshot.month,
            flows=flows_from_snapshot(snapshot),
            previous=anchor,
            note=snapshot.note,
        )
        rebuilt.append(replayed)
        anchor = replayed
    return rebuilt


def summarize_records(records: Iterable[HoldingRecord]) -> tuple[Decimal, Decimal]:
    total_value = money(0)
    total_invested = money(0)
    for record in records:
        total_value = money(total_value + record.market_value)
        total_invested = money(total_invested + record.total_cost)
    return total_value, total_invested
