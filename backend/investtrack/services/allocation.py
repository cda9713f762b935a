from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from investtrack.models.enums import CategoryBucket, ViewScope
from investtrack.services.policy_resolver import build_asset_map
from investtrack.services.portfolio_types import (
    BUCKET_COLORS,
    BUCKET_LABELS,
    BUCKET_ORDER,
    ROOT,
    DrillScope,
    LayerDrill,
    PolicyLayer,
    PolicyVersion,
    RootDrill,
    Snapshot,
    layer_color,
)
from investtrack.utils.decimal_math import HUNDRED, ZERO, money, pct, safe_pct


@dataclass(frozen=True)
class AllocationSlice:
    id: str
    name: str
    value: Decimal
    percent: Decimal
    color: str
    is_layer: bool = False
    target_percent: Decimal | None = None
    deviation: Decimal | None = None


def resolve_target_weights(layer: PolicyLayer) -> dict[str, Decimal]:
    """Intra-layer target weight for every target, keyed by target id.

    Auto targets split whatever the explicit weights leave of 100 equally,
    floored at zero when explicit weights already exceed 100.
    """
    explicit_total = sum(
        (target.intra_layer_weight_pct for target in layer.targets if not target.is_auto),
        ZERO,
    )
    auto_count = sum(1 for target in layer.targets if target.is_auto)
    remaining = max(ZERO, HUNDRED - explicit_total)
    auto_weight = remaining / auto_count if auto_count else ZERO
    return {
        target.id: pct(auto_weight if target.is_auto else target.intra_layer_weight_pct)
        for target in layer.targets
    }


def _bucket_slices(snapshot: Snapshot) -> tuple[AllocationSlice, ...]:
    values: dict[CategoryBucket, Decimal] = {}
    for record in snapshot.records:
        values[record.bucket] = money(values.get(record.bucket, money(0)) + record.market_value)

    slices = [
        AllocationSlice(
            id=bucket.value,
            name=BUCKET_LABELS[bucket],
            value=values[bucket],
            percent=safe_pct(values[bucket], snapshot.total_value),
            color=BUCKET_COLORS[bucket],
        )
        for bucket in BUCKET_ORDER
        if bucket in values
    ]
    return tuple(sorted(slices, key=lambda item: item.value, reverse=True))


def _layer_slices(snapshot: Snapshot, policy: PolicyVersion) -> tuple[AllocationSlice, ...]:
    asset_map = build_asset_map(policy)
    layer_values: dict[str, Decimal] = {layer.id: money(0) for layer in policy.layers}
    policy_total = money(0)
    for record in snapshot.records:
        mapping = asset_map.get(record.asset_id)
        if mapping is None:
            continue
        policy_total = money(policy_total + record.market_value)
        layer_values[mapping.layer_id] = money(layer_values[mapping.layer_id] + record.market_value)

    slices: list[AllocationSlice] = []
    for index, layer in enumerate(policy.layers):
        value = layer_values[layer.id]
        actual = safe_pct(value, policy_total)
        slices.append(
            AllocationSlice(
                id=layer.id,
                name=layer.name,
                value=value,
                percent=actual,
                color=layer_color(index),
                is_layer=True,
                target_percent=pct(layer.weight_pct),
                deviation=pct(actual - layer.weight_pct) if policy_total > 0 else pct(0),
            )
        )
    return tuple(sorted(slices, key=lambda item: item.target_percent, reverse=True))


def _target_slices(snapshot: Snapshot, layer: PolicyLayer) -> tuple[AllocationSlice, ...]:
    target_values = {
        target.id: money(
            sum(
                (record.market_value for record in snapshot.records if record.asset_id == target.asset_id),
                ZERO,
            )
        )
        for target in layer.targets
    }
    layer_total = money(sum(target_values.values(), ZERO))
    weights = resolve_target_weights(layer)

    slices: list[AllocationSlice] = []
    for target in layer.targets:
        value = target_values[target.id]
        actual = safe_pct(value, layer_total)
        slices.append(
            AllocationSlice(
                id=target.id,
                name=target.name,
                value=value,
                percent=actual,
                color=target.color,
                target_percent=weights[target.id],
                deviation=pct(actual - weights[target.id]) if layer_total > 0 else pct(0),
            )
        )
    return tuple(sorted(slices, key=lambda item: item.value, reverse=True))


def allocation_breakdown(
    snapshot: Snapshot | None,
    policy: PolicyVersion | None,
    scope: ViewScope,
    drill: DrillScope = ROOT,
) -> tuple[AllocationSlice, ...]:
    """Actual versus target allocation of ``snapshot``.

    The total scope groups every record into the four category buckets and
    ignores ``drill``. The policy scope reports layers at the root and the
    targets of one layer when drilled in; an unknown layer id or a missing
    policy yields an empty result rather than an error.
    """
    if snapshot is None:
        return ()
    if ViewScope(scope) == ViewScope.total:
        return _bucket_slices(snapshot)
    if policy is None:
        return ()
    if isinstance(drill, RootDrill):
        return _layer_slices(snapshot, policy)
    if isinstance(drill, LayerDrill):
        layer = policy.find_layer(drill.layer_id)
        if layer is None:
            return ()
        return _target_slices(snapshot, layer)
    raise TypeError(f"Unsupported drill scope: {drill!r}")
