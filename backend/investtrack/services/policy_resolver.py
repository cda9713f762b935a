from __future__ import annotations

import calendar
from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable

from investtrack.services.portfolio_types import PolicyTarget, PolicyVersion, validate_month


@dataclass(frozen=True)
class TargetMapping:
    target: PolicyTarget
    layer_id: str


def month_end(month: str) -> date:
    validate_month(month)
    year, month_number = (int(part) for part in month.split("-"))
    return date(year, month_number, calendar.monthrange(year, month_number)[1])


def _as_query_date(on: date | datetime | str) -> date:
    if isinstance(on, datetime):
        return on.date()
    if isinstance(on, date):
        return on
    if isinstance(on, str) and len(on) == 7:
        return month_end(on)
    if isinstance(on, str):
        return date.fromisoformat(on)
    raise TypeError(f"Expected a date or YYYY-MM[-DD] string, got {on!r}.")


def resolve_policy(versions: Iterable[PolicyVersion], on: date | datetime | str) -> PolicyVersion | None:
    """Return the policy version in force on ``on``.

    Month strings resolve against the last day of that month. Status is
    ignored: an archived version still governs the dates it covered. When
    every version starts after ``on`` the earliest one is returned, so the
    result is only ``None`` for an empty version list.
    """
    query_date = _as_query_date(on)
    ordered = sorted(versions, key=lambda version: version.start_date, reverse=True)
    if not ordered:
        return None
    for version in ordered:
        if version.start_date <= query_date:
            return version
    return ordered[-1]


def build_asset_map(version: PolicyVersion | None) -> dict[str, TargetMapping]:
    # Duplicate asset references keep the last target encountered.
    mapping: dict[str, TargetMapping] = {}
    if version is None:
        return mapping
    for layer in version.layers:
        for target in layer.targets:
            mapping[target.asset_id] = TargetMapping(target=target, layer_id=layer.id)
    return mapping


def duplicate_asset_ids(version: PolicyVersion) -> list[str]:
    counts = Counter(target.asset_id for layer in version.layers for target in layer.targets)
    return sorted(asset_id for asset_id, count in counts.items() if count > 1)


def layer_asset_ids(version: PolicyVersion | None, layer_id: str) -> frozenset[str]:
    if version is None:
        return frozenset()
    layer = version.find_layer(layer_id)
    if layer is None:
        return frozenset()
    return frozenset(target.asset_id for target in layer.targets)
