"""SQLAlchemy persistence for assets, policy versions and snapshots.

The repository converts ORM rows into the plain dataclasses the analytics
engine consumes. Snapshot writes go through the ledger replay so stored
cumulative quantities and costs always agree with the flows.

Writes only flush; committing is left to the caller. A write marks its
collection as pending on the session, and the shared :class:`CollectionCache`
entry is dropped when that session commits or rolls back. Until then the
writing session reads that collection straight from the database, and no
session with pending writes fills the cache.
"""
from __future__ import annotations

import logging
import threading
import uuid
from collections import Counter
from datetime import date
from functools import lru_cache
from typing import Callable, Sequence

from fastapi import HTTPException, status
from sqlalchemy import event, select
from sqlalchemy.orm import Session, selectinload

from investtrack.models import Asset as AssetRow
from investtrack.models import HoldingRecord as HoldingRecordRow
from investtrack.models import PolicyLayer as PolicyLayerRow
from investtrack.models import PolicyTarget as PolicyTargetRow
from investtrack.models import PolicyVersion as PolicyVersionRow
from investtrack.models import Snapshot as SnapshotRow
from investtrack.models.enums import PolicyStatus
from investtrack.schemas.assets import AssetWriteRequest
from investtrack.schemas.policies import PolicyLayerInput, PolicyTargetInput, PolicyVersionWriteRequest
from investtrack.schemas.snapshots import SnapshotWriteRequest
from investtrack.services.ledger_replay import FlowInput, rebuild_chain, replay_snapshot
from investtrack.services.portfolio_types import (
    Asset,
    HoldingRecord,
    PolicyLayer,
    PolicyTarget,
    PolicyVersion,
    Snapshot,
)
from investtrack.utils.decimal_math import money, qty


logger = logging.getLogger(__name__)


def _new_id() -> str:
    return str(uuid.uuid4())


ASSETS = "assets"
POLICIES = "policies"
SUMMARIES = "summaries"

_PENDING_KEY = "investtrack.pending_invalidations"


class CollectionCache:
    """Process-wide cache of the list endpoints' collections.

    Holds immutable tuples only, so a cached value can be shared between
    requests. Every collection carries a version that ``invalidate`` bumps;
    ``store`` ignores a value read under an older version, so a slow reader
    cannot put data back that a concurrent commit has replaced.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._values: dict[str, tuple] = {}
        self._versions: dict[str, int] = {ASSETS: 0, POLICIES: 0, SUMMARIES: 0}

    def lookup(self, name: str) -> tuple[tuple | None, int]:
        with self._lock:
            return self._values.get(name), self._versions[name]

    def store(self, name: str, value: tuple, version: int) -> None:
        with self._lock:
            if self._versions[name] == version:
                self._values[name] = value

    def invalidate(self, *names: str) -> None:
        with self._lock:
            for name in names:
                self._values.pop(name, None)
                self._versions[name] += 1


@lru_cache
def get_collection_cache() -> CollectionCache:
    return CollectionCache()


def _release_pending(session: Session) -> None:
    pending: dict[CollectionCache, set[str]] = session.info.get(_PENDING_KEY, {})
    for cache, names in pending.items():
        cache.invalidate(*names)
    pending.clear()


def _pending_for(session: Session, cache: CollectionCache) -> set[str]:
    """Collections this session has written but not yet committed or rolled back."""
    pending = session.info.get(_PENDING_KEY)
    if pending is None:
        pending = session.info[_PENDING_KEY] = {}
        event.listen(session, "after_commit", _release_pending)
        event.listen(session, "after_rollback", _release_pending)
    return pending.setdefault(cache, set())


def asset_from_row(row: AssetRow) -> Asset:
    return Asset(id=row.id, category=row.category, name=row.name, ticker=row.ticker, note=row.note)


def policy_from_row(row: PolicyVersionRow) -> PolicyVersion:
    return PolicyVersion(
        id=row.id,
        name=row.name,
        start_date=row.start_date,
        status=row.status,
        rationale=row.rationale or "",
        layers=tuple(
            PolicyLayer(
                id=layer.id,
                name=layer.name,
                weight_pct=layer.weight_pct,
                description=layer.description,
                targets=tuple(
                    PolicyTarget(
                        id=target.id,
                        asset_id=target.asset_id,
                        name=target.name,
                        intra_layer_weight_pct=target.intra_layer_weight_pct,
                        color=target.color,
                        note=target.note,
                    )
                    for target in layer.targets
                ),
            )
            for layer in row.layers
        ),
    )


def snapshot_from_row(row: SnapshotRow, *, with_records: bool = True) -> Snapshot:
    records: tuple[HoldingRecord, ...] = ()
    if with_records:
        records = tuple(
            HoldingRecord(
                id=record.id,
                asset_id=record.asset_id,
                name=record.asset_name,
                category=record.category,
                unit_price=record.unit_price,
                quantity=record.quantity,
                market_value=record.market_value,
                total_cost=record.total_cost,
                added_quantity=record.added_quantity,
                added_principal=record.added_principal,
            )
            for record in row.records
        )
    return Snapshot(
        id=row.id,
        month=row.month,
        total_value=row.total_value,
        total_invested=row.total_invested,
        records=records,
        note=row.note or "",
    )


class PortfolioRepository:
    def __init__(self, db: Session, cache: CollectionCache | None = None) -> None:
        self.db = db
        self.cache = cache if cache is not None else get_collection_cache()

    def _cached(self, name: str, load: Callable[[], tuple]) -> tuple:
        pending = _pending_for(self.db, self.cache)
        if name in pending:
            # The shared copy predates this session's own uncommitted writes.
            return load()
        value, version = self.cache.lookup(name)
        if value is not None:
            return value
        value = load()
        if not pending and not (self.db.new or self.db.dirty or self.db.deleted):
            self.cache.store(name, value, version)
        return value

    def _written(self, name: str) -> None:
        # Dropped from the shared cache once the transaction commits or rolls back.
        _pending_for(self.db, self.cache).add(name)

    # ── assets ──

    def list_assets(self) -> tuple[Asset, ...]:
        return self._cached(ASSETS, self._load_assets)

    def _load_assets(self) -> tuple[Asset, ...]:
        rows = self.db.scalars(select(AssetRow).order_by(AssetRow.name, AssetRow.id)).all()
        return tuple(asset_from_row(row) for row in rows)

    def _asset_row_or_404(self, asset_id: str) -> AssetRow:
        row = self.db.get(AssetRow, asset_id)
        if row is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Asset not found.")
        return row

    def get_asset_or_404(self, asset_id: str) -> Asset:
        return asset_from_row(self._asset_row_or_404(asset_id))

    def save_asset(self, payload: AssetWriteRequest, asset_id: str | None = None) -> Asset:
        if asset_id is None:
            row = AssetRow(id=_new_id())
            self.db.add(row)
        else:
            row = self._asset_row_or_404(asset_id)
        row.name = payload.name
        row.category = payload.category
        row.ticker = payload.ticker
        row.note = payload.note
        self.db.flush()
        self._written(ASSETS)
        logger.info("Saved asset %s (%s)", row.id, row.name)
        return asset_from_row(row)

    def delete_asset(self, asset_id: str) -> None:
        # Targets and records keep their cached name and category.
        row = self._asset_row_or_404(asset_id)
        self.db.delete(row)
        self.db.flush()
        self._written(ASSETS)
        logger.info("Deleted asset %s", asset_id)

    # ── policy versions ──

    def _policy_rows(self) -> list[PolicyVersionRow]:
        return list(
            self.db.scalars(
                select(PolicyVersionRow)
                .options(selectinload(PolicyVersionRow.layers).selectinload(PolicyLayerRow.targets))
                .order_by(PolicyVersionRow.start_date.desc(), PolicyVersionRow.created_at.desc())
            ).all()
        )

    def list_policy_versions(self) -> tuple[PolicyVersion, ...]:
        """All versions, newest start date first."""
        return self._cached(POLICIES, lambda: tuple(policy_from_row(row) for row in self._policy_rows()))

    def _policy_row_or_404(self, version_id: str) -> PolicyVersionRow:
        row = self.db.get(PolicyVersionRow, version_id)
        if row is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Policy version not found.")
        return row

    def get_policy_version_or_404(self, version_id: str) -> PolicyVersion:
        return policy_from_row(self._policy_row_or_404(version_id))

    def _asset_names(self) -> dict[str, str]:
        return {asset.id: asset.name for asset in self.list_assets()}

    def _sync_targets(self, layer: PolicyLayerRow, targets: Sequence[PolicyTargetInput]) -> None:
        existing = {target.id: target for target in layer.targets}
        names = self._asset_names()
        synced: list[PolicyTargetRow] = []
        for index, item in enumerate(targets):
            row = existing.get(item.id) if item.id else None
            if row is None:
                row = PolicyTargetRow(id=_new_id())
            row.asset_id = item.asset_id
            row.name = item.name or names.get(item.asset_id) or row.name or item.asset_id
            row.intra_layer_weight_pct = item.intra_layer_weight_pct
            row.color = item.color
            row.note = item.note
            row.sort_order = index
            synced.append(row)
        layer.targets = synced

    def _sync_layers(self, version: PolicyVersionRow, layers: Sequence[PolicyLayerInput]) -> None:
        # Layers and targets are matched by id so their ids stay stable across edits.
        existing = {layer.id: layer for layer in version.layers}
        synced: list[PolicyLayerRow] = []
        for index, item in enumerate(layers):
            row = existing.get(item.id) if item.id else None
            if row is None:
                row = PolicyLayerRow(id=_new_id(), targets=[])
            row.name = item.name
            row.weight_pct = item.weight_pct
            row.description = item.description
            row.sort_order = index
            self._sync_targets(row, item.targets)
            synced.append(row)
        version.layers = synced

    def _archive_active(self, *, keep_id: str) -> None:
        rows = self.db.scalars(
            select(PolicyVersionRow).where(
                PolicyVersionRow.status == PolicyStatus.active,
                PolicyVersionRow.id != keep_id,
            )
        ).all()
        for row in rows:
            row.status = PolicyStatus.archived
            logger.info("Archived policy version %s (%s)", row.id, row.name)

    def save_policy_version(
        self,
        payload: PolicyVersionWriteRequest,
        version_id: str | None = None,
    ) -> PolicyVersion:
        """Create a version, or update one that is not archived.

        An asset may be referenced by at most one target across the whole
        version. Creating an active version archives the previously active one.
        """
        counts = Counter(target.asset_id for layer in payload.layers for target in layer.targets)
        duplicates = sorted(asset_id for asset_id, count in counts.items() if count > 1)
        if duplicates:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Assets referenced by more than one target: {', '.join(duplicates)}.",
            )

        if version_id is None:
            row = PolicyVersionRow(id=_new_id(), layers=[])
            self.db.add(row)
        else:
            row = self._policy_row_or_404(version_id)
            if row.status == PolicyStatus.archived:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="Archived policy versions are read-only.",
                )

        row.name = payload.name
        row.start_date = payload.start_date
        row.status = payload.status
        row.rationale = payload.rationale
        self._sync_layers(row, payload.layers)
        if version_id is None and payload.status == PolicyStatus.active:
            self._archive_active(keep_id=row.id)
        self.db.flush()
        self._written(POLICIES)
        logger.info("Saved policy version %s (%s)", row.id, row.name)
        return policy_from_row(row)

    def clone_active_policy(
        self,
        *,
        name: str | None = None,
        start_date: date | None = None,
        today: date | None = None,
    ) -> PolicyVersion:
        """Deep-copy the active version (or the latest one) as a new active version."""
        rows = self._policy_rows()
        if not rows:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No policy version to clone.")
        base = next((row for row in rows if row.status == PolicyStatus.active), rows[0])

        clone = PolicyVersionRow(
            id=_new_id(),
            name=name or f"{base.name} (copy)",
            start_date=start_date or today or date.today(),
            status=PolicyStatus.active,
            rationale=base.rationale,
            layers=[
                PolicyLayerRow(
                    id=_new_id(),
                    name=layer.name,
                    weight_pct=layer.weight_pct,
                    description=layer.description,
                    sort_order=layer.sort_order,
                    targets=[
                        PolicyTargetRow(
                            id=_new_id(),
                            asset_id=target.asset_id,
                            name=target.name,
                            intra_layer_weight_pct=target.intra_layer_weight_pct,
                            color=target.color,
                            note=target.note,
                            sort_order=target.sort_order,
                        )
                        for target in layer.targets
                    ],
                )
                for layer in base.layers
            ],
        )
        self.db.add(clone)
        self._archive_active(keep_id=clone.id)
        self.db.flush()
        self._written(POLICIES)
        logger.info("Cloned policy version %s into %s", base.id, clone.id)
        return policy_from_row(clone)

    def delete_policy_version(self, version_id: str) -> None:
        row = self._policy_row_or_404(version_id)
        self.db.delete(row)
        self.db.flush()
        self._written(POLICIES)
        logger.info("Deleted policy version %s", version_id)

    # ── snapshots ──

    def list_snapshot_summaries(self) -> tuple[Snapshot, ...]:
        """Aggregates-only snapshots, newest month first."""
        return self._cached(SUMMARIES, self._load_summaries)

    def _load_summaries(self) -> tuple[Snapshot, ...]:
        rows = self.db.scalars(select(SnapshotRow).order_by(SnapshotRow.month.desc())).all()
        return tuple(snapshot_from_row(row, with_records=False) for row in rows)

    def _snapshot_rows(self, *criteria) -> list[SnapshotRow]:
        return list(
            self.db.scalars(
                select(SnapshotRow)
                .options(selectinload(SnapshotRow.records))
                .where(*criteria)
                .order_by(SnapshotRow.month)
            ).all()
        )

    def list_snapshot_history(self) -> tuple[Snapshot, ...]:
        """Every snapshot with its records, oldest month first."""
        return tuple(snapshot_from_row(row) for row in self._snapshot_rows())

    def _snapshot_row_or_404(self, snapshot_id: str) -> SnapshotRow:
        row = self.db.get(SnapshotRow, snapshot_id)
        if row is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Snapshot not found.")
        return row

    def get_snapshot_detail(self, snapshot_id: str) -> Snapshot:
        return snapshot_from_row(self._snapshot_row_or_404(snapshot_id))

    def _previous_snapshot(self, month: str) -> Snapshot | None:
        row = self.db.scalars(
            select(SnapshotRow).where(SnapshotRow.month < month).order_by(SnapshotRow.month.desc()).limit(1)
        ).first()
        return snapshot_from_row(row) if row is not None else None

    def _flows(self, payload: SnapshotWriteRequest, previous: Snapshot | None) -> list[FlowInput]:
        assets = {asset.id: asset for asset in self.list_assets()}
        flows: list[FlowInput] = []
        for item in payload.holdings:
            asset = assets.get(item.asset_id)
            prior = previous.find_record(item.asset_id) if previous is not None else None
            name = item.name or (asset.name if asset else None) or (prior.name if prior else None)
            category = item.category or (asset.category if asset else None) or (prior.category if prior else None)
            if name is None or category is None:
                raise HTTPException(
                    status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                    detail=f"Unknown asset {item.asset_id}.",
                )
            added_quantity, added_principal = item.signed_deltas()
            flows.append(
                FlowInput(
                    asset_id=item.asset_id,
                    name=name,
                    category=category,
                    unit_price=item.unit_price,
                    added_quantity=added_quantity,
                    added_principal=added_principal,
                )
            )
        return flows

    def _write_snapshot(self, snapshot: Snapshot, row: SnapshotRow | None = None) -> SnapshotRow:
        if row is None:
            row = self.db.get(SnapshotRow, snapshot.id)
        if row is None:
            row = SnapshotRow(id=snapshot.id, month=snapshot.month, records=[])
            self.db.add(row)
        row.month = snapshot.month
        row.note = snapshot.note
        row.total_value = money(snapshot.total_value)
        row.total_invested = money(snapshot.total_invested)
        if row.records:
            # Old records must be gone before the (snapshot, asset) pairs are inserted again.
            row.records.clear()
            self.db.flush()
        row.records = [
            HoldingRecordRow(
                id=_new_id(),
                asset_id=record.asset_id,
                asset_name=record.name,
                category=record.category,
                unit_price=qty(record.unit_price),
                quantity=qty(record.quantity),
                market_value=money(record.market_value),
                total_cost=money(record.total_cost),
                added_quantity=qty(record.added_quantity),
                added_principal=money(record.added_principal),
                sort_order=index,
            )
            for index, record in enumerate(snapshot.records)
        ]
        return row

    def _rebuild_after(self, anchor: Snapshot | None, month: str) -> int:
        later = [snapshot_from_row(row) for row in self._snapshot_rows(SnapshotRow.month > month)]
        for snapshot in rebuild_chain(anchor, later):
            self._write_snapshot(snapshot)
        return len(later)

    def save_snapshot(self, payload: SnapshotWriteRequest) -> Snapshot:
        """Insert or replace the snapshot for ``payload.month``.

        The flows are replayed on top of the preceding month and every later
        snapshot is replayed again so cumulative state stays consistent.
        """
        existing = self.db.scalars(select(SnapshotRow).where(SnapshotRow.month == payload.month)).first()
        previous = self._previous_snapshot(payload.month)
        try:
            replayed = replay_snapshot(
                snapshot_id=existing.id if existing is not None else _new_id(),
                month=payload.month,
                flows=self._flows(payload, previous),
                previous=previous,
                note=payload.note,
            )
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc

        row = self._write_snapshot(replayed, existing)
        self.db.flush()
        rebuilt = self._rebuild_after(replayed, payload.month)
        self.db.flush()
        self._written(SUMMARIES)
        logger.info(
            "Saved snapshot %s for %s with %d records; rebuilt %d later snapshots",
            row.id,
            row.month,
            len(replayed.records),
            rebuilt,
        )
        return snapshot_from_row(row)

    def delete_snapshot(self, snapshot_id: str) -> None:
        row = self._snapshot_row_or_404(snapshot_id)
        month = row.month
        self.db.delete(row)
        self.db.flush()
        rebuilt = self._rebuild_after(self._previous_snapshot(month), month)
        self.db.flush()
        self._written(SUMMARIES)
        logger.info("Deleted snapshot %s (%s); rebuilt %d later snapshots", snapshot_id, month, rebuilt)

    def recalculate_aggregates(self) -> int:
        """Replay the whole history from its first month and rewrite every snapshot."""
        history = [snapshot_from_row(row) for row in self._snapshot_rows()]
        for snapshot in rebuild_chain(None, history):
            self._write_snapshot(snapshot)
        self.db.flush()
        self._written(SUMMARIES)
        logger.info("Recalculated %d snapshots", len(history))
        return len(history)

