from fastapi import APIRouter, Depends, status

from investtrack.api.deps import get_repository
from investtrack.schemas.common import MessageResponse
from investtrack.schemas.snapshots import (
    RecalculateResponse,
    SnapshotDetailOut,
    SnapshotSummaryOut,
    SnapshotWriteRequest,
)
from investtrack.services.repository import PortfolioRepository


router = APIRouter(prefix="/snapshots", tags=["snapshots"])


@router.get("", response_model=list[SnapshotSummaryOut])
def list_snapshots(repo: PortfolioRepository = Depends(get_repository)):
    return [SnapshotSummaryOut.model_validate(snapshot) for snapshot in repo.list_snapshot_summaries()]


@router.post("", response_model=SnapshotDetailOut, status_code=status.HTTP_201_CREATED)
def save_snapshot(payload: SnapshotWriteRequest, repo: PortfolioRepository = Depends(get_repository)):
    snapshot = repo.save_snapshot(payload)
    repo.db.commit()
    return SnapshotDetailOut.model_validate(snapshot)


@router.post("/recalculate", response_model=RecalculateResponse)
def recalculate(repo: PortfolioRepository = Depends(get_repository)):
    count = repo.recalculate_aggregates()
    repo.db.commit()
    return RecalculateResponse(snapshots=count)


@router.get("/{snapshot_id}", response_model=SnapshotDetailOut)
def get_snapshot(snapshot_id: str, repo: PortfolioRepository = Depends(get_repository)):
    return SnapshotDetailOut.model_validate(repo.get_snapshot_detail(snapshot_id))


@router.delete("/{snapshot_id}", response_model=MessageResponse)
def delete_snapshot(snapshot_id: str, repo: PortfolioRepository = Depends(get_repository)):
    repo.delete_snapshot(snapshot_id)
    repo.db.commit()
    return MessageResponse(message="Snapshot deleted.")
