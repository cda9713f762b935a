from fastapi import APIRouter, Depends, status

from investtrack.api.deps import get_repository
from investtrack.schemas.assets import AssetOut, AssetWriteRequest
from investtrack.schemas.common import MessageResponse
from investtrack.services.repository import PortfolioRepository


router = APIRouter(prefix="/assets", tags=["assets"])


@router.get("", response_model=list[AssetOut])
def list_assets(repo: PortfolioRepository = Depends(get_repository)):
    return [AssetOut.model_validate(asset) for asset in repo.list_assets()]


@router.post("", response_model=AssetOut, status_code=status.HTTP_201_CREATED)
def create_asset(payload: AssetWriteRequest, repo: PortfolioRepository = Depends(get_repository)):
    asset = repo.save_asset(payload)
    repo.db.commit()
    return AssetOut.model_validate(asset)


@router.get("/{asset_id}", response_model=AssetOut)
def get_asset(asset_id: str, repo: PortfolioRepository = Depends(get_repository)):
    return AssetOut.model_validate(repo.get_asset_or_404(asset_id))


@router.put("/{asset_id}", response_model=AssetOut)
def update_asset(
    asset_id: str,
    payload: AssetWriteRequest,
    repo: PortfolioRepository = Depends(get_repository),
):
    asset = repo.save_asset(payload, asset_id)
    repo.db.commit()
    return AssetOut.model_validate(asset)


@router.delete("/{asset_id}", response_model=MessageResponse)
def delete_asset(asset_id: str, repo: PortfolioRepository = Depends(get_repository)):
    repo.delete_asset(asset_id)
    repo.db.commit()
    return MessageResponse(message="Asset deleted.")
