from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status

from investtrack.api.deps import get_repository
from investtrack.schemas.common import MessageResponse
from investtrack.schemas.policies import PolicyCloneRequest, PolicyVersionOut, PolicyVersionWriteRequest
from investtrack.services.policy_resolver import resolve_policy
from investtrack.services.repository import PortfolioRepository


router = APIRouter(prefix="/policies", tags=["policies"])


@router.get("", response_model=list[PolicyVersionOut])
def list_policies(repo: PortfolioRepository = Depends(get_repository)):
    return [PolicyVersionOut.model_validate(version) for version in repo.list_policy_versions()]


@router.post("", response_model=PolicyVersionOut, status_code=status.HTTP_201_CREATED)
def create_policy(payload: PolicyVersionWriteRequest, repo: PortfolioRepository = Depends(get_repository)):
    version = repo.save_policy_version(payload)
    repo.db.commit()
    return PolicyVersionOut.model_validate(version)


@router.post("/clone", response_model=PolicyVersionOut, status_code=status.HTTP_201_CREATED)
def clone_policy(payload: PolicyCloneRequest, repo: PortfolioRepository = Depends(get_repository)):
    version = repo.clone_active_policy(name=payload.name, start_date=payload.start_date)
    repo.db.commit()
    return PolicyVersionOut.model_validate(version)


@router.get("/resolve", response_model=PolicyVersionOut)
def resolve(
    on: str = Query(pattern=r"^\d{4}-(0[1-9]|1[0-2])(-\d{2})?$"),
    repo: PortfolioRepository = Depends(get_repository),
):
    try:
        version = resolve_policy(repo.list_policy_versions(), on)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    if version is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No policy versions defined.")
    return PolicyVersionOut.model_validate(version)


@router.get("/{version_id}", response_model=PolicyVersionOut)
def get_policy(version_id: str, repo: PortfolioRepository = Depends(get_repository)):
    return PolicyVersionOut.model_validate(repo.get_policy_version_or_404(version_id))


@router.put("/{version_id}", response_model=PolicyVersionOut)
def update_policy(
    version_id: str,
    payload: PolicyVersionWriteRequest,
    repo: PortfolioRepository = Depends(get_repository),
):
    version = repo.save_policy_version(payload, version_id)
    repo.db.commit()
    return PolicyVersionOut.model_validate(version)


@router.delete("/{version_id}", response_model=MessageResponse)
def delete_policy(version_id: str, repo: PortfolioRepository = Depends(get_repository)):
    repo.delete_policy_version(version_id)
    repo.db.commit()
    return MessageResponse(message="Policy version deleted.")
