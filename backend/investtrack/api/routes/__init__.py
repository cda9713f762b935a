from fastapi import APIRouter

from investtrack.api.routes import assets, dashboard, health, policies, snapshots


api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(assets.router)
api_router.include_router(policies.router)
api_router.include_router(snapshots.router)
api_router.include_router(dashboard.router)
