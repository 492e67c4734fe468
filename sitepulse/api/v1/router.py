from fastapi import APIRouter, Depends

from sitepulse.api.deps import require_admin
from sitepulse.api.v1 import alerts, health, jobs, revenue, sites, tracking

api_router = APIRouter()

admin = [Depends(require_admin)]

api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(tracking.router, prefix="/tracking", tags=["tracking"])
api_router.include_router(sites.router, prefix="/sites", tags=["sites"], dependencies=admin)
api_router.include_router(revenue.router, prefix="/revenue", tags=["revenue"], dependencies=admin)
api_router.include_router(alerts.router, prefix="/alerts", tags=["alerts"], dependencies=admin)
api_router.include_router(jobs.router, prefix="/jobs", tags=["jobs"], dependencies=admin)
