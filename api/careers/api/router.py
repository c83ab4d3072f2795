from fastapi import APIRouter

from careers.api.routes import (
    admin_applications,
    admin_catalog,
    admin_positions,
    applications,
    catalog,
    health,
    positions,
)

api_router = APIRouter()
api_router.include_router(health.router, tags=["health"])
api_router.include_router(positions.router, prefix="/positions", tags=["public"])
api_router.include_router(catalog.router, prefix="/catalog", tags=["public"])
api_router.include_router(applications.router, prefix="/applications", tags=["public"])
api_router.include_router(admin_positions.router, prefix="/admin/positions", tags=["staff"])
api_router.include_router(admin_catalog.router, prefix="/admin/catalog", tags=["staff"])
api_router.include_router(admin_applications.router, prefix="/admin/applications", tags=["staff"])
