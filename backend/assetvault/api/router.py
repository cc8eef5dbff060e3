"""API router that aggregates all routes."""

from fastapi import APIRouter

from assetvault.api.routes import assets, bridge, drive, health, imports, projects, uploads

api_router = APIRouter(prefix="/api")

# V1 API routes
v1_router = APIRouter(prefix="/v1")
v1_router.include_router(health.router)
v1_router.include_router(assets.router)
v1_router.include_router(bridge.router)
v1_router.include_router(drive.router)
v1_router.include_router(imports.router)
v1_router.include_router(projects.router)
v1_router.include_router(uploads.router)

api_router.include_router(v1_router)
