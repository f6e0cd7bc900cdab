"""Version 1 of the HTTP API, mounted under /api/v1."""
from fastapi import APIRouter

from sepei.api.v1.endpoints import admin, auth, polls

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(polls.router, prefix="/polls", tags=["polls"])
# Every admin route requires the admin cookie (see admin.router dependencies)
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
