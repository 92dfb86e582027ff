"""Top-level API router."""

from fastapi import APIRouter

from timereport.api.routes.health import router as health_router
from timereport.api.routes.me import router as me_router
from timereport.api.routes.user_reports import router as user_reports_router

api_router = APIRouter()
api_router.include_router(health_router, tags=["health"])
api_router.include_router(me_router)
api_router.include_router(user_reports_router)
