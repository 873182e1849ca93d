"""
API v1 router aggregation.

This module combines all v1 API routers into a single router
that is mounted at /api/v1.
"""

from fastapi import APIRouter

from clipforge.api.v1.health import router as health_router
from clipforge.api.v1.jobs import router as jobs_router
from clipforge.api.v1.posts import router as posts_router
from clipforge.api.v1.projects import router as projects_router
from clipforge.api.v1.webhooks import router as webhooks_router

api_router = APIRouter()

api_router.include_router(
    health_router,
    prefix="/health",
    tags=["Health"],
)
api_router.include_router(
    projects_router,
    prefix="/projects",
    tags=["Projects"],
)
api_router.include_router(
    jobs_router,
    prefix="/jobs",
    tags=["Jobs"],
)
api_router.include_router(
    webhooks_router,
    prefix="/webhooks",
    tags=["Webhooks"],
)
api_router.include_router(
    posts_router,
    prefix="/posts",
    tags=["Posts"],
)
