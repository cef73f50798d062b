"""
API routes aggregation.
"""

from fastapi import APIRouter

from .projects import router as projects_router

router = APIRouter()

router.include_router(projects_router, prefix="/projects", tags=["projects"])
