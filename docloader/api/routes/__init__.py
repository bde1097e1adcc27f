"""
Route aggregation for API v1.
"""

from fastapi import APIRouter

from docloader.api.routes.load import router as load_router

router = APIRouter()
router.include_router(load_router)
