"""API v1 router aggregator.

All v1 endpoint routers are included here and mounted at /api/v1.
"""

from fastapi import APIRouter

from temple.api.v1 import donations

router = APIRouter()

router.include_router(donations.router, prefix="/donations", tags=["donations"])
