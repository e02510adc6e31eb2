"""
API Version 1 Router

Consolidates all V1 API endpoints.
"""

from fastapi import APIRouter

from marketcache.api.v1.endpoints import cache, health, markets

router = APIRouter()

router.include_router(health.router)
router.include_router(markets.router)
router.include_router(cache.router)


@router.get("/")
async def api_root():
    """API root endpoint"""
    return {"message": "Skepsis Market Cache API v1"}
