"""
Cache API Endpoints

Operator views of the tiered cache: statistics, performance metrics,
health, and maintenance actions.
"""

from typing import Dict

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from marketcache.api.deps import get_service
from marketcache.services.cache.health import CacheHealthReport
from marketcache.services.cache.monitor import CachePerformanceMetrics
from marketcache.services.market_service import OptimizedMarketService


router = APIRouter(prefix="/cache", tags=["cache"])


@router.get("/stats")
async def get_cache_stats(service: OptimizedMarketService = Depends(get_service)):
    """Per tier entry counts: total, valid, expired"""
    return {
        tier: tier_stats.to_dict()
        for tier, tier_stats in service.get_cache_stats().items()
    }


@router.get("/metrics", response_model=CachePerformanceMetrics)
async def get_cache_metrics(service: OptimizedMarketService = Depends(get_service)):
    """Hit rate, average response time (ms) and error rate (percentages)"""
    return service.get_metrics()


@router.post("/metrics/reset", response_model=CachePerformanceMetrics)
async def reset_cache_metrics(service: OptimizedMarketService = Depends(get_service)):
    service.reset()
    return service.get_metrics()


@router.get("/health", response_model=CacheHealthReport)
async def get_cache_health(service: OptimizedMarketService = Depends(get_service)):
    """Scored health report with issues and recommendations"""
    return service.perform_health_check()


@router.get("/health/summary", response_class=PlainTextResponse)
async def get_cache_health_summary(service: OptimizedMarketService = Depends(get_service)):
    return service.get_health_summary()


@router.post("/cleanup")
async def cleanup_cache(service: OptimizedMarketService = Depends(get_service)) -> Dict[str, int]:
    """Remove expired entries from every tier"""
    return {"removed": service.cleanup_expired()}


@router.delete("")
async def clear_cache(service: OptimizedMarketService = Depends(get_service)):
    """Drop every entry in every tier (static included)"""
    service.clear_cache()
    return {"status": "cleared"}
