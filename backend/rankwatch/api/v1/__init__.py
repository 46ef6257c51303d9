"""API v1 router and endpoint organization."""

from fastapi import APIRouter

from rankwatch.api.v1.endpoints import alerts, collection, config, urls

router = APIRouter(prefix="/api/v1", tags=["v1"])

router.include_router(collection.router, tags=["Collection"])
router.include_router(urls.router, prefix="/urls", tags=["Tracked URLs"])
router.include_router(alerts.router, prefix="/alerts", tags=["Alerts"])
router.include_router(config.router, prefix="/config", tags=["Config"])
