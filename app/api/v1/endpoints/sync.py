import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from app.core.config import get_settings
from app.dependencies import require_sync_key
from app.middlewares.rate_limit import limiter
from app.services.providers.registry import ProviderRegistry, get_registry
from app.services.sync_engine import SyncEngine, get_sync_engine

router = APIRouter(dependencies=[Depends(require_sync_key)])
settings = get_settings()
logger = logging.getLogger(__name__)


@router.post("")
@limiter.limit(settings.sync_rate_limit)
async def sync_all_providers(
    request: Request,
    wait: bool = False,
    engine: SyncEngine = Depends(get_sync_engine),
    registry: ProviderRegistry = Depends(get_registry),
):
    adapters = registry.adapters()
    if wait:
        results = await engine.run_all(adapters)
        return {
            "success": all(result.ok for result in results),
            "data": [result.as_response() for result in results],
        }

    engine.start_background(engine.run_all(adapters))
    logger.info("Batch sync started in background for %s providers", len(adapters))
    return JSONResponse(
        status_code=202,
        content={"success": True, "message": "Sync started", "providers": registry.slugs()},
    )


@router.get("/status")
async def sync_status(engine: SyncEngine = Depends(get_sync_engine)):
    return {"success": True, "data": engine.status().as_response()}


@router.post("/{provider}")
@limiter.limit(settings.sync_rate_limit)
async def sync_one_provider(
    request: Request,
    provider: str,
    wait: bool = False,
    engine: SyncEngine = Depends(get_sync_engine),
    registry: ProviderRegistry = Depends(get_registry),
):
    adapter = registry.get(provider)
    if adapter is None:
        return JSONResponse(
            status_code=404,
            content={
                "success": False,
                "error": f'Provider "{provider}" not found. Available: {", ".join(registry.slugs())}',
            },
        )

    if wait:
        result = await engine.sync_one(adapter)
        return {"success": result.ok, "data": result.as_response()}

    engine.start_background(engine.sync_one(adapter))
    logger.info("[%s] Sync started in background", adapter.provider_slug)
    return JSONResponse(
        status_code=202,
        content={"success": True, "message": "Sync started", "providers": [adapter.provider_slug]},
    )
