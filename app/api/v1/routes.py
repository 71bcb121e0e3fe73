from fastapi import APIRouter
from app.api.v1.endpoints import providers, sync

router = APIRouter()

router.include_router(sync.router, prefix="/sync", tags=["sync"])
router.include_router(providers.router, prefix="/providers", tags=["providers"])
