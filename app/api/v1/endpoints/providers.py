from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.models import Provider
from app.schemas.catalog import ProviderOut
from app.utils.cache import ResponseCache, get_cache

router = APIRouter()

PROVIDERS_CACHE_KEY = "providers:list"


@router.get("")
async def list_providers(db: AsyncSession = Depends(get_db), cache: ResponseCache = Depends(get_cache)):
    cached = cache.get(PROVIDERS_CACHE_KEY)
    if cached is not None:
        return cached

    rows = (await db.execute(select(Provider).order_by(Provider.name))).scalars().all()
    payload = {
        "success": True,
        "data": [ProviderOut.model_validate(row).model_dump(by_alias=True) for row in rows],
    }
    cache.set(PROVIDERS_CACHE_KEY, payload)
    return payload
