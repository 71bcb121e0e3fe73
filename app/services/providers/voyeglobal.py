from typing import Any, Optional, Union

import httpx
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.core.config import get_settings
from app.schemas.catalog import Coverage, CoverageNetwork, NormalizedPlan, NormalizedProvider
from app.services.normalize import (
    UNLIMITED_CAPACITY,
    build_plan_slug,
    capacity_mb,
    has_5g_in_coverages,
    mentions_unlimited,
    parse_number,
    pick_usd_price,
    stringify_prices,
)
from app.services.providers.base import ProviderClient, normalize_records, parse_records

settings = get_settings()

PROVIDER_SLUG = "voyeglobal"
PROVIDER_NAME = "VoyeGlobal"


class VoyeGlobalCoverage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    code: str
    # Sent as ``false`` when the territory has no network breakdown.
    networks: Any = None


class VoyeGlobalRawPlan(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    validity: Any = None
    data_cap: Any = None
    data_unit: str = "GB"
    data_cap_per: Optional[str] = None
    prices: dict[str, Any] = {}
    plan_name: str
    additional_info: Optional[str] = None
    coverages: list[Union[str, VoyeGlobalCoverage]] = []


def normalize_voyeglobal_coverage(entry: Union[str, VoyeGlobalCoverage]) -> Coverage:
    if isinstance(entry, str):
        return Coverage(code=entry.strip().upper())
    networks = None
    if isinstance(entry.networks, list):
        networks = [CoverageNetwork.model_validate(item) for item in entry.networks if isinstance(item, dict)]
    return Coverage(code=entry.code.strip().upper(), networks=networks or None)


def normalize_voyeglobal_plan(raw: VoyeGlobalRawPlan) -> NormalizedPlan:
    period = int(parse_number(raw.validity))
    data_cap = parse_number(raw.data_cap)
    is_daily = str(raw.data_cap_per or "").strip().lower() == "day"

    if is_daily or data_cap <= 0 or mentions_unlimited(raw.plan_name):
        capacity = UNLIMITED_CAPACITY
    else:
        capacity = capacity_mb(data_cap, raw.data_unit)

    if is_daily:
        capacity_info = f"{raw.data_cap}{raw.data_unit}/day"
    elif capacity == UNLIMITED_CAPACITY:
        capacity_info = "Unlimited"
    else:
        capacity_info = None

    coverages = [normalize_voyeglobal_coverage(entry) for entry in raw.coverages]

    return NormalizedPlan(
        name=raw.plan_name,
        slug=build_plan_slug(PROVIDER_SLUG, raw.plan_name, capacity, period),
        usd_price=pick_usd_price(raw.prices),
        prices=stringify_prices(raw.prices),
        capacity=capacity,
        capacity_info=capacity_info,
        period=period,
        has_5g=has_5g_in_coverages(coverages),
        coverages=coverages,
        additional_info=raw.additional_info or None,
    )


class VoyeGlobalAdapter:
    provider_slug = PROVIDER_SLUG

    def __init__(self, api_url: str | None = None, *, transport: httpx.AsyncBaseTransport | None = None):
        self.api_url = api_url or settings.voyeglobal_api_url
        self.client = ProviderClient(PROVIDER_NAME, transport=transport)

    async def fetch_provider(self) -> NormalizedProvider:
        return NormalizedProvider(
            name=PROVIDER_NAME,
            slug=PROVIDER_SLUG,
            info="VoyeGlobal provides global eSIM data plans across multiple regions.",
            image="https://wsacvimipplrlvoyawam.supabase.co/storage/v1/object/public/assets/providers-logos/voyeglobal.png",
            certified=True,
        )

    async def fetch_plans(self) -> list[NormalizedPlan]:
        payload = await self.client.get_json(self.api_url)
        records = parse_records(payload, VoyeGlobalRawPlan, PROVIDER_NAME)
        return normalize_records(records, normalize_voyeglobal_plan, PROVIDER_NAME)
