from typing import Any, Optional

import httpx
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.core.config import get_settings
from app.schemas.catalog import Coverage, NormalizedPlan, NormalizedProvider
from app.services.normalize import (
    UNLIMITED_CAPACITY,
    build_plan_slug,
    capacity_mb,
    has_5g_in_coverages,
    mentions_unlimited,
    pick_usd_price,
    stringify_prices,
)
from app.services.providers.base import ProviderClient, normalize_records, parse_records

settings = get_settings()

PROVIDER_SLUG = "airalo"
PROVIDER_NAME = "Airalo"


class AiraloRawPlan(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    plan_name: str
    period: int
    capacity: Optional[float] = None
    capacity_unit: str = "MB"
    price: Optional[float] = None
    currency: str = "USD"
    prices: dict[str, Any] = {}
    new_user_only: Optional[bool] = None
    capacity_info: Optional[str] = None
    coverages: list[Coverage] = []
    info: Optional[list[str]] = None
    billing_type: Optional[str] = None
    is_kyc_verify: Optional[bool] = None
    rechargeability: Optional[bool] = None
    phone_number: Optional[bool] = None
    reduced_speed: Optional[float] = None
    telephony: Optional[dict[str, Any]] = None


def normalize_airalo_plan(raw: AiraloRawPlan) -> NormalizedPlan:
    has_cap = raw.capacity is not None and raw.capacity > 0
    unlimited = not has_cap or mentions_unlimited(raw.plan_name)
    capacity = UNLIMITED_CAPACITY if unlimited else capacity_mb(raw.capacity, raw.capacity_unit)

    prices = stringify_prices({"USD": raw.price, **raw.prices} if raw.price is not None else raw.prices)
    usd_price = raw.price if raw.price is not None else pick_usd_price(raw.prices)

    return NormalizedPlan(
        name=raw.plan_name,
        slug=build_plan_slug(PROVIDER_SLUG, raw.plan_name, capacity, raw.period),
        usd_price=usd_price,
        prices=prices,
        capacity=capacity,
        capacity_info="Unlimited" if unlimited and not raw.capacity_info else raw.capacity_info,
        period=raw.period,
        reduced_speed=raw.reduced_speed,
        has_5g=has_5g_in_coverages(raw.coverages),
        tethering=True,
        can_top_up=bool(raw.rechargeability),
        phone_number=bool(raw.phone_number),
        subscription=raw.billing_type == "subscription",
        new_user_only=bool(raw.new_user_only),
        ekyc=raw.is_kyc_verify,
        telephony=raw.telephony,
        coverages=raw.coverages,
        additional_info="\n".join(raw.info) if raw.info else None,
    )


class AiraloAdapter:
    provider_slug = PROVIDER_SLUG

    def __init__(self, api_url: str | None = None, *, transport: httpx.AsyncBaseTransport | None = None):
        self.api_url = api_url or settings.airalo_api_url
        self.client = ProviderClient(PROVIDER_NAME, transport=transport)

    async def fetch_provider(self) -> NormalizedProvider:
        return NormalizedProvider(
            name=PROVIDER_NAME,
            slug=PROVIDER_SLUG,
            info="Airalo offers affordable eSIMs for 200+ countries and regions worldwide.",
            image=None,
            certified=True,
        )

    async def fetch_plans(self) -> list[NormalizedPlan]:
        payload = await self.client.get_json(self.api_url)
        records = parse_records(payload, AiraloRawPlan, PROVIDER_NAME)
        return normalize_records(records, normalize_airalo_plan, PROVIDER_NAME)
