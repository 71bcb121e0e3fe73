"""eSIM Card and Yaalo run the same white-label affiliate platform.

Both expose an identical ``data-plans`` feed, so one adapter class serves
them, configured with each brand's slug, metadata and URL.
"""
from typing import Any, Optional, Union

import httpx
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.core.config import get_settings
from app.schemas.catalog import Coverage, NormalizedPlan, NormalizedProvider
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

DAILY_CAP_MARKERS = {"day", "daily"}


class WhiteLabelRawPlan(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: Optional[Union[str, int]] = None
    validity: Any = None
    data_cap: Any = None
    data_unit: str = "GB"
    data_cap_per: Optional[str] = None
    speed_limit: Optional[float] = None
    reduced_speed: Optional[float] = None
    plan_name: str
    prices: dict[str, Any] = {}
    validity_info: Optional[str] = None
    phone_number: Optional[bool] = None
    subscription: Optional[bool] = None
    can_top_up: Optional[bool] = None
    e_kyc: Optional[bool] = Field(default=None, alias="eKYC")
    tethering: Optional[bool] = None
    pay_as_you_go: Optional[bool] = None
    coverages: list[Coverage] = []


def normalize_white_label_plan(raw: WhiteLabelRawPlan, provider_slug: str) -> NormalizedPlan:
    period = int(parse_number(raw.validity))
    data_cap = parse_number(raw.data_cap)
    is_daily = str(raw.data_cap_per or "").strip().lower() in DAILY_CAP_MARKERS
    is_unlimited = mentions_unlimited(raw.plan_name)

    # A daily allowance has no total cap.
    if is_unlimited or is_daily or data_cap <= 0:
        capacity = UNLIMITED_CAPACITY
    else:
        capacity = capacity_mb(data_cap, raw.data_unit)

    capacity_info = None
    if is_daily:
        capacity_info = f"{raw.data_cap}{raw.data_unit}/day"
    elif capacity == UNLIMITED_CAPACITY:
        capacity_info = "Unlimited"

    return NormalizedPlan(
        name=raw.plan_name,
        slug=build_plan_slug(provider_slug, raw.plan_name, capacity, period),
        usd_price=pick_usd_price(raw.prices),
        prices=stringify_prices(raw.prices),
        capacity=capacity,
        capacity_info=capacity_info,
        period=period,
        validity_info=raw.validity_info or None,
        speed_limit=raw.speed_limit or None,
        reduced_speed=raw.reduced_speed or None,
        has_5g=has_5g_in_coverages(raw.coverages),
        tethering=bool(raw.tethering),
        can_top_up=bool(raw.can_top_up),
        phone_number=bool(raw.phone_number),
        subscription=bool(raw.subscription),
        pay_as_you_go=bool(raw.pay_as_you_go),
        ekyc=raw.e_kyc,
        coverages=raw.coverages,
    )


class WhiteLabelAdapter:
    def __init__(
        self,
        *,
        provider_slug: str,
        name: str,
        api_url: str,
        info: str | None = None,
        image: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.provider_slug = provider_slug
        self.name = name
        self.api_url = api_url
        self.info = info
        self.image = image
        self.client = ProviderClient(name, transport=transport)

    async def fetch_provider(self) -> NormalizedProvider:
        return NormalizedProvider(
            name=self.name,
            slug=self.provider_slug,
            info=self.info,
            image=self.image,
            certified=True,
        )

    async def fetch_plans(self) -> list[NormalizedPlan]:
        payload = await self.client.get_json(self.api_url)
        records = parse_records(payload, WhiteLabelRawPlan, self.name)
        return normalize_records(records, lambda raw: normalize_white_label_plan(raw, self.provider_slug), self.name)


def esimcard_adapter(api_url: str | None = None, *, transport: httpx.AsyncBaseTransport | None = None) -> WhiteLabelAdapter:
    return WhiteLabelAdapter(
        provider_slug="esim-card",
        name="eSIM Card",
        api_url=api_url or settings.esimcard_api_url,
        info="eSIM Card offers global connectivity with flexible data plans.",
        transport=transport,
    )


def yaalo_adapter(api_url: str | None = None, *, transport: httpx.AsyncBaseTransport | None = None) -> WhiteLabelAdapter:
    return WhiteLabelAdapter(
        provider_slug="yaalo",
        name="Yaalo",
        api_url=api_url or settings.yaalo_api_url,
        info="Yaalo provides affordable international eSIM plans.",
        image="https://wsacvimipplrlvoyawam.supabase.co/storage/v1/object/public/assets/providers-logos/yaalo.png",
        transport=transport,
    )
