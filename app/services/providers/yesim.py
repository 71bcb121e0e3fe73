import asyncio
import logging
from typing import Any, Optional

import httpx
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.core.config import get_settings
from app.core.errors import CatalogError
from app.schemas.catalog import Coverage, NormalizedPlan, NormalizedProvider
from app.services.normalize import (
    UNLIMITED_CAPACITY,
    build_plan_slug,
    capacity_mb,
    format_amount,
    mentions_unlimited,
    parse_number,
    pick_usd_price,
    stringify_prices,
)
from app.services.providers.base import ProviderClient, normalize_records, parse_records

settings = get_settings()
logger = logging.getLogger(__name__)

PROVIDER_SLUG = "yesim"
PROVIDER_NAME = "Yesim"
UNLIMITED_MARKER = -1
THROTTLING_NOTE = "Possible throttling"


class YesimRawPlan(BaseModel):
    """Yesim sends every scalar as a string ("30", "-1", "7.5")."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    plan_name: str
    period: Any = None
    capacity: Any = None
    capacity_unit: str = "MB"
    capacity_info: Optional[str] = None
    price: Any = None
    currency: str = "EUR"
    prices: dict[str, Any] = {}
    price_info: Optional[str] = None
    coverages: list[Coverage] = []


def _to_float(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_usd(amount: Optional[float], currency: str, eur_to_usd: float) -> Optional[float]:
    if amount is None:
        return None
    code = str(currency or "").strip().upper()
    if code == "USD":
        return round(amount, 2)
    if code == "EUR":
        return round(amount * eur_to_usd, 2)
    return None


def normalize_yesim_plan(raw: YesimRawPlan, eur_to_usd: float) -> NormalizedPlan:
    period = int(parse_number(raw.period))
    raw_capacity = _to_float(raw.capacity)
    is_unlimited = (
        raw_capacity is None
        or raw_capacity == UNLIMITED_MARKER
        or raw_capacity <= 0
        or mentions_unlimited(raw.plan_name)
    )
    capacity = UNLIMITED_CAPACITY if is_unlimited else capacity_mb(raw_capacity, raw.capacity_unit)

    price = _to_float(raw.price)
    usd_price = _to_usd(price, raw.currency, eur_to_usd)
    if usd_price is None:
        usd_price = pick_usd_price(raw.prices)

    prices = stringify_prices(raw.prices)
    if price is not None:
        # Keep the original list price next to whatever the feed sent.
        prices[raw.currency.upper()] = format_amount(price)

    return NormalizedPlan(
        name=raw.plan_name,
        slug=build_plan_slug(PROVIDER_SLUG, raw.plan_name, capacity, period),
        usd_price=usd_price,
        prices=prices,
        price_info=raw.price_info or None,
        capacity=capacity,
        capacity_info="Unlimited" if is_unlimited else raw.capacity_info,
        period=period,
        possible_throttling=raw.capacity_info == THROTTLING_NOTE,
        coverages=raw.coverages,
    )


class YesimAdapter:
    provider_slug = PROVIDER_SLUG

    def __init__(
        self,
        api_url: str | None = None,
        *,
        rate_url: str | None = None,
        fallback_rate: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_url = api_url or settings.yesim_api_url
        self.rate_url = rate_url or settings.eur_usd_rate_url
        self.fallback_rate = settings.eur_usd_fallback_rate if fallback_rate is None else fallback_rate
        self.client = ProviderClient(PROVIDER_NAME, transport=transport)
        self.rate_client = ProviderClient("Currency", transport=transport, retry_count=0)

    async def fetch_provider(self) -> NormalizedProvider:
        return NormalizedProvider(
            name=PROVIDER_NAME,
            slug=PROVIDER_SLUG,
            info="Yesim offers eSIM data plans for 200+ countries with simple pricing.",
            image=None,
            certified=True,
        )

    async def fetch_eur_to_usd_rate(self) -> float:
        try:
            payload = await self.rate_client.get_json(self.rate_url)
            rate = float(payload["eur"]["usd"])
            if rate <= 0:
                raise ValueError(f"non-positive rate {rate}")
            return rate
        except (CatalogError, KeyError, TypeError, ValueError) as exc:
            logger.warning("Failed to fetch live EUR/USD rate (%s). Falling back to %s", exc, self.fallback_rate)
            return self.fallback_rate

    async def fetch_plans(self) -> list[NormalizedPlan]:
        # One rate per sync run, shared by every plan.
        eur_to_usd, payload = await asyncio.gather(
            self.fetch_eur_to_usd_rate(),
            self.client.get_json(self.api_url),
        )
        logger.info("Yesim exchange rate: 1 EUR = %s USD", eur_to_usd)
        records = parse_records(payload, YesimRawPlan, PROVIDER_NAME)
        return normalize_records(records, lambda raw: normalize_yesim_plan(raw, eur_to_usd), PROVIDER_NAME)
