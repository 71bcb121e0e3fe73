import asyncio
import logging
import time
from typing import Any, Callable, Protocol, TypeVar, runtime_checkable

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from app.core.config import get_settings
from app.core.errors import FetchError, ParseError
from app.schemas.catalog import NormalizedPlan, NormalizedProvider

settings = get_settings()
logger = logging.getLogger(__name__)

RawPlanT = TypeVar("RawPlanT", bound=BaseModel)


@runtime_checkable
class ProviderAdapter(Protocol):
    provider_slug: str

    async def fetch_provider(self) -> NormalizedProvider:
        ...

    async def fetch_plans(self) -> list[NormalizedPlan]:
        ...


def _loggable_url(url: str) -> str:
    # Affiliate endpoints carry API keys in the query string.
    return url.split("?", 1)[0]


class ProviderClient:
    def __init__(
        self,
        provider_name: str,
        *,
        timeout: float | None = None,
        retry_count: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.provider_name = provider_name
        self.timeout = settings.provider_timeout_seconds if timeout is None else timeout
        self.retry_count = settings.provider_retry_count if retry_count is None else max(0, int(retry_count))
        self.transport = transport

    def _headers(self) -> dict:
        return {
            "Accept": "application/json",
            "User-Agent": f"{settings.app_name} sync",
        }

    async def get_json(self, url: str, *, retry_count_override: int | None = None) -> Any:
        retry_count = self.retry_count if retry_count_override is None else max(0, int(retry_count_override))
        for attempt in range(retry_count + 1):
            start = time.monotonic()
            try:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                    response = await client.get(url, headers=self._headers())
                duration_ms = round((time.monotonic() - start) * 1000, 2)
                logger.info(
                    "%s API GET %s status=%s duration=%sms",
                    self.provider_name,
                    _loggable_url(url),
                    response.status_code,
                    duration_ms,
                )
                if response.status_code >= 400:
                    raise FetchError(
                        f"{self.provider_name} API responded with {response.status_code}: {response.reason_phrase}",
                        provider=self.provider_name,
                        status_code=response.status_code,
                        raw=response.text[:500],
                    )
                try:
                    return response.json()
                except ValueError as exc:
                    raise ParseError(
                        f"{self.provider_name} API returned invalid JSON.",
                        provider=self.provider_name,
                        status_code=response.status_code,
                        raw=response.text[:500],
                    ) from exc
            except FetchError as exc:
                # Do not retry definitive client errors.
                if exc.status_code is not None and exc.status_code < 500 and exc.status_code != 429:
                    raise
                if attempt < retry_count:
                    await asyncio.sleep(0.5 * (attempt + 1))
                    continue
                raise
            except httpx.TransportError as exc:
                if attempt < retry_count:
                    await asyncio.sleep(0.5 * (attempt + 1))
                    continue
                raise FetchError(
                    f"Unable to reach {self.provider_name} API.",
                    provider=self.provider_name,
                    raw=str(exc),
                ) from exc


def parse_records(payload: Any, model: type[RawPlanT], provider_name: str) -> list[RawPlanT]:
    if isinstance(payload, dict) and isinstance(payload.get("data"), list):
        payload = payload["data"]
    if not isinstance(payload, list):
        raise ParseError(
            f"{provider_name} API returned {type(payload).__name__}, expected a list of plans.",
            provider=provider_name,
        )
    try:
        return TypeAdapter(list[model]).validate_python(payload)
    except ValidationError as exc:
        raise ParseError(
            f"{provider_name} API returned {exc.error_count()} invalid plan field(s).",
            provider=provider_name,
            raw=str(exc)[:500],
        ) from exc


def normalize_records(records: list[RawPlanT], normalize: Callable[[RawPlanT], NormalizedPlan], provider_name: str) -> list[NormalizedPlan]:
    try:
        return [normalize(raw) for raw in records]
    except (TypeError, ValueError) as exc:
        # pydantic's ValidationError is a ValueError.
        raise ParseError(
            f"{provider_name} plan could not be normalized ({type(exc).__name__}).",
            provider=provider_name,
            raw=str(exc)[:500],
        ) from exc
