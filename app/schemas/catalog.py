from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel


class CoverageNetwork(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    types: list[str] = []


class Coverage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    code: str
    name: Optional[str] = None
    networks: Optional[list[CoverageNetwork]] = None


class NormalizedProvider(BaseModel):
    name: str
    slug: str
    info: Optional[str] = None
    image: Optional[str] = None
    certified: bool = False


class NormalizedPlan(BaseModel):
    """Canonical plan record every adapter produces.

    ``capacity`` is in MB and 0 means unlimited. ``usd_price`` is None when the
    provider gave no usable price.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: str
    slug: str

    usd_price: Optional[float] = None
    prices: dict[str, str] = {}
    price_info: Optional[str] = None

    capacity: int = 0
    capacity_info: Optional[str] = None
    period: int = 0
    validity_info: Optional[str] = None

    speed_limit: Optional[float] = None
    reduced_speed: Optional[float] = None
    possible_throttling: bool = False
    is_low_latency: bool = False

    has_5g: bool = Field(default=False, alias="has5G")
    tethering: bool = False
    can_top_up: bool = False
    phone_number: bool = False
    subscription: bool = False
    subscription_period: Optional[int] = None
    pay_as_you_go: bool = False
    new_user_only: bool = False
    is_consecutive: bool = False
    ekyc: Optional[bool] = Field(default=None, alias="eKYC")

    telephony: Optional[dict[str, Any]] = None
    coverages: list[Coverage] = []
    internet_breakouts: list[Any] = []
    additional_info: Optional[str] = None

    @computed_field
    @property
    def coverage_count(self) -> int:
        return len(self.coverages)

    def to_row(self, provider_id: int) -> dict[str, Any]:
        row = self.model_dump(exclude={"coverages"})
        row["coverages"] = [coverage.model_dump(exclude_none=True) for coverage in self.coverages]
        row["provider_id"] = provider_id
        return row


class ProviderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

    id: int
    name: str
    slug: str
    info: Optional[str] = None
    image: Optional[str] = None
    certified: bool
    popularity: int
    plan_count: int
