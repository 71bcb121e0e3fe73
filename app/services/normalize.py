import re
from typing import Any, Iterable, Mapping, Optional

from app.schemas.catalog import Coverage

UNLIMITED_CAPACITY = 0

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_NUMBER = re.compile(r"\d+(?:\.\d+)?")


def slugify(text: str) -> str:
    return _NON_ALNUM.sub("-", str(text or "").lower()).strip("-")


def convert_to_mb(value: float, unit: str) -> float:
    """Convert a data amount to megabytes. Unknown units pass through unchanged."""
    key = str(unit or "").strip().upper()
    if key == "GB":
        return value * 1024
    if key == "MB":
        return value
    if key == "TB":
        return value * 1024 * 1024
    return value


def capacity_mb(value: float, unit: str) -> int:
    return int(round(convert_to_mb(value, unit)))


def parse_number(value: Any) -> float:
    # Upstream numbers sometimes carry units ("3Day", "5 GB").
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return value
    match = _NUMBER.search(str(value))
    return float(match.group(0)) if match else 0


def mentions_unlimited(name: str) -> bool:
    return "unlimited" in str(name or "").lower()


def has_5g_in_coverages(coverages: Iterable[Coverage]) -> bool:
    for coverage in coverages:
        for network in coverage.networks or []:
            if "5G" in network.types:
                return True
    return False


def build_plan_slug(
    provider_slug: str,
    plan_name: str,
    capacity: Optional[int] = None,
    period: Optional[int] = None,
) -> str:
    slug = f"{provider_slug}-{slugify(plan_name)}"
    if capacity is not None:
        slug += f"-{capacity}mb"
    if period is not None:
        slug += f"-{period}d"
    return slug


def stringify_prices(prices: Mapping[str, Any] | None) -> dict[str, str]:
    return {str(currency): format_amount(amount) for currency, amount in (prices or {}).items()}


def pick_usd_price(prices: Mapping[str, Any] | None) -> Optional[float]:
    """USD entry if present, else the first currency as a stand-in, else None."""
    if not prices:
        return None
    candidates = [prices["USD"]] if prices.get("USD") not in (None, "") else []
    candidates.extend(value for key, value in prices.items() if key != "USD")
    for value in candidates:
        try:
            return float(value)
        except (TypeError, ValueError):
            continue
    return None


def format_amount(amount: Any) -> str:
    if isinstance(amount, float) and amount.is_integer():
        return str(int(amount))
    return str(amount)
