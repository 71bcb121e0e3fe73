import logging
from functools import lru_cache
from typing import Optional

from app.services.providers.airalo import AiraloAdapter
from app.services.providers.base import ProviderAdapter
from app.services.providers.voyeglobal import VoyeGlobalAdapter
from app.services.providers.white_label import esimcard_adapter, yaalo_adapter
from app.services.providers.yesim import YesimAdapter

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Adapters keyed by provider slug, kept in registration order."""

    def __init__(self) -> None:
        self._adapters: dict[str, ProviderAdapter] = {}

    def register(self, adapter: ProviderAdapter) -> None:
        slug = str(getattr(adapter, "provider_slug", "") or "").strip()
        if not slug:
            raise ValueError("Adapter provider_slug must be a non-empty string")
        if slug in self._adapters:
            raise ValueError(f"Provider '{slug}' is already registered")
        self._adapters[slug] = adapter
        logger.debug("Registered provider adapter: %s", slug)

    def get(self, slug: str) -> Optional[ProviderAdapter]:
        return self._adapters.get(str(slug or "").strip().lower())

    def adapters(self) -> list[ProviderAdapter]:
        return list(self._adapters.values())

    def slugs(self) -> list[str]:
        return list(self._adapters.keys())

    def __len__(self) -> int:
        return len(self._adapters)


def build_default_registry() -> ProviderRegistry:
    registry = ProviderRegistry()
    registry.register(AiraloAdapter())
    registry.register(esimcard_adapter())
    registry.register(yaalo_adapter())
    registry.register(VoyeGlobalAdapter())
    registry.register(YesimAdapter())
    return registry


@lru_cache
def get_registry() -> ProviderRegistry:
    return build_default_registry()
