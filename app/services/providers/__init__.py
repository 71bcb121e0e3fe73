from app.services.providers.base import ProviderAdapter, ProviderClient
from app.services.providers.registry import ProviderRegistry, build_default_registry, get_registry

__all__ = [
    "ProviderAdapter",
    "ProviderClient",
    "ProviderRegistry",
    "build_default_registry",
    "get_registry",
]
