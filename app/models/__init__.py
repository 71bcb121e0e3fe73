from app.models.provider import Provider
from app.models.plan import Plan

__all__ = [
    "Provider",
    "Plan",
]
