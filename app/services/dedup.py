from typing import Iterable

from app.schemas.catalog import NormalizedPlan


def dedupe_slugs(plans: Iterable[NormalizedPlan]) -> None:
    """Rewrite plan slugs in place so they are unique; first occurrence keeps its slug."""
    taken: set[str] = set()
    for plan in plans:
        slug = plan.slug
        suffix = 2
        while slug in taken:
            slug = f"{plan.slug}-{suffix}"
            suffix += 1
        plan.slug = slug
        taken.add(slug)
