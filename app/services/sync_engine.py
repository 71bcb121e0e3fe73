"""Provider synchronization.

One run per provider: fetch provider metadata and plans concurrently,
upsert the provider row, then replace its whole plan set inside a single
transaction (delete, dedupe slugs, chunked insert, plan_count update).
Any failure leaves the previous plan set in place and is reported in the
returned ``SyncResult`` instead of being raised.
"""
import asyncio
import logging
import time
from collections import Counter
from functools import lru_cache
from typing import Awaitable, Iterable, Optional, Sequence

from sqlalchemy import delete, func, insert, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import get_settings
from app.core.errors import CatalogError, TransactionError, describe_error
from app.models import Plan, Provider
from app.schemas.catalog import NormalizedPlan, NormalizedProvider
from app.schemas.sync import SyncResult, SyncStatus
from app.services.dedup import dedupe_slugs
from app.services.providers.base import ProviderAdapter
from app.utils.cache import ResponseCache, get_cache

settings = get_settings()
logger = logging.getLogger(__name__)

_UPSERT_BY_DIALECT = {
    "postgresql": postgresql_insert,
    "sqlite": sqlite_insert,
}


def _elapsed_ms(start: float) -> int:
    return int(round((time.monotonic() - start) * 1000))


class SyncEngine:
    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        cache: Optional[ResponseCache] = None,
        *,
        chunk_size: Optional[int] = None,
        transaction_timeout: Optional[float] = None,
    ):
        if session_factory is None:
            from app.core.database import SessionLocal

            session_factory = SessionLocal
        self.session_factory = session_factory
        self._cache = cache
        self.chunk_size = max(1, int(chunk_size or settings.sync_chunk_size))
        self.transaction_timeout = float(transaction_timeout or settings.sync_transaction_timeout_seconds)
        # Counted per slug: overlapping runs of one provider each hold a slot.
        self._in_progress: Counter[str] = Counter()
        self._last_results: dict[str, SyncResult] = {}
        self._background: set[asyncio.Task] = set()

    @property
    def cache(self) -> ResponseCache:
        return self._cache if self._cache is not None else get_cache()

    # -- single provider -------------------------------------------------

    async def run_one(self, adapter: ProviderAdapter) -> SyncResult:
        slug = adapter.provider_slug
        start = time.monotonic()
        self._in_progress[slug] += 1
        logger.info("[%s] Sync started", slug)
        try:
            try:
                provider_data, plans = await self._fetch(adapter)
            except Exception as exc:
                return self._failed(slug, start, exc)

            try:
                provider_id = await self._upsert_provider(provider_data)
                deleted, inserted = await self._replace_plans_with_timeout(slug, provider_id, plans)
            except Exception as exc:
                return self._failed(slug, start, exc)

            result = SyncResult(
                provider=slug,
                plans_inserted=inserted,
                plans_deleted=deleted,
                duration_ms=_elapsed_ms(start),
            )
            logger.info(
                "[%s] Synced: %s deleted, %s inserted (%sms)",
                slug,
                result.plans_deleted,
                result.plans_inserted,
                result.duration_ms,
            )
            self._last_results[slug] = result
            return result
        finally:
            self._in_progress[slug] -= 1
            if self._in_progress[slug] <= 0:
                del self._in_progress[slug]

    async def sync_one(self, adapter: ProviderAdapter) -> SyncResult:
        """Standalone trigger: a successful run changes visible data, so flush the cache."""
        result = await self.run_one(adapter)
        if result.ok:
            self.cache.invalidate_all()
        return result

    # -- batch -----------------------------------------------------------

    async def run_all(self, adapters: Iterable[ProviderAdapter]) -> list[SyncResult]:
        # Sequential on purpose: one replace transaction at a time against shared storage.
        results = []
        for adapter in adapters:
            results.append(await self.run_one(adapter))

        if any(result.ok for result in results):
            self.cache.invalidate_all()

        summary = "\n".join(
            f"  {result.provider}: FAILED {result.error}"
            if result.error
            else f"  {result.provider}: {result.plans_inserted} plans ({result.duration_ms}ms)"
            for result in results
        )
        logger.info("Batch sync complete (%s providers):\n%s", len(results), summary)
        return results

    # -- fire and forget -------------------------------------------------

    def start_background(self, coro: Awaitable) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._on_background_done)
        return task

    def _on_background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background sync crashed: %s", exc, exc_info=exc)

    def status(self) -> SyncStatus:
        return SyncStatus(in_progress=sorted(self._in_progress), last_results=dict(self._last_results))

    def is_running(self, slug: str) -> bool:
        return self._in_progress[slug] > 0

    # -- stages ----------------------------------------------------------

    async def _fetch(self, adapter: ProviderAdapter) -> tuple[NormalizedProvider, list[NormalizedPlan]]:
        provider_task = asyncio.ensure_future(adapter.fetch_provider())
        plans_task = asyncio.ensure_future(adapter.fetch_plans())
        try:
            provider_data, plans = await asyncio.gather(provider_task, plans_task)
        except BaseException:
            provider_task.cancel()
            plans_task.cancel()
            raise
        return provider_data, list(plans)

    async def _upsert_provider(self, data: NormalizedProvider) -> int:
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    dialect = session.get_bind().dialect.name
                    upsert = _UPSERT_BY_DIALECT.get(dialect)
                    if upsert is None:
                        raise TransactionError(f"Provider upsert is not supported on {dialect}.")
                    stmt = upsert(Provider).values(
                        slug=data.slug,
                        name=data.name,
                        info=data.info,
                        image=data.image,
                        certified=data.certified,
                        popularity=0,
                        plan_count=0,
                    )
                    # popularity and plan_count are left alone for existing rows.
                    stmt = stmt.on_conflict_do_update(
                        index_elements=[Provider.slug],
                        set_={
                            "name": stmt.excluded.name,
                            "info": stmt.excluded.info,
                            "image": stmt.excluded.image,
                            "certified": stmt.excluded.certified,
                            "updated_at": func.now(),
                        },
                    ).returning(Provider.id)
                    return (await session.execute(stmt)).scalar_one()
        except SQLAlchemyError as exc:
            raise TransactionError(f"Could not save provider {data.slug} ({type(exc).__name__}).") from exc

    async def _replace_plans_with_timeout(
        self, slug: str, provider_id: int, plans: list[NormalizedPlan]
    ) -> tuple[int, int]:
        try:
            return await asyncio.wait_for(self._replace_plans(provider_id, plans), timeout=self.transaction_timeout)
        except asyncio.TimeoutError as exc:
            raise TransactionError(
                f"Replacing {slug} plans timed out after {self.transaction_timeout:g}s; previous plans kept."
            ) from exc
        except SQLAlchemyError as exc:
            raise TransactionError(
                f"Replacing {slug} plans failed ({type(exc).__name__}); previous plans kept."
            ) from exc

    async def _replace_plans(self, provider_id: int, plans: list[NormalizedPlan]) -> tuple[int, int]:
        async with self.session_factory() as session:
            async with session.begin():
                deleted_result = await session.execute(
                    delete(Plan)
                    .where(Plan.provider_id == provider_id)
                    .execution_options(synchronize_session=False)
                )
                deleted = deleted_result.rowcount or 0

                dedupe_slugs(plans)

                inserted = 0
                for offset in range(0, len(plans), self.chunk_size):
                    inserted += await self._insert_chunk(session, provider_id, plans[offset : offset + self.chunk_size])

                await session.execute(
                    update(Provider).where(Provider.id == provider_id).values(plan_count=inserted)
                )
        return deleted, inserted

    async def _insert_chunk(self, session: AsyncSession, provider_id: int, chunk: Sequence[NormalizedPlan]) -> int:
        if not chunk:
            return 0
        await session.execute(insert(Plan), [plan.to_row(provider_id) for plan in chunk])
        return len(chunk)

    def _failed(self, slug: str, start: float, exc: BaseException) -> SyncResult:
        message = describe_error(exc)
        if isinstance(exc, CatalogError):
            logger.error("[%s] Sync failed: %s", slug, message)
        else:
            logger.exception("[%s] Sync failed with an unexpected error", slug, exc_info=exc)
        result = SyncResult(provider=slug, plans_inserted=0, plans_deleted=0, duration_ms=_elapsed_ms(start), error=message)
        self._last_results[slug] = result
        return result


@lru_cache
def get_sync_engine() -> SyncEngine:
    return SyncEngine()
