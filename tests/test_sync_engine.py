import asyncio

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from app.core.errors import FetchError
from app.models import Plan, Provider
from app.schemas.catalog import Coverage, NormalizedPlan, NormalizedProvider
from app.services.sync_engine import SyncEngine
from app.utils.cache import ResponseCache


pytestmark = pytest.mark.anyio


class StaticAdapter:
    def __init__(self, slug, plans=(), *, error=None):
        self.provider_slug = slug
        self.plans = list(plans)
        self.error = error
        self.seen_running = None
        self.engine = None

    async def fetch_provider(self):
        return NormalizedProvider(name=self.provider_slug.title(), slug=self.provider_slug, certified=True)

    async def fetch_plans(self):
        if self.engine is not None:
            self.seen_running = self.engine.is_running(self.provider_slug)
        if self.error is not None:
            raise self.error
        return [plan.model_copy(deep=True) for plan in self.plans]


class CountingCache(ResponseCache):
    def __init__(self):
        super().__init__()
        self.invalidations = 0

    def invalidate_all(self) -> int:
        self.invalidations += 1
        return super().invalidate_all()


def _plans(provider_slug, count, *, name="Plan"):
    return [
        NormalizedPlan(
            name=f"{name} {index}",
            slug=f"{provider_slug}-{name.lower()}-{index}",
            usd_price=float(index),
            prices={"USD": str(index)},
            capacity=1024 * index,
            period=7,
            coverages=[Coverage(code="FR"), Coverage(code="DE")],
        )
        for index in range(1, count + 1)
    ]


async def _stored_plans(session_factory, provider_slug):
    async with session_factory() as session:
        rows = await session.execute(
            select(Plan).join(Provider).where(Provider.slug == provider_slug).order_by(Plan.id)
        )
        return rows.scalars().all()


async def _provider(session_factory, provider_slug):
    async with session_factory() as session:
        return (await session.execute(select(Provider).where(Provider.slug == provider_slug))).scalar_one_or_none()


async def test_first_sync_inserts_provider_and_plans(session_factory):
    engine = SyncEngine(session_factory, CountingCache())
    result = await engine.run_one(StaticAdapter("acme", _plans("acme", 3)))

    assert result.ok
    assert result.plans_inserted == 3
    assert result.plans_deleted == 0
    assert result.duration_ms >= 0

    stored = await _stored_plans(session_factory, "acme")
    assert [plan.slug for plan in stored] == ["acme-plan-1", "acme-plan-2", "acme-plan-3"]
    assert stored[0].coverage_count == 2
    assert stored[0].coverages == [{"code": "FR"}, {"code": "DE"}]

    provider = await _provider(session_factory, "acme")
    assert provider.name == "Acme"
    assert provider.plan_count == 3
    assert provider.popularity == 0


async def test_resync_replaces_the_whole_plan_set(session_factory):
    engine = SyncEngine(session_factory, CountingCache())
    await engine.run_one(StaticAdapter("acme", _plans("acme", 3)))
    result = await engine.run_one(StaticAdapter("acme", _plans("acme", 2, name="Fresh")))

    assert result.plans_deleted == 3
    assert result.plans_inserted == 2
    stored = await _stored_plans(session_factory, "acme")
    assert [plan.slug for plan in stored] == ["acme-fresh-1", "acme-fresh-2"]
    assert (await _provider(session_factory, "acme")).plan_count == 2


async def test_provider_upsert_keeps_popularity(session_factory):
    engine = SyncEngine(session_factory, CountingCache())
    await engine.run_one(StaticAdapter("acme", _plans("acme", 1)))
    async with session_factory() as session:
        async with session.begin():
            provider = (await session.execute(select(Provider).where(Provider.slug == "acme"))).scalar_one()
            provider.popularity = 42

    await engine.run_one(StaticAdapter("acme", _plans("acme", 1)))

    async with session_factory() as session:
        count = await session.scalar(select(func.count()).select_from(Provider))
    assert count == 1
    assert (await _provider(session_factory, "acme")).popularity == 42


async def test_duplicate_slugs_are_suffixed_before_insert(session_factory):
    plans = [
        NormalizedPlan(name="Data 1GB", slug="acme-data-1gb-1024mb-7d", capacity=1024, period=7),
        NormalizedPlan(name="Data 1GB", slug="acme-data-1gb-1024mb-7d", capacity=1024, period=7),
    ]
    engine = SyncEngine(session_factory, CountingCache())
    result = await engine.run_one(StaticAdapter("acme", plans))

    assert result.plans_inserted == 2
    stored = await _stored_plans(session_factory, "acme")
    assert [plan.slug for plan in stored] == ["acme-data-1gb-1024mb-7d", "acme-data-1gb-1024mb-7d-2"]


async def test_empty_catalog_clears_previous_plans(session_factory):
    engine = SyncEngine(session_factory, CountingCache())
    await engine.run_one(StaticAdapter("acme", _plans("acme", 2)))
    result = await engine.run_one(StaticAdapter("acme", []))

    assert result.ok
    assert result.plans_deleted == 2
    assert result.plans_inserted == 0
    assert await _stored_plans(session_factory, "acme") == []
    assert (await _provider(session_factory, "acme")).plan_count == 0


async def test_chunked_insert_covers_every_plan(session_factory):
    engine = SyncEngine(session_factory, CountingCache(), chunk_size=2)
    result = await engine.run_one(StaticAdapter("acme", _plans("acme", 5)))
    assert result.plans_inserted == 5
    assert len(await _stored_plans(session_factory, "acme")) == 5


async def test_fetch_failure_keeps_previous_plans(session_factory):
    engine = SyncEngine(session_factory, CountingCache())
    await engine.run_one(StaticAdapter("acme", _plans("acme", 2)))

    failing = StaticAdapter("acme", error=FetchError("Acme API responded with 500: Internal Server Error"))
    result = await engine.run_one(failing)

    assert not result.ok
    assert result.error == "Acme API responded with 500: Internal Server Error"
    assert result.plans_inserted == 0
    assert result.plans_deleted == 0
    assert len(await _stored_plans(session_factory, "acme")) == 2


async def test_unexpected_error_is_described_without_details(session_factory):
    engine = SyncEngine(session_factory, CountingCache())
    result = await engine.run_one(StaticAdapter("acme", error=RuntimeError("password=hunter2")))
    assert result.error == "Unexpected error: RuntimeError"


class FailingLastChunkEngine(SyncEngine):
    def __init__(self, *args, fail_on_chunk, **kwargs):
        super().__init__(*args, **kwargs)
        self.fail_on_chunk = fail_on_chunk
        self.chunks = 0

    async def _insert_chunk(self, session, provider_id, chunk):
        self.chunks += 1
        if self.chunks == self.fail_on_chunk:
            raise SQLAlchemyError("disk I/O error")
        return await super()._insert_chunk(session, provider_id, chunk)


async def test_failure_in_last_chunk_rolls_back_everything(session_factory):
    seed = SyncEngine(session_factory, CountingCache())
    await seed.run_one(StaticAdapter("acme", _plans("acme", 3)))

    engine = FailingLastChunkEngine(session_factory, CountingCache(), chunk_size=2, fail_on_chunk=3)
    result = await engine.run_one(StaticAdapter("acme", _plans("acme", 5, name="Fresh")))

    assert not result.ok
    assert result.plans_inserted == 0
    assert result.plans_deleted == 0
    assert "previous plans kept" in result.error

    stored = await _stored_plans(session_factory, "acme")
    assert [plan.slug for plan in stored] == ["acme-plan-1", "acme-plan-2", "acme-plan-3"]
    assert (await _provider(session_factory, "acme")).plan_count == 3


class SlowInsertEngine(SyncEngine):
    async def _insert_chunk(self, session, provider_id, chunk):
        await asyncio.sleep(5)
        return await super()._insert_chunk(session, provider_id, chunk)


async def test_transaction_timeout_keeps_previous_plans(session_factory):
    seed = SyncEngine(session_factory, CountingCache())
    await seed.run_one(StaticAdapter("acme", _plans("acme", 2)))

    engine = SlowInsertEngine(session_factory, CountingCache(), transaction_timeout=0.05)
    result = await engine.run_one(StaticAdapter("acme", _plans("acme", 4, name="Fresh")))

    assert not result.ok
    assert "timed out" in result.error
    stored = await _stored_plans(session_factory, "acme")
    assert [plan.slug for plan in stored] == ["acme-plan-1", "acme-plan-2"]


async def test_batch_isolates_failures_and_preserves_order(session_factory):
    cache = CountingCache()
    engine = SyncEngine(session_factory, cache)
    adapters = [
        StaticAdapter("alpha", _plans("alpha", 2)),
        StaticAdapter("beta", error=FetchError("Beta API responded with 503: Service Unavailable")),
        StaticAdapter("gamma", _plans("gamma", 1)),
    ]

    results = await engine.run_all(adapters)

    assert [result.provider for result in results] == ["alpha", "beta", "gamma"]
    assert [result.ok for result in results] == [True, False, True]
    assert results[1].plans_inserted == 0
    assert results[1].plans_deleted == 0
    for result in (results[0], results[2]):
        assert (await _provider(session_factory, result.provider)).plan_count == result.plans_inserted
    assert await _provider(session_factory, "beta") is None
    assert len(await _stored_plans(session_factory, "alpha")) == 2
    assert len(await _stored_plans(session_factory, "gamma")) == 1
    assert cache.invalidations == 1


async def test_batch_without_successes_does_not_invalidate(session_factory):
    cache = CountingCache()
    engine = SyncEngine(session_factory, cache)
    await engine.run_all([StaticAdapter("beta", error=FetchError("Beta API responded with 503: Service Unavailable"))])
    assert cache.invalidations == 0


async def test_run_one_never_invalidates_but_sync_one_does(session_factory):
    cache = CountingCache()
    cache.set("providers:list", {"stale": True})
    engine = SyncEngine(session_factory, cache)

    await engine.run_one(StaticAdapter("acme", _plans("acme", 1)))
    assert cache.invalidations == 0
    assert cache.get("providers:list") == {"stale": True}

    await engine.sync_one(StaticAdapter("acme", _plans("acme", 1)))
    assert cache.invalidations == 1
    assert cache.get("providers:list") is None


async def test_failed_sync_one_leaves_cache_alone(session_factory):
    cache = CountingCache()
    engine = SyncEngine(session_factory, cache)
    await engine.sync_one(StaticAdapter("acme", error=FetchError("Unable to reach Acme API.")))
    assert cache.invalidations == 0


async def test_status_tracks_progress_and_last_results(session_factory):
    engine = SyncEngine(session_factory, CountingCache())
    adapter = StaticAdapter("acme", _plans("acme", 1))
    adapter.engine = engine

    await engine.run_one(adapter)

    assert adapter.seen_running is True
    status = engine.status()
    assert status.in_progress == []
    assert status.last_results["acme"].plans_inserted == 1
    assert status.as_response()["lastResults"]["acme"]["plansInserted"] == 1


async def test_start_background_runs_without_blocking(session_factory):
    engine = SyncEngine(session_factory, CountingCache())
    task = engine.start_background(engine.run_all([StaticAdapter("acme", _plans("acme", 2))]))

    results = await task
    assert results[0].plans_inserted == 2
    assert len(await _stored_plans(session_factory, "acme")) == 2


class _Rendezvous:
    def __init__(self, parties):
        self.parties = parties
        self.arrived = 0
        self.event = asyncio.Event()

    async def wait(self):
        self.arrived += 1
        if self.arrived >= self.parties:
            self.event.set()
        await self.event.wait()


class RendezvousUpsertEngine(SyncEngine):
    """Holds every provider upsert until all concurrent runs have reached it."""

    def __init__(self, *args, rendezvous, **kwargs):
        super().__init__(*args, **kwargs)
        self.rendezvous = rendezvous

    async def _upsert_provider(self, data):
        await self.rendezvous.wait()
        return await super()._upsert_provider(data)


@pytest.fixture
async def file_session_factory(tmp_path):
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

    from app.core.database import Base

    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield async_sessionmaker(engine, class_=AsyncSession, autoflush=False, expire_on_commit=False)
    finally:
        await engine.dispose()


async def test_overlapping_first_syncs_share_one_provider_row(file_session_factory):
    engine = RendezvousUpsertEngine(file_session_factory, CountingCache(), rendezvous=_Rendezvous(2))

    results = await asyncio.gather(
        engine.run_one(StaticAdapter("acme", _plans("acme", 3))),
        engine.run_one(StaticAdapter("acme", _plans("acme", 3))),
    )

    assert [result.error for result in results] == [None, None]
    async with file_session_factory() as session:
        providers = await session.scalar(select(func.count()).select_from(Provider))
    assert providers == 1
    assert len(await _stored_plans(file_session_factory, "acme")) == 3
    assert (await _provider(file_session_factory, "acme")).plan_count == 3


class GatedAdapter(StaticAdapter):
    def __init__(self, slug, plans=()):
        super().__init__(slug, plans)
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def fetch_plans(self):
        self.started.set()
        await self.release.wait()
        return await super().fetch_plans()


async def test_overlapping_runs_of_one_provider_stay_in_progress(session_factory):
    engine = SyncEngine(session_factory, CountingCache())
    slow = GatedAdapter("acme", _plans("acme", 2))
    slow_run = asyncio.ensure_future(engine.run_one(slow))
    await slow.started.wait()

    await engine.run_one(StaticAdapter("acme", _plans("acme", 1)))

    assert engine.is_running("acme") is True
    assert engine.status().in_progress == ["acme"]

    slow.release.set()
    result = await slow_run
    assert result.ok
    assert engine.is_running("acme") is False
    assert engine.status().in_progress == []
