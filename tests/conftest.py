import os

import pytest


def _set_test_env() -> None:
    defaults = {
        "APP_NAME": "eSIM Catalog Test",
        "ENVIRONMENT": "test",
        "LOG_LEVEL": "INFO",
        "AUTO_CREATE_TABLES": "false",
        "DATABASE_URL": "sqlite+aiosqlite:///:memory:",
        "SYNC_SECRET_KEY": "",
        "SYNC_RATE_LIMIT": "1000/minute",
        "SYNC_INTERVAL_HOURS": "0",
        "PROVIDER_RETRY_COUNT": "0",
        "PROVIDER_TIMEOUT_SECONDS": "5",
        "CORS_ORIGINS": "http://localhost:5173,http://localhost:3000",
    }
    for key, value in defaults.items():
        os.environ.setdefault(key, value)


_set_test_env()


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
async def session_factory():
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
    from sqlalchemy.pool import StaticPool

    from app.core.database import Base
    import app.models  # noqa: F401

    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield async_sessionmaker(engine, class_=AsyncSession, autoflush=False, expire_on_commit=False)
    finally:
        await engine.dispose()
