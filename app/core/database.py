# app/core/database.py

import ssl

from loguru import logger
from sqlmodel import SQLModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine
)
from sqlalchemy.pool import NullPool

from app.core.config import settings


# ----------------------------------------------------
# SSL (managed Postgres behind a pooler)
# ----------------------------------------------------
def make_ssl() -> ssl.SSLContext:
    ctx = ssl.create_default_context()
    if not settings.DB_SSL_VERIFY:
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
    return ctx


def make_connect_args(url: str) -> dict:
    if url.startswith("postgresql+asyncpg"):
        # A transaction pooler cannot keep prepared statements between checkouts
        return {
            "ssl": make_ssl(),
            "statement_cache_size": 0,
            "prepared_statement_name_func": None,
        }
    if url.startswith("sqlite"):
        # Concurrent download counters wait on the file lock instead of failing
        return {"timeout": 30}
    return {}


# ----------------------------------------------------
# Engine + session factory builders
# ----------------------------------------------------
def build_engine(url: str) -> AsyncEngine:
    """
    No client-side pooling: production runs behind a pooler, and the
    certificate store opens a short session per call anyway.
    """
    logger.info(f"Configuring database engine ({url.split('://', 1)[0]})")
    return create_async_engine(
        url,
        echo=False,
        connect_args=make_connect_args(url),
        pool_pre_ping=True,
        poolclass=NullPool,
    )


def make_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # expire_on_commit=False: records are read after their session closes
    return async_sessionmaker(bind=bind, class_=AsyncSession, expire_on_commit=False)


engine = build_engine(settings.DATABASE_URL)
AsyncSessionLocal = make_session_factory(engine)


# ----------------------------------------------------
# Schema + health
# ----------------------------------------------------
async def init_db(bind: AsyncEngine = engine):
    """Creates the certificates and audit tables if they are missing."""
    async with bind.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def test_connection(bind: AsyncEngine = engine):
    async with bind.connect() as conn:
        await conn.execute(text("SELECT 1"))
