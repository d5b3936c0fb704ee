"""
Datenbank Service — Engine und Sessions für den Settings Store
"""
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from models.database import Base
from utils.config import settings


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        # aiosqlite runs the connection in a worker thread
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


engine = create_async_engine(settings.database_url, echo=False, **_engine_kwargs(settings.database_url))

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)


async def init_db():
    """Tabellen für den Settings Store anlegen"""
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info(f"✅ Settings-Tabellen bereit ({engine.url.get_backend_name()})")
    except Exception as e:
        logger.error(f"❌ Fehler beim Initialisieren der Datenbank: {e}")
        raise


async def close_db():
    """Verbindungspool schließen"""
    await engine.dispose()
    logger.debug("Datenbank-Verbindungen geschlossen")
