"""
Application lifecycle management for the Notification Manager.

This module handles:
- Startup initialization (database, notification manager, queue processor)
- Graceful shutdown of the background queue loop
"""

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from loguru import logger

from services.database import close_db, init_db
from services.notification_manager import NotificationManager, get_notification_manager
from utils.config import settings
from utils.hooks import run_hooks

if TYPE_CHECKING:
    from fastapi import FastAPI


async def _init_database():
    """Create tables for the settings store."""
    if settings.notification_store_backend != "database":
        logger.info("⏭️  Datenbank übersprungen (In-Memory Store)")
        return
    await init_db()
    logger.info("✅ Datenbank initialisiert")


async def _init_notification_manager(app: "FastAPI") -> NotificationManager:
    """Load persisted state and start the queue processor."""
    manager = get_notification_manager()
    await manager.initialize()
    await manager.start()
    app.state.notification_manager = manager
    return manager


@asynccontextmanager
async def lifespan(app: "FastAPI"):
    """
    Application lifespan context manager.

    Handles startup and shutdown of:
    - Database initialization
    - Notification manager state + queue processor
    - startup/shutdown hooks
    """
    logger.info("🚀 Notification Manager startet...")

    await _init_database()
    manager = await _init_notification_manager(app)
    await run_hooks("startup", app=app)

    yield

    logger.info("👋 Notification Manager wird heruntergefahren...")
    await run_hooks("shutdown", app=app)
    await manager.stop()
    if settings.notification_store_backend == "database":
        await close_db()
    logger.info("✅ Shutdown complete")
