"""
Advanced Notification Manager — FastAPI Backend
"""
import sys

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from utils.config import settings

# Logging konfigurieren
logger.remove()
logger.add(sys.stderr, level=settings.log_level.upper())

from api.lifecycle import lifespan
from api.routes import notifications, presence

# FastAPI App erstellen
app = FastAPI(
    title="Advanced Notification Manager",
    description="Priorisierung, Do-Not-Disturb und Kanal-Routing für Smart-Home-Benachrichtigungen",
    version="1.0.0",
    lifespan=lifespan
)

# CORS Middleware - configured via settings
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
)

# Router einbinden
app.include_router(notifications.router, prefix="/api/notifications", tags=["Notifications"])
app.include_router(presence.router, tags=["Presence"])


@app.get("/health")
async def health_check():
    """Quick health check for load balancers."""
    return {"status": "ok"}


# Root Endpoint
@app.get("/")
async def root():
    """API Root"""
    return {
        "name": "Advanced Notification Manager",
        "version": "1.0.0",
        "status": "online",
        "docs": "/docs"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
