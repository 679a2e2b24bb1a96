"""
Main FastAPI application for the AndaYa car rental marketplace.
Serves the REST API and the function-style endpoints used by the web app.
"""

import logging
from contextlib import asynccontextmanager

from andaya.config import settings
from andaya.errors import setup_exception_handlers
from andaya.routes import account, admin, functions, health, reservations, vehicles
from andaya.services.auth_client import close_auth_client
from andaya.services.database import close_db, init_db
from andaya.services.email_client import close_email_service
from andaya.services.redis_client import close_redis, init_redis
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown tasks."""
    # Startup
    await init_db()
    try:
        await init_redis()
    except Exception as e:
        # The FX cache is optional; reads fall through to the database
        logger.warning(f"Starting without Redis: {e}")

    yield
    # Shutdown
    await close_db()
    await close_redis()
    await close_auth_client()
    await close_email_service()


app = FastAPI(
    title="AndaYa",
    description="Peer-to-peer car rental marketplace API",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_exception_handlers(app)

# Register routes
app.include_router(health.router, prefix="/api/v1", tags=["health"])
app.include_router(account.router, prefix="/api/v1", tags=["account"])
app.include_router(vehicles.router, prefix="/api/v1", tags=["vehicles"])
app.include_router(reservations.router, prefix="/api/v1", tags=["reservations"])
app.include_router(admin.router, prefix="/api/v1", tags=["admin"])
app.include_router(functions.router, prefix="/api/v1/functions", tags=["functions"])
app.include_router(admin.functions_router, prefix="/api/v1/functions", tags=["admin"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "AndaYa",
        "version": "1.0.0",
        "status": "running",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "andaya.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.APP_ENV == "development",
    )
