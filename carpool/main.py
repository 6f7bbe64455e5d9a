"""
FastAPI application with New Relic APM, CORS, lifespan (outbox worker), and all routers.
"""
import asyncio
import logging
import os

# New Relic must be initialized BEFORE any other imports that it instruments.
if os.getenv("NEW_RELIC_LICENSE_KEY"):
    import newrelic.agent
    newrelic.agent.initialize("newrelic.ini")

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from carpool.config import get_settings
from carpool.redis_client import get_redis, close_redis
from carpool.routers import bookings, earnings, rides
from carpool.services import outbox
from carpool.services.exceptions import LifecycleError, Locked

settings = get_settings()
logger = logging.getLogger(__name__)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting %s [%s]", settings.app_name, settings.env)
    if settings.test_mode and settings.env != "production":
        logger.warning("Test mode is on: destination geofence is not enforced")
    await get_redis()          # warm up connection pool

    stop = asyncio.Event()
    worker = asyncio.create_task(outbox.run_worker(stop))
    yield
    stop.set()
    await worker
    await close_redis()
    logger.info("Shutdown complete")


app = FastAPI(
    title=settings.app_name,
    version="1.0.0",
    description="Carpool ride and booking lifecycle service",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LifecycleError)
async def lifecycle_exception_handler(request: Request, exc: LifecycleError):
    logger.info("%s %s -> %s (%s)", request.method, request.url.path, exc.status_code, exc.code)
    headers = None
    if isinstance(exc, Locked) and "retry_after_seconds" in exc.context:
        headers = {"Retry-After": str(exc.context["retry_after_seconds"])}
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


# Global error handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s: %s", request.url, exc, exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# Health check (no auth)
@app.get("/health", tags=["Health"])
async def health():
    return {"status": "ok"}


# Register routers
app.include_router(rides.router)
app.include_router(bookings.router)
app.include_router(earnings.router)
