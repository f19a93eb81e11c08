"""FastAPI application entry point."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError
from sqlalchemy.exc import InterfaceError, OperationalError

from classifieds.config import settings
from classifieds.database import engine
from classifieds.middleware import AccessLogMiddleware, BodySizeLimitMiddleware, SecurityHeadersMiddleware
from classifieds.redis import redis_pool
from classifieds.routers import admin, catalog, classifieds, fees, users

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: release pooled connections on shutdown."""
    yield

    await redis_pool.aclose()
    await engine.dispose()


app = FastAPI(
    title="Community Classifieds",
    description="Classified ads with rolling posting slots and duration-tiered upsells",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(OperationalError)
@app.exception_handler(InterfaceError)
@app.exception_handler(RedisConnectionError)
@app.exception_handler(RedisTimeoutError)
async def transient_io_error(request: Request, exc: Exception) -> JSONResponse:
    """The data store is unreachable or dropped the connection. Never retried here."""
    logger.exception("Data store failure on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=503,
        content={"detail": "Temporary problem talking to the data store. Please try again."},
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Middleware (last added runs outermost)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(BodySizeLimitMiddleware)
app.add_middleware(AccessLogMiddleware)

# Routers. catalog goes first so /classifieds/categories wins over /classifieds/{id}
app.include_router(catalog.router)
app.include_router(classifieds.router)
app.include_router(users.router)
app.include_router(fees.router)
app.include_router(admin.router)


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}
