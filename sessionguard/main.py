import logging
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from sessionguard.audit.sink import build_audit_sink
from sessionguard.auth.router import router as auth_router
from sessionguard.auth.schemas import HealthResponse
from sessionguard.config import settings
from sessionguard.init_db import startup as init_startup
from sessionguard.redis import close_redis, get_redis
from sessionguard.revocation.durable import RedisRevocationStore
from sessionguard.revocation.exceptions import StoreUnavailable
from sessionguard.revocation.service import RevocationService

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def build_revocation_service() -> RevocationService:
    """Wire the Redis store, local cache and audit sink from settings."""
    store = RedisRevocationStore(
        await get_redis(),
        key_prefix=settings.revocation_key_prefix,
        timeout=settings.revocation_store_timeout_seconds,
    )
    return RevocationService(
        store,
        audit_sink=build_audit_sink(settings.audit_sink),
        sweep_interval=settings.revocation_sweep_interval_seconds,
        bulk_horizon=timedelta(hours=settings.revocation_bulk_horizon_hours),
        resync_max_attempts=settings.revocation_resync_max_attempts,
        resync_backoff=settings.revocation_resync_backoff_seconds,
        audit_timeout=settings.revocation_audit_timeout_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings.validate_secrets()
    if settings.audit_sink == "database":
        await init_startup()
    service = await build_revocation_service()
    service.start()
    app.state.revocation_service = service
    yield
    await service.stop()
    await close_redis()


# Disable interactive docs in production
_docs_url = "/docs" if settings.app_env != "production" else None
_redoc_url = "/redoc" if settings.app_env != "production" else None

app = FastAPI(
    title="Session Guard",
    description="Revogação de tokens de sessão antes da expiração",
    version="0.1.0",
    lifespan=lifespan,
    docs_url=_docs_url,
    redoc_url=_redoc_url,
)

cors_origins = list(settings.cors_origins)
# Only include localhost in non-production environments
if settings.app_env != "production":
    for origin in ["http://localhost:3000", "http://127.0.0.1:3000"]:
        if origin not in cors_origins:
            cors_origins.append(origin)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

app.include_router(auth_router, prefix="/api/auth", tags=["auth"])


@app.get("/api/health", response_model=HealthResponse)
async def health_check(request: Request):
    service: RevocationService = request.app.state.revocation_service
    try:
        redis_ok = await service.durable_store.ping()
    except StoreUnavailable:
        redis_ok = False
    return HealthResponse(status="ok", redis="ok" if redis_ok else "unavailable")
