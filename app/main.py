from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from app.core.config import settings
from app.core.exceptions import BaseCustomException, create_error_response
from app.api.v1.api import api_router
from app.infrastructure.database import AsyncSessionLocal, close_db
from app.infrastructure.redis import redis_manager
from app.middleware.tenant_middleware import TenantMiddleware

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        await redis_manager.connect(settings.REDIS_URL)
    except Exception as e:
        # Feature flags fall back to the database without a cache
        logger.warning(f"Starting without Redis cache: {e}")
    yield
    await redis_manager.disconnect()
    await close_db()


app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_PREFIX}/openapi.json",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Set all CORS enabled origins
if settings.BACKEND_CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin) for origin in settings.BACKEND_CORS_ORIGINS],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.add_middleware(TenantMiddleware)


@app.exception_handler(BaseCustomException)
async def custom_exception_handler(request: Request, exc: BaseCustomException):
    request_id = request.headers.get("X-Request-ID")
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=create_error_response(exc, request_id))


app.include_router(api_router, prefix=f"{settings.API_PREFIX}/bed-management")


@app.get("/health")
async def health_check():
    database = "ok"
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        database = "unavailable"

    cache = "ok" if await redis_manager.is_healthy() else "unavailable"
    return {
        "status": "ok" if database == "ok" else "degraded",
        "database": database,
        "cache": cache,
    }
