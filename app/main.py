"""
Main FastAPI Application
"""

import logging
import os
import uuid
from contextlib import asynccontextmanager
from logging.config import dictConfig
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

# Load environment variables
from dotenv import load_dotenv

if os.getenv("ENVIRONMENT", "development").lower() in {"development", "dev", "local", "test"}:
    load_dotenv()

from app.config.settings import settings
from app.utils.logging_config import LOGGING_CONFIG
from app.utils.trace_id import trace_id_var


# Custom logging filter to add trace_id
class TraceIdFilter(logging.Filter):
    def filter(self, record):
        record.trace_id = trace_id_var.get()
        return True


# Configure logging
dictConfig(LOGGING_CONFIG)
# The filter goes on the handlers so records from every logger carry it
for handler in logging.getLogger().handlers:
    handler.addFilter(TraceIdFilter())

logger = logging.getLogger(__name__)

from prometheus_fastapi_instrumentator import Instrumentator

from app.api.dependencies import (
    get_background_task_service,
    get_redis_pubsub,
)
from app.api.routes import health, matches, messages, preview, websockets
from app.core.errors import AppError
from app.services.database_service import close_database_service

# Rate limiting
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[f"{settings.RATE_LIMIT_PER_MINUTE}/minute"],
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management"""
    logger.info("Starting application...")
    fanout = get_redis_pubsub()
    if fanout is not None:
        fanout.start_listener()
    yield
    logger.info("Shutting down application...")
    await get_background_task_service().shutdown()
    if fanout is not None:
        await fanout.stop_listener()
    close_database_service()


# Create FastAPI app
app = FastAPI(
    title="BroughtBy Chat API",
    description="Match messaging gateway with simulated preview replies",
    version="1.0.0",
    lifespan=lifespan,
)

# Instrument the app with Prometheus metrics
if settings.ENABLE_METRICS:
    Instrumentator().instrument(app).expose(app)


@app.middleware("http")
async def trace_id_middleware(request: Request, call_next):
    # Try to get trace_id from header, or generate a new one
    trace_id = request.headers.get("X-Trace-ID", str(uuid.uuid4()))
    trace_id_var.set(trace_id)
    response = await call_next(request)
    response.headers["X-Trace-ID"] = trace_id
    return response


# The origins should be a comma-separated string in the env, e.g., "http://localhost:3000,http://127.0.0.1:3000"
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOWED_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Trace-ID"],
)
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)


# Rate limit exception handler
async def rate_limit_exceeded_handler(
    request: Request, exc: RateLimitExceeded
) -> Response:
    return JSONResponse({"detail": "Rate limit exceeded"}, status_code=429)


app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)  # type: ignore[arg-type]


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    logger.warning(f"AppError caught: {exc.code} - {exc.message}", extra={"details": exc.details, "url": str(request.url)})
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response(),
    )
app.add_exception_handler(AppError, app_error_handler)


# Generic fallback handler for unexpected errors
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled exception caught: {exc}", exc_info=True, extra={"url": str(request.url)})
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_SERVER_ERROR",
                "message": "An unexpected internal server error occurred.",
                "details": {"error_type": type(exc).__name__}
            }
        }
    )
app.add_exception_handler(Exception, generic_exception_handler)


app.include_router(health.router)  # No prefix for health endpoints
app.include_router(matches.router, prefix="/api")
app.include_router(messages.router, prefix="/api")
app.include_router(preview.router, prefix="/api")
app.include_router(websockets.router)


@app.get("/")
async def root() -> Dict[str, Any]:
    return {
        "message": "BroughtBy Chat API",
        "version": "1.0.0",
        "endpoints": {
            "matches": "/api/matches",
            "messages": "/api/messages",
            "socket": "/ws/chat",
        },
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.DEBUG,
    )
