"""
Health check endpoints for monitoring and load balancing.
"""
import asyncio
import logging

import redis.asyncio as redis
from fastapi import APIRouter, HTTPException
from redis.exceptions import RedisError
import psycopg2

from app.config.settings import get_effective_redis_url, settings
from app.services.database_service import get_database_service
from app.services.llm_service import get_llm_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

@router.get("/health")
async def health_check():
    """
    Basic liveness check.
    Returns 200 if the service is running.
    """
    return {"status": "healthy", "service": "broughtby-chat"}

@router.get("/health/detailed")
async def detailed_health_check():
    """
    Detailed health check covering the stores the chat core depends on.
    """
    health_status = {
        "status": "healthy",
        "service": "broughtby-chat",
        "components": {}
    }

    try:
        db_service = get_database_service()
        result = await asyncio.to_thread(db_service.execute_query, "SELECT 1 as test", ())
        if result and result[0]["test"] == 1:
            health_status["components"]["database"] = "healthy"
        else:
            health_status["components"]["database"] = "unhealthy"
            health_status["status"] = "degraded"
    except (psycopg2.Error, ValueError) as e:
        logger.error(f"Database health check failed: {e}")
        health_status["components"]["database"] = "unhealthy"
        health_status["status"] = "unhealthy"

    # Redis is required only by the redis lock backend and by fan-out
    redis_required = settings.REPLY_LOCK_BACKEND == "redis" or settings.REALTIME_REDIS_FANOUT
    redis_url = get_effective_redis_url()
    if redis_url:
        redis_client = redis.from_url(redis_url, decode_responses=True)
        try:
            await redis_client.ping()
            health_status["components"]["redis"] = "healthy"
        except RedisError as e:
            logger.warning(f"Redis health check failed: {e}")
            health_status["components"]["redis"] = "unhealthy"
            health_status["status"] = "unhealthy" if redis_required else (
                "degraded" if health_status["status"] == "healthy" else health_status["status"]
            )
        finally:
            await redis_client.close()
    else:
        health_status["components"]["redis"] = "missing" if redis_required else "disabled"
        if redis_required:
            health_status["status"] = "unhealthy"

    # Missing LLM keys only disable simulated replies
    providers = get_llm_service().get_available_providers()
    health_status["components"]["llm"] = providers or "unconfigured"
    if not providers and settings.AUTO_REPLY_ENABLED and health_status["status"] == "healthy":
        health_status["status"] = "degraded"

    if health_status["status"] == "unhealthy":
        raise HTTPException(status_code=503, detail=health_status)

    return health_status
