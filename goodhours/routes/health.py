"""
Health check endpoints.
"""
import time
import logging
from fastapi import APIRouter
from typing import Dict, Any

from goodhours.db import check_database_health
from goodhours.services.email import get_sendgrid_client
from goodhours.core.settings import settings

logger = logging.getLogger("goodhours.health")
router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": time.time(),
        "environment": settings.environment,
        "version": "1.0.0"
    }


@router.get("/health/detailed")
async def detailed_health_check() -> Dict[str, Any]:
    """Database connectivity plus configuration of outbound email."""
    start_time = time.time()
    health_status: Dict[str, Any] = {
        "status": "healthy",
        "timestamp": time.time(),
        "environment": settings.environment,
        "services": {},
    }

    db_health = await check_database_health()
    health_status["services"]["database"] = db_health
    if db_health.get("status") != "healthy":
        health_status["status"] = "degraded"

    health_status["services"]["email"] = {
        "status": "configured" if settings.sendgrid_api_key and get_sendgrid_client() else "not_configured",
    }
    health_status["response_time_ms"] = round((time.time() - start_time) * 1000, 2)
    return health_status
