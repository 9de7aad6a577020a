# secretroom/api/health.py
"""Health check endpoints for monitoring and load balancer probes."""

# This module intentionally exposes lightweight, read-only diagnostics:
# - Liveness probes (process is running)
# - Readiness probes (service can answer basic requests)
# - Live solve session count + configured upstream

# -------------------- Standard library imports --------------------
import logging
from datetime import datetime, timezone

# -------------------- Third-party imports --------------------
from fastapi import APIRouter

# -------------------- Local application imports --------------------
from secretroom.api.solve_ws import live_sessions
from secretroom.config import settings

logger = logging.getLogger(__name__)
# Router is mounted under `/api` in `secretroom/main.py`.
router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """
    Health check endpoint for monitoring.

    Returns:
        - status: "ok" if healthy
        - sessions: number of live solve sessions
        - upstream: base URL of the rooms service
        - timestamp: current server time (UTC)
    """
    return {
        "status": "ok",
        "sessions": len(live_sessions),
        "upstream": settings.api_b,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/health/ready")
async def readiness_check():
    """
    Readiness probe - checks if the service is ready to accept traffic.
    """
    unconfigured = [
        name
        for name, url in (("API_A", settings.api_a), ("API_B", settings.api_b))
        if not url.startswith(("http://", "https://"))
    ]
    if unconfigured:
        logger.error(f"Readiness check failed: upstream not configured ({', '.join(unconfigured)})")
        return {"status": "not_ready", "error": f"upstream not configured: {', '.join(unconfigured)}"}
    return {"status": "ready", "sessions": len(live_sessions)}


@router.get("/health/live")
async def liveness_check():
    """
    Liveness probe - basic check that the service is running.
    """
    return {"status": "alive"}
