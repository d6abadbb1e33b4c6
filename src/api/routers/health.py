"""
Health check endpoints for monitoring and diagnostics.
"""

import time
from fastapi import APIRouter, Depends
from datetime import datetime, timezone

from ..models.common import HealthStatus
from ..dependencies.session import get_output_store, get_model_manager, OutputStore
from src.models.manager import ModelManager

router = APIRouter()

# Track server start time for uptime calculation
_server_start_time = time.time()

@router.get("/", response_model=HealthStatus)
async def health_check(
    output_store: OutputStore = Depends(get_output_store),
    model_manager: ModelManager = Depends(get_model_manager)
):
    """
    Basic health check endpoint.

    Reports local component status only; provider reachability is checked by
    `/health/ready` because it costs a network round trip.
    """
    uptime = time.time() - _server_start_time
    dependencies = {}

    try:
        stats = output_store.get_stats()
        dependencies["output_store"] = f"Active ({stats['active_sessions']} sessions)"
    except Exception as e:
        dependencies["output_store"] = f"Error: {e}"

    try:
        tasks = sorted(model_manager.config["tasks"])
        dependencies["model_manager"] = f"Configured tasks: {', '.join(tasks)}"
    except Exception as e:
        dependencies["model_manager"] = f"Error: {e}"

    return HealthStatus(
        status="healthy",
        version="1.0.0",
        uptime=uptime,
        dependencies=dependencies
    )

@router.get("/detailed")
async def detailed_health_check(
    output_store: OutputStore = Depends(get_output_store),
    model_manager: ModelManager = Depends(get_model_manager)
):
    uptime = time.time() - _server_start_time
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime_seconds": uptime,
        "uptime_human": f"{uptime//3600:.0f}h {(uptime%3600)//60:.0f}m {uptime%60:.0f}s",
        "sessions": output_store.get_stats(),
        "task_stats": model_manager.get_stats(),
    }

@router.get("/ready")
async def readiness_check(model_manager: ModelManager = Depends(get_model_manager)):
    """
    Readiness probe: 'ready' only when every initialized provider answers.
    """
    providers = await model_manager.health()
    unhealthy = [name for name, ok in providers.items() if not ok]
    if not providers or unhealthy:
        return {"ready": False, "reason": f"Providers unavailable: {', '.join(unhealthy) or 'none initialized'}"}

    return {"ready": True, "message": "Service ready to handle requests"}
