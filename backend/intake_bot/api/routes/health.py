"""
Health check API routes.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from ... import __version__

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
async def health_check(request: Request) -> JSONResponse:
    """
    Store connectivity plus in-flight message count.

    Returns 503 while the store is unreachable or the service is shutting down.
    """
    services = request.app.state.services
    tracker = request.app.state.tasks

    store_ok = await services.store.ping()

    status = "healthy"
    if tracker.closing:
        status = "shutting_down"
    elif not store_ok:
        status = "degraded"

    body: Dict[str, Any] = {
        "status": status,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": __version__,
        "services": {
            "session_store": "healthy" if store_ok else "unhealthy",
        },
        "in_flight": tracker.in_flight,
    }

    return JSONResponse(status_code=200 if status == "healthy" else 503, content=body)
