"""Health check routes for the API service."""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from . import __version__
from .config import ServiceConfig
from .lifecycle import SessionController
from .service_deps import get_config, get_controller, get_store
from .service_settings import SERVICE_NAME
from .store import SessionStore

router = APIRouter(tags=["System"])


async def _check_store(store: SessionStore, backend: str) -> dict[str, Any]:
    """Check that the session store answers.

    Returns:
        Dict with status and backend name
    """
    if await store.ping():
        return {"status": "ok", "backend": backend}
    return {"status": "error", "backend": backend, "message": "store unreachable"}


def _check_providers(config: ServiceConfig) -> dict[str, Any]:
    """Report which provider keys are configured (warning only)."""
    missing = [
        name
        for name, value in (
            ("OPENAI_API_KEY", config.openai_api_key),
            ("ELEVENLABS_API_KEY", config.elevenlabs_api_key),
        )
        if not value
    ]
    if missing:
        return {"status": "warning", "message": f"not configured: {', '.join(missing)}"}
    return {"status": "ok"}


@router.get(
    "/health/live",
    summary="Liveness probe",
    description="Check if the service process is alive and responsive",
    status_code=200,
)
async def health_liveness() -> dict[str, str]:
    """Liveness probe. Performs no dependency checks."""
    return {"status": "alive", "service": SERVICE_NAME, "version": __version__}


@router.get(
    "/health",
    summary="Health check",
    description="Service status including session store reachability",
    responses={
        200: {"description": "Service is ready"},
        503: {"description": "Session store unreachable"},
    },
)
async def health_check(
    config: Annotated[ServiceConfig, Depends(get_config)],
    store: Annotated[SessionStore, Depends(get_store)],
    controller: Annotated[SessionController, Depends(get_controller)],
) -> JSONResponse:
    """
    Readiness check for load balancers.

    Returns:
        - 200 if the store answers
        - 503 if the store is unreachable

    Provider keys are reported but never fail the check; broadcast works
    without them.
    """
    checks: dict[str, Any] = {
        "store": await _check_store(store, config.store_backend),
        "providers": _check_providers(config),
        "idle_cleanup": controller.get_stats(),
    }
    healthy = checks["store"]["status"] == "ok"

    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "healthy" if healthy else "degraded",
            "healthy": healthy,
            "service": SERVICE_NAME,
            "version": __version__,
            "checks": checks,
        },
    )
