"""Health check endpoints."""

from typing import Any

from fastapi import APIRouter, HTTPException, Request

from ferry_captain.core.metrics import health_ready_checks_total

router = APIRouter()


@router.get("/health/live")
def health_live() -> dict[str, str]:
    """Health check endpoint for liveness probe."""
    return {"status": "ok"}


@router.get("/health/ready")
async def health_ready(request: Request) -> dict[str, Any]:
    """Health check endpoint for readiness probe."""
    errors = []

    # Check backend configuration
    if not _check_backend(request):
        errors.append("backend_not_configured")
        health_ready_checks_total.labels(result="fail", reason="backend").inc()
    else:
        health_ready_checks_total.labels(result="ok", reason="backend").inc()

    if errors:
        raise HTTPException(status_code=503, detail={"status": "unready", "errors": errors})

    return {"status": "ready"}


def _check_backend(request: Request) -> bool:
    """Check that the trip services were built at startup."""
    return getattr(request.app.state, "services", None) is not None
