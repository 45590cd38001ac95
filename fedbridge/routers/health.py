"""Health check router endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request

router = APIRouter(prefix="/health", tags=["health"])


async def check_connector_ready(request: Request) -> bool:
    """Return True when the connector is open."""
    connector = getattr(request.app.state, "connector", None)
    return connector is not None and not connector.closed


@router.get("/live")
async def live() -> dict[str, str]:
    """Liveness probe endpoint."""
    return {"status": "live"}


@router.get("/ready")
async def ready(
    connector_ready: Annotated[bool, Depends(check_connector_ready)],
) -> dict[str, str]:
    """Readiness probe requiring an open connector."""
    if not connector_ready:
        raise HTTPException(
            status_code=503,
            detail={"detail": "Service not ready.", "code": "connector_closed"},
        )
    return {"status": "ready"}
