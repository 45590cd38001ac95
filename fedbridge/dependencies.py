"""Shared FastAPI dependency helpers."""

from fastapi import HTTPException, Request

from fedbridge.connector import HSDPConnector


def get_connector(request: Request) -> HSDPConnector:
    """Expose the connector opened during application startup."""
    connector = getattr(request.app.state, "connector", None)
    if connector is None or connector.closed:
        raise HTTPException(
            status_code=503,
            detail={"detail": "Connector unavailable.", "code": "connector_closed"},
        )
    return connector
