"""Connector routes consumed by the downstream broker."""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from fedbridge.connector import HSDPConnector
from fedbridge.dependencies import get_connector
from fedbridge.errors import ConnectorError
from fedbridge.models import CallbackRequest, Scopes
from fedbridge.schemas.identity import IdentityResponse, RefreshRequest, TokenExchangeRequest

router = APIRouter(prefix="/connector", tags=["connector"])

logger = structlog.get_logger(__name__)


def _error_response(status_code: int, detail: str, code: str) -> JSONResponse:
    """Build standardized API error response payload."""
    return JSONResponse(status_code=status_code, content={"detail": detail, "code": code})


def _log_outcome(
    operation: str,
    connector: HSDPConnector,
    error: ConnectorError | None = None,
    user_id: str | None = None,
) -> None:
    """Emit one structured log line per connector operation."""
    if error is None:
        logger.info(
            "connector_operation",
            operation=operation,
            protocol=connector.protocol.name,
            success=True,
            user_id=user_id,
        )
        return
    logger.warning(
        "connector_operation",
        operation=operation,
        protocol=connector.protocol.name,
        success=False,
        code=error.code,
        detail=error.detail,
    )


@router.get("/login", response_model=None)
async def login(
    connector: Annotated[HSDPConnector, Depends(get_connector)],
    state: Annotated[str, Query(min_length=1)],
    callback_url: Annotated[str, Query(min_length=1)],
    offline_access: Annotated[bool, Query()] = False,
) -> Response:
    """Redirect the browser to the upstream login page."""
    try:
        url = connector.login_url(
            scopes=Scopes(offline_access=offline_access),
            callback_url=callback_url,
            state=state,
        )
    except ConnectorError as exc:
        _log_outcome("login", connector, error=exc)
        return _error_response(status_code=exc.status_code, detail=exc.detail, code=exc.code)
    _log_outcome("login", connector)
    return RedirectResponse(url=url, status_code=302)


@router.get("/callback", response_model=IdentityResponse)
async def callback(
    request: Request,
    connector: Annotated[HSDPConnector, Depends(get_connector)],
) -> IdentityResponse | JSONResponse:
    """Complete the upstream callback and return the canonical identity."""
    callback_request = CallbackRequest.from_pairs(request.query_params.multi_items())
    try:
        identity = await connector.handle_callback(scopes=Scopes(), request=callback_request)
    except ConnectorError as exc:
        _log_outcome("callback", connector, error=exc)
        return _error_response(status_code=exc.status_code, detail=exc.detail, code=exc.code)
    _log_outcome("callback", connector, user_id=identity.user_id)
    return IdentityResponse.from_identity(identity)


@router.post("/refresh", response_model=IdentityResponse)
async def refresh(
    payload: RefreshRequest,
    connector: Annotated[HSDPConnector, Depends(get_connector)],
) -> IdentityResponse | JSONResponse:
    """Renew a session from its stored connector data."""
    try:
        identity = await connector.refresh(
            scopes=Scopes(offline_access=payload.offline_access),
            identity=payload.to_identity(),
        )
    except ConnectorError as exc:
        _log_outcome("refresh", connector, error=exc)
        return _error_response(status_code=exc.status_code, detail=exc.detail, code=exc.code)
    _log_outcome("refresh", connector, user_id=identity.user_id)
    return IdentityResponse.from_identity(identity)


@router.post("/token", response_model=IdentityResponse)
async def token_exchange(
    payload: TokenExchangeRequest,
    connector: Annotated[HSDPConnector, Depends(get_connector)],
) -> IdentityResponse | JSONResponse:
    """Resolve the identity behind a subject token."""
    try:
        identity = await connector.token_identity(
            subject_token_type=payload.subject_token_type,
            subject_token=payload.subject_token,
        )
    except ConnectorError as exc:
        _log_outcome("token_exchange", connector, error=exc)
        return _error_response(status_code=exc.status_code, detail=exc.detail, code=exc.code)
    _log_outcome("token_exchange", connector, user_id=identity.user_id)
    return IdentityResponse.from_identity(identity)
