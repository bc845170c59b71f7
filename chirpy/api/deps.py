"""FastAPI dependencies a host application mounts on its routes.

``require_user`` resolves the caller from an ``Authorization: Bearer`` access
token; ``require_api_key`` gates webhook endpoints on the static API key.
Failures propagate as ``ServiceError`` subclasses and are rendered by
:func:`chirpy.api.error_handling.register_exception_handlers`.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import FastAPI, Request

from chirpy.logging import set_correlation_id
from chirpy.service.runtime import get_runtime
from chirpy.service.sessions import SessionManager

REQUEST_ID_HEADER = "X-Request-ID"


def install_request_tracing(app: FastAPI) -> None:
    """Bind a correlation id to every request and echo it back."""

    @app.middleware("http")
    async def add_correlation_id(request: Request, call_next):
        correlation_id = set_correlation_id(request.headers.get(REQUEST_ID_HEADER))
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = correlation_id
        return response


def get_session_manager() -> SessionManager:
    return get_runtime().sessions


def require_user(request: Request) -> UUID:
    return get_session_manager().authorize(request.headers)


def require_api_key(request: Request) -> None:
    get_session_manager().authorize_api_key(request.headers)
