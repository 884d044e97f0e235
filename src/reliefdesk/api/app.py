"""
FastAPI application factory for the ReliefDesk REST API.
"""

from __future__ import annotations

import uuid

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from sqlalchemy.orm import Session, sessionmaker
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from reliefdesk import __version__
from reliefdesk.core.config import AppConfig, load_app_config
from reliefdesk.core.lifecycle import InvalidTransition
from reliefdesk.core.logging import get_logger
from reliefdesk.core.matching import GrantValidationError, NotFoundError
from reliefdesk.persistence.db import create_db_engine, make_session_factory

from .problem_details import problem_response
from .routers.clients import router as clients_router
from .routers.health import router as health_router
from .routers.matching import router as matching_router
from .routers.opportunities import router as opportunities_router

logger = get_logger("api")


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Accepts or generates an X-Request-Id and echoes it on the response."""

    header_name = "X-Request-Id"

    async def dispatch(self, request: Request, call_next):
        inbound = request.headers.get("x-request-id")
        request_id = (str(inbound).strip() if inbound else "") or str(uuid.uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers[self.header_name] = request_id
        return response


def create_app(
    config: AppConfig | None = None,
    session_factory: sessionmaker[Session] | None = None,
) -> FastAPI:
    """Build the API application.

    Args:
        config: Application config (loaded from configs/app.yaml if omitted)
        session_factory: Session factory to use instead of one built from
            ``config.database``

    Returns:
        Configured FastAPI instance
    """
    if config is None:
        config = load_app_config()

    if session_factory is None:
        engine = create_db_engine(
            config.database.url,
            echo=config.database.echo,
            pool_size=config.database.pool_size,
        )
        session_factory = make_session_factory(engine)

    app = FastAPI(
        title="ReliefDesk API",
        version=__version__,
        default_response_class=ORJSONResponse,
        redirect_slashes=False,
    )
    app.state.session_factory = session_factory
    app.state.expose_errors = config.api.expose_errors
    app.state.lock_ttl_minutes = config.scheduler.lock_ttl_minutes

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-User-Id", "X-Request-Id"],
    )
    app.add_middleware(RequestContextMiddleware)

    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(NotFoundError, _not_found_handler)  # type: ignore[arg-type]
    app.add_exception_handler(InvalidTransition, _invalid_transition_handler)  # type: ignore[arg-type]
    app.add_exception_handler(GrantValidationError, _grant_validation_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unhandled_exception_handler)

    app.include_router(health_router)
    app.include_router(matching_router, prefix="/api/matching")
    app.include_router(opportunities_router, prefix="/api/funding-opportunities")
    app.include_router(clients_router, prefix="/api")

    return app


# =============================================================================
# Error Handlers
# =============================================================================


def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> Response:
    status_code = int(getattr(exc, "status_code", 500) or 500)
    detail = getattr(exc, "detail", None)
    safe_detail = str(detail) if detail is not None else None

    if status_code == 404 and safe_detail in (None, "Not Found"):
        safe_detail = "Route not found"

    return problem_response(request=request, status_code=status_code, detail=safe_detail)


def _validation_error_handler(request: Request, exc: RequestValidationError) -> Response:
    errors: list[dict[str, object]] = []
    for e in exc.errors():
        loc = e.get("loc") or ()
        loc_path = ".".join([str(x) for x in loc if x != "body"])
        errors.append(
            {
                "location": list(loc) if isinstance(loc, (list, tuple)) else [],
                "path": loc_path,
                "message": e.get("msg", "Invalid value"),
                "type": e.get("type"),
            }
        )
    return problem_response(
        request=request,
        status_code=422,
        title="Validation Failed",
        detail="Request validation failed",
        errors=errors,
    )


def _not_found_handler(request: Request, exc: NotFoundError) -> Response:
    return problem_response(request=request, status_code=404, detail=str(exc))


def _invalid_transition_handler(request: Request, exc: InvalidTransition) -> Response:
    extensions: dict[str, object] = {"currentStatus": exc.current.value}
    if exc.action is not None:
        extensions["action"] = exc.action.value
    if exc.target is not None:
        extensions["requestedStatus"] = exc.target.value
    return problem_response(
        request=request,
        status_code=409,
        title="Invalid Transition",
        detail=str(exc),
        extensions=extensions,
    )


def _grant_validation_handler(request: Request, exc: GrantValidationError) -> Response:
    return problem_response(request=request, status_code=400, detail=str(exc))


def _unhandled_exception_handler(request: Request, exc: Exception) -> Response:
    logger.exception(
        "Unhandled error on %s %s (request %s)",
        request.method,
        request.url.path,
        getattr(request.state, "request_id", None),
    )
    return problem_response(
        request=request,
        status_code=500,
        title="Internal Server Error",
        detail=str(exc) if exc else None,
    )
