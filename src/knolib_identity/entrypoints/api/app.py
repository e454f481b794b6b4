"""FastAPI application definition."""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from knolib_identity.core.auth.repository import IdentityRepository
from knolib_identity.core.exceptions import (
    IdentityError,
    InvalidEmail,
    RequestInvalid,
    Unauthorized,
)

from .deps import Settings, lifespan
from .routes import api_router

logger = structlog.get_logger()


async def identity_error_handler(request: Request, exc: IdentityError) -> JSONResponse:
    """Render identity errors as ``{"error": kind, "message": text}``."""
    if exc.status_code >= 500:
        logger.warning("identity_error", kind=exc.kind, path=request.url.path)
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthorized) else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render request validation failures in the same envelope.

    Submitted values are dropped, since they may hold passwords. A request
    whose only problem is a malformed ``email`` field gets ``InvalidEmail``.
    """
    errors = exc.errors()
    error: IdentityError
    if errors and all(tuple(e.get("loc", ()))[-1:] == ("email",) for e in errors):
        error = InvalidEmail()
    else:
        error = RequestInvalid(
            [
                {"loc": ".".join(str(part) for part in e.get("loc", ())), "msg": str(e.get("msg"))}
                for e in errors
            ]
        )
    logger.info("request_rejected", kind=error.kind, path=request.url.path)
    return await identity_error_handler(request, error)


def create_app(
    settings: Settings | None = None,
    repository: IdentityRepository | None = None,
) -> FastAPI:
    """Build the API application.

    Args:
        settings: Settings, read from the environment when omitted.
        repository: Identity store to use instead of the configured backend.
    """
    app = FastAPI(
        title="knolib-identity",
        description="Identity and access service for knolib",
        version="1.0.0",
        lifespan=lifespan,
        redirect_slashes=False,  # Prevent 307 redirects that lose auth headers
    )
    app.state.settings = settings or Settings()
    if repository is not None:
        app.state.repository = repository

    # CORS middleware for frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(IdentityError, identity_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(
        RequestValidationError,
        validation_error_handler,  # type: ignore[arg-type]
    )

    # Include API routes
    app.include_router(api_router, prefix="/api/v1")

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


app = create_app()
