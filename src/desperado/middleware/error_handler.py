"""Global exception handlers: every error leaves as ``{"detail": ...}`` JSON."""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from desperado.gamification.xp_service import XPAwardError
from desperado.onboarding.service import OnboardingAlreadyStartedError, OnboardingError

logger = structlog.get_logger()


def setup_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={"detail": "Validation error", "errors": jsonable_errors(exc)},
        )

    @app.exception_handler(OnboardingError)
    async def onboarding_exception_handler(_request: Request, exc: OnboardingError) -> JSONResponse:
        status = 409 if isinstance(exc, OnboardingAlreadyStartedError) else 400
        return JSONResponse(status_code=status, content={"detail": str(exc)})

    @app.exception_handler(IntegrityError)
    async def integrity_exception_handler(request: Request, exc: IntegrityError) -> JSONResponse:
        logger.warning("integrity_error", path=request.url.path, error=str(exc.orig))
        return JSONResponse(status_code=409, content={"detail": "Conflicting write, please retry"})

    @app.exception_handler(XPAwardError)
    async def xp_exception_handler(request: Request, exc: XPAwardError) -> JSONResponse:
        logger.error("xp_award_failed", path=request.url.path, error=str(exc))
        return JSONResponse(status_code=503, content={"detail": "XP could not be recorded, please retry"})

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    """Validation errors without the raw ``ctx`` objects pydantic attaches."""
    return [{k: v for k, v in err.items() if k != "ctx"} for err in exc.errors()]
