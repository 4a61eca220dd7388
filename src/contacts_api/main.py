"""
FastAPI application entry point.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Annotated, Any, AsyncGenerator

import uvicorn
from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from contacts_api import __version__
from contacts_api.config import get_settings
from contacts_api.contacts.router import router as contacts_router
from contacts_api.contacts.service import cancel_background_tasks
from contacts_api.mailchimp.factory import get_provider
from contacts_api.mailchimp.interface import MailingListProvider
from contacts_api.shared.exceptions import DEFAULT_ERROR_MESSAGE, AppError
from contacts_api.shared.logging import get_logger, setup_logging
from contacts_api.shared.middleware import CorrelationIdMiddleware

logger = get_logger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message or DEFAULT_ERROR_MESSAGE})


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    setup_logging()
    settings = get_settings()

    logger.info(
        "Application starting",
        extra={"env": settings.app_env, "provider_type": settings.provider_type.value},
    )

    yield

    logger.info("Shutting down application")
    await cancel_background_tasks()
    if get_provider.cache_info().currsize:
        await get_provider().close()
    logger.info("Application shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Contacts API",
        description="Mailchimp audience contacts with CSV import and export",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    # Map domain exceptions to {"error": ...} responses
    @app.exception_handler(AppError)
    async def _app_error(request: Request, exc: AppError) -> JSONResponse:
        logger.error(
            exc.message,
            extra={
                "path": request.url.path,
                "method": request.method,
                "error_type": type(exc).__name__,
                "status_code": exc.status_code,
            },
        )
        return _error(exc.status_code, exc.message)

    # Request validation (FastAPI/Pydantic) -> 400 with a flattened message
    @app.exception_handler(RequestValidationError)
    async def _request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        messages = []
        for error in exc.errors():
            field = ".".join(str(loc) for loc in error["loc"])
            messages.append(f"{field}: {error['msg']}")
        message = "; ".join(messages) or "Invalid request"
        logger.warning("Request validation failed", extra={"path": request.url.path, "error": message})
        return _error(status.HTTP_400_BAD_REQUEST, message)

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error", extra={"path": request.url.path, "method": request.method})
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))

    # CORS is added last so it also wraps responses built by the correlation middleware
    app.add_middleware(CorrelationIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(contacts_router)

    @app.get("/v1/health_checker", response_class=PlainTextResponse)
    async def health_checker() -> str:
        return "UP"

    @app.get("/v1/health_mailchimp")
    async def health_mailchimp(
        provider: Annotated[MailingListProvider, Depends(get_provider)],
    ) -> dict[str, Any]:
        return await provider.ping()

    return app


app = create_app()


def run() -> None:
    """Serve the application with uvicorn on the configured host and port."""
    settings = get_settings()
    uvicorn.run(
        "contacts_api.main:app",
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    run()
