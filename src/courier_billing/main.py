"""FastAPI application entry point."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api.routes import clubbing, customers, health, invoices, notifications, payments, shipments, surcharges, zones
from .config import settings
from .errors import BillingError
from .persistence import DocumentStore, build_repositories, create_store
from .services import build_services

_HTTP_ERROR_CODES = {
    status.HTTP_400_BAD_REQUEST: "validation",
    status.HTTP_404_NOT_FOUND: "not_found",
    status.HTTP_405_METHOD_NOT_ALLOWED: "method_not_allowed",
    status.HTTP_409_CONFLICT: "conflict",
}


def _error(status_code: int, message: str, code: str | None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message, "error": code})


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(BillingError)
    async def billing_error_handler(request: Request, exc: BillingError) -> JSONResponse:
        if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            logging.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return _error(exc.status_code, exc.message, exc.code)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error.get('loc', ()) if part != 'body')}: {error.get('msg')}"
            for error in exc.errors()
        )
        return _error(status.HTTP_400_BAD_REQUEST, problems or "Invalid request", "validation")

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _error(exc.status_code, str(exc.detail), _HTTP_ERROR_CODES.get(exc.status_code, "http_error"))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logging.exception(f"Unhandled error on {request.method} {request.url.path}")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc) or "Internal server error", "internal")


def create_app(store: DocumentStore | None = None) -> FastAPI:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    repos = build_repositories(store if store is not None else create_store())

    app = FastAPI(title=settings.app_name, root_path="")
    app.state.repos = repos
    app.state.services = build_services(repos)

    if settings.frontend_allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.frontend_allowed_origins),
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    _register_exception_handlers(app)

    # Root endpoint for diagnostics
    @app.get("/")
    def root():
        return {
            "service": settings.app_name,
            "status": "running",
            "api_prefix": settings.api_prefix,
            "health": f"{settings.api_prefix}/health",
            "docs": "/docs",
        }

    for module in (health, customers, zones, surcharges, shipments, clubbing, invoices, payments, notifications):
        app.include_router(module.router, prefix=settings.api_prefix)
    return app


app = create_app()
