"""ASGI application for the Lenscape API."""
from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from .config import Settings, get_settings
from .database import init_db
from .routers import ALL_ROUTERS

logger = logging.getLogger(__name__)


def _allowed_origins(settings: Settings) -> list[str]:
    if not settings.cors_origins:
        return ["*"]
    return [origin.strip() for origin in settings.cors_origins.split(",") if origin.strip()]


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    application = FastAPI(title=settings.app_name, version=settings.api_version)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=_allowed_origins(settings),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    for router in ALL_ROUTERS:
        application.include_router(router)

    @application.exception_handler(SQLAlchemyError)
    async def _database_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        logger.exception("Unhandled database error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Database error"},
        )

    @application.on_event("startup")
    async def _startup() -> None:
        try:
            init_db()
        except Exception:
            logger.exception("Database initialisation failed")
            raise
        logger.info("%s %s ready", settings.app_name, settings.api_version)

    @application.get("/api", tags=["system"])
    def api_info() -> dict[str, str]:
        return {"service": settings.app_name, "version": settings.api_version}

    @application.get("/health", tags=["system"])
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    return application


app = create_app()

__all__ = ["app", "create_app"]
