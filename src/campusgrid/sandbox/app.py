"""
═══════════════════════════════════════════════════════════════════════════════
CampusGrid Sandbox — Эмуляция REST API платформы (Application Entry Point)
═══════════════════════════════════════════════════════════════════════════════

Фабрика приложения (Application Factory Pattern) для локального sandbox:
тот же контракт ``/api/auth/*`` и ``/api/groups*``, что у платформы, но
всё состояние в памяти (``SandboxStore``).

Используется командой ``campusgrid sandbox`` и end-to-end тестами
(через ``httpx.ASGITransport``).
"""

from __future__ import annotations

import logging
import sys

import uvicorn
from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from campusgrid import __version__
from campusgrid.config import CampusGridSettings, get_settings
from campusgrid.exceptions import CampusGridError
from campusgrid.sandbox.api.auth import router as auth_router
from campusgrid.sandbox.api.groups import router as groups_router
from campusgrid.sandbox.store import SandboxStore, seed_store

logger = logging.getLogger(__name__)

# Маппинг кодов ошибок на HTTP-статусы
STATUS_MAP = {
    "CAMPUSGRID_NOT_FOUND": 404,
    "CAMPUSGRID_CONFLICT": 409,
    "CAMPUSGRID_VALIDATION_ERROR": 422,
    "CAMPUSGRID_TRANSITION_ERROR": 422,
    "CAMPUSGRID_AUTH_ERROR": 401,
    "CAMPUSGRID_PERMISSION_DENIED": 403,
}


def create_app(settings: CampusGridSettings | None = None, store: SandboxStore | None = None) -> FastAPI:
    """Создаёт и конфигурирует sandbox FastAPI-приложение."""
    settings = settings or get_settings()

    app = FastAPI(
        redirect_slashes=False,
        title="CampusGrid Sandbox",
        description="In-memory emulation of the CampusGrid platform REST API for local development.",
        version=__version__,
    )
    app.state.store = store or seed_store(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept", "Idempotency-Key"],
    )

    # ── Подключение API-роутеров ─────────────────────────────────────────
    api_router = APIRouter(prefix="/api")
    api_router.include_router(auth_router)
    api_router.include_router(groups_router)
    app.include_router(api_router)

    # ── Глобальный обработчик CampusGridError ────────────────────────────
    @app.exception_handler(CampusGridError)
    async def campusgrid_error_handler(request: Request, exc: CampusGridError) -> JSONResponse:
        """Маппинг кодов на HTTP-статусы, тело в формате платформы."""
        status_code = STATUS_MAP.get(exc.code, 500)
        if status_code >= 500:
            logger.error("Unhandled sandbox error on %s: %s", request.url.path, exc.message)
        return JSONResponse(
            status_code=status_code,
            content={"success": False, "message": exc.message, "code": exc.code, "details": exc.details},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        first = errors[0]["msg"] if errors else "Invalid request"
        return JSONResponse(
            status_code=422,
            content={"success": False, "message": f"Invalid request: {first}"},
        )

    @app.get("/api/health", tags=["health"])
    async def health():
        return {"status": "healthy", "service": "campusgrid-sandbox", "version": __version__}

    return app


def main(host: str | None = None, port: int | None = None) -> None:
    """Запускает sandbox через Uvicorn."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    host = host or settings.sandbox_host
    port = port or settings.sandbox_port
    logger.info("Starting CampusGrid sandbox on %s:%s", host, port)
    uvicorn.run(
        create_app(settings),
        host=host,
        port=port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
