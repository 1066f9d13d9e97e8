"""FastAPI application factory."""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from doc_truyen import __version__
from doc_truyen.api import websocket
from doc_truyen.api.routes import backup, files, processing, settings, vocabulary
from doc_truyen.config import get_config
from doc_truyen.errors import ConfigurationError, ServiceError, ValidationError
from doc_truyen.pipeline.orchestrator import ReaderOrchestrator
from doc_truyen.services.events import ReaderEvent
from doc_truyen.storage.store import JsonFileStore

logger = structlog.get_logger()

# Queue events after which workspace state is written to disk
_PERSIST_EVENTS = {"task_completed", "task_failed"}


def create_app(
    orchestrator: Optional[ReaderOrchestrator] = None,
    data_dir: Optional[Path] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        orchestrator: Pre-built orchestrator (tests inject one with a fake backend)
        data_dir: Storage directory when the orchestrator is built here
    """
    if orchestrator is None:
        store = JsonFileStore(data_dir or get_config().storage.data_dir)
        orchestrator = ReaderOrchestrator.from_store(store)

    def persist(event: ReaderEvent) -> None:
        if event.type in _PERSIST_EVENTS:
            orchestrator.save()

    persist_sub = orchestrator.event_bus.subscribe(persist)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await orchestrator.queue.shutdown()
        orchestrator.event_bus.unsubscribe(persist_sub)
        orchestrator.save()
        logger.info("server_stopped")

    app = FastAPI(
        title="Đọc Truyện API",
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(
        request: Request, exc: ConfigurationError
    ) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
        return JSONResponse(status_code=502, content={"detail": str(exc)})

    # Store on app.state for route and WebSocket access
    app.state.orchestrator = orchestrator
    app.state.event_bus = orchestrator.event_bus

    app.include_router(files.router)
    app.include_router(processing.router)
    app.include_router(vocabulary.router)
    app.include_router(settings.router)
    app.include_router(backup.router)
    app.include_router(websocket.router)

    @app.get("/api/v1/health")
    async def health() -> dict:
        return {"status": "ok", "version": __version__}

    return app
