"""
FastAPI service for OneVoice live session broadcast.

An operator starts a session, pushes transcript/translation lines (or audio
segments through the speech relay) into it, and any number of listeners
attach over Server-Sent Events to receive them in order.

Example usage:
    # Start the service (development mode, in-process store)
    uvicorn onevoice.service:app --reload --host 0.0.0.0 --port 8000

    # Start several workers sharing sessions through redis
    ONEVOICE_STORE=redis ONEVOICE_REDIS_URL=redis://localhost:6379/0 \
        uvicorn onevoice.service:app --workers 4 --host 0.0.0.0 --port 8000

    # Using the API
    curl -X POST "http://localhost:8000/api/session?inputLang=en-US"
    curl -N "http://localhost:8000/api/stream?code=ABCD"
    curl -X POST -H "Content-Type: application/json" \
        -d '{"code": "ABCD", "text": "Welcome"}' http://localhost:8000/api/ingest
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from . import __version__
from .config import ServiceConfig
from .ingest import IngestGateway
from .lifecycle import SessionController
from .providers import HttpClientProtocol, build_providers
from .relay import SpeechRelay
from .service_errors import register_exception_handlers
from .service_health import router as health_router
from .service_ingest import router as ingest_router
from .service_middleware import add_security_headers, log_requests
from .service_providers import router as providers_router
from .service_session import router as session_router
from .service_stream import router as stream_router
from .store import SessionStore, build_store

logger = logging.getLogger(__name__)


def create_app(
    config: ServiceConfig | None = None,
    store: SessionStore | None = None,
    http_client: HttpClientProtocol | None = None,
) -> FastAPI:
    """
    Build the API application.

    The session store and provider clients are constructed once in the
    lifespan and held on ``app.state``; endpoints reach them through
    dependencies.

    Args:
        config: Service configuration (``ServiceConfig.from_env()`` if omitted)
        store: Pre-built session store; the caller keeps ownership
        http_client: HTTP client for providers (an httpx adapter if omitted)

    Returns:
        Configured FastAPI application
    """
    service_config = config or ServiceConfig.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owns_store = store is None
        session_store = store if store is not None else build_store(service_config)
        controller = SessionController(session_store, service_config)
        gateway = IngestGateway(session_store, code_length=service_config.code_length)
        providers = build_providers(service_config, http_client)

        app.state.config = service_config
        app.state.store = session_store
        app.state.controller = controller
        app.state.gateway = gateway
        app.state.providers = providers
        app.state.relay = SpeechRelay(
            session_store,
            gateway,
            providers.transcriber,
            providers.translator,
            min_chunk_bytes=service_config.min_chunk_bytes,
            code_length=service_config.code_length,
        )

        if service_config.idle_timeout_sec > 0:
            await controller.start_cleanup_task()
        logger.info("OneVoice service started: %r", service_config)
        try:
            yield
        finally:
            await controller.stop_cleanup_task()
            if http_client is None:
                await providers.close()
            if owns_store:
                await session_store.close()
            logger.info("OneVoice service stopped")

    app = FastAPI(
        title="OneVoice API",
        description=(
            "Live session broadcast: operators push transcript and translation "
            "lines into short-coded sessions and listeners receive them over "
            "Server-Sent Events."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.middleware("http")(add_security_headers)
    app.middleware("http")(log_requests)
    register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(session_router)
    app.include_router(ingest_router)
    app.include_router(stream_router)
    app.include_router(providers_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "onevoice.service:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info",
    )
