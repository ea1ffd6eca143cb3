"""
Dynamic Queue - FastAPI Backend Application
"""

import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
import structlog

from app.config import Settings, get_settings
from app.dependencies import build_services
from app.api import agents, groups, calls, statistics
from app.webhooks import calls as call_webhooks
from app.webhooks import twilio
from app.realtime import websocket
from app.telephony.clients.base import TelephonyClient

VERSION = "1.0.0"


def configure_logging(settings: Settings) -> None:
    """Configure structured logging"""
    logging.basicConfig(format="%(message)s", level=settings.log_level.upper())

    if settings.log_format == "console":
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


logger = structlog.get_logger()


def create_app(
    settings: Optional[Settings] = None,
    telephony_client: Optional[TelephonyClient] = None,
) -> FastAPI:
    """Build the application with its own directories, router and bus"""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager"""
        logger.info(
            "Starting Dynamic Queue API",
            version=VERSION,
            telephony_provider=app.state.services.gateway.provider,
            telephony_configured=app.state.services.gateway.is_configured,
        )
        yield
        logger.info("Shutting down Dynamic Queue API")

    app = FastAPI(
        title="Dynamic Queue",
        description="Inbound call routing with agent groups and overflow",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.services = build_services(settings, telephony_client=telephony_client)

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_webhook_requests(request: Request, call_next):
        """Bind a request id and log every webhook exchange"""
        if not request.url.path.startswith("/webhooks"):
            return await call_next(request)

        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)
        started = time.perf_counter()
        try:
            response = await call_next(request)
            logger.info(
                "Webhook handled",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 1),
            )
            response.headers["x-request-id"] = request_id
            return response
        finally:
            structlog.contextvars.clear_contextvars()

    # Health check endpoints
    @app.get("/health")
    async def health():
        """Basic health check"""
        gateway = app.state.services.gateway
        return {
            "status": "healthy",
            "service": "api",
            "version": VERSION,
            "telephony": {
                "provider": gateway.provider,
                "configured": gateway.is_configured,
            },
        }

    @app.get("/health/ready")
    async def ready():
        """Readiness check"""
        services = app.state.services
        checks = {
            "directories": "ok",
            "telephony": "ok" if services.gateway.is_configured else "local_only",
        }
        return {
            "status": "ready",
            "checks": checks,
        }

    # Include API routers
    app.include_router(agents.router, prefix="/agents", tags=["Agents"])
    app.include_router(groups.router, prefix="/groups", tags=["Groups"])
    app.include_router(calls.router, prefix="/calls", tags=["Calls"])
    app.include_router(statistics.router, prefix="/statistics", tags=["Statistics"])

    # Include webhook routers
    app.include_router(call_webhooks.router, prefix="/webhooks/calls", tags=["Webhooks"])
    app.include_router(twilio.router, prefix="/webhooks/twilio", tags=["Webhooks"])

    # Real-time channel
    app.include_router(websocket.router, tags=["Realtime"])

    return app


configure_logging(get_settings())
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "app.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_debug,
    )
