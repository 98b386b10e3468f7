"""
StatusPulse Web Application
Subscriber links, dashboard endpoints and dispatch hooks
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..channels.registry import ChannelRegistry, build_default_registry
from ..config import settings
from ..database import init_db
from ..subscription.errors import (
    ChannelDeliveryError,
    InvalidChannelConfigError,
    InvalidComponentsError,
    SubscriptionExpiredError,
    SubscriptionNotFoundError,
    SubscriptionStateError,
)
from .routes import api_router, public_router

logger = logging.getLogger(__name__)


def _error_response(status_code: int):
    async def handler(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})
    return handler


def create_app(registry: Optional[ChannelRegistry] = None, database_url: Optional[str] = None) -> FastAPI:
    """
    Build the application

    Args:
        registry: channel registry; when omitted one is built at startup with a
            shared HTTP client for webhooks and an SMTP client from settings
        database_url: database initialised at startup (default DATABASE_URL)
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        init_db(database_url or settings.database_url)

        http_client = None
        if app.state.registry is None:
            http_client = httpx.AsyncClient(timeout=settings.webhook_timeout_seconds)
            app.state.registry = build_default_registry(http_client=http_client)

        logger.info("StatusPulse started")
        try:
            yield
        finally:
            if http_client is not None:
                await http_client.aclose()

    app = FastAPI(
        title="StatusPulse",
        description="Status page subscriptions and notifications",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.registry = registry

    app.add_exception_handler(SubscriptionNotFoundError, _error_response(404))
    app.add_exception_handler(InvalidComponentsError, _error_response(400))
    app.add_exception_handler(InvalidChannelConfigError, _error_response(400))
    app.add_exception_handler(SubscriptionExpiredError, _error_response(410))
    app.add_exception_handler(SubscriptionStateError, _error_response(409))
    app.add_exception_handler(ChannelDeliveryError, _error_response(502))

    app.include_router(public_router)
    app.include_router(api_router)

    return app


app = create_app()


def run_server(host: str = "0.0.0.0", port: int = 8000):
    import uvicorn
    uvicorn.run(app, host=host, port=port)
