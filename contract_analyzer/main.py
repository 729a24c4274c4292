"""Contract Analyzer back end - FastAPI application."""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from contract_analyzer.config import settings
from contract_analyzer.api.router import api_router
from contract_analyzer.api.errors import register_error_handlers
from contract_analyzer.api.health import router as health_router
from contract_analyzer.api import health as health_api
from contract_analyzer.api import submissions as submissions_api
from contract_analyzer.api import webhooks as webhooks_api
from contract_analyzer.jobs.workflow_client import HttpWorkflowDispatcher
from contract_analyzer.storage.execution_registry import ExecutionRegistry

logger = logging.getLogger(__name__)


def wire_services(registry, dispatcher) -> None:
    """Hand the shared registry and dispatcher to every API module."""
    submissions_api.set_registry(registry)
    submissions_api.set_dispatcher(dispatcher)
    webhooks_api.set_registry(registry)
    health_api.set_registry(registry)
    health_api.set_dispatcher(dispatcher)


async def _registry_sweep_loop(registry: ExecutionRegistry) -> None:
    """Evict executions nobody has touched within the registry TTL."""
    while True:
        await asyncio.sleep(settings.registry_sweep_interval_seconds)
        registry.sweep_expired(settings.registry_ttl_seconds)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown logic."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Starting Contract Analyzer on port %d", settings.port)
    logger.info("Workflow webhook: %s", settings.workflow_webhook_url)

    registry = ExecutionRegistry()
    dispatcher = HttpWorkflowDispatcher(
        registry,
        webhook_url=settings.workflow_webhook_url,
        timeout_seconds=settings.workflow_timeout_seconds,
    )
    await dispatcher.start()
    wire_services(registry, dispatcher)

    sweeper = asyncio.create_task(_registry_sweep_loop(registry))

    yield

    logger.info("Shutting down Contract Analyzer")
    sweeper.cancel()
    try:
        await sweeper
    except asyncio.CancelledError:
        pass
    await dispatcher.stop()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Contract Analyzer",
        description="Relays contract uploads to the n8n analysis workflow and streams its progress",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    app.include_router(health_router, tags=["health"])  # GET /health at root
    app.include_router(api_router)  # All /api/* endpoints
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.port)
