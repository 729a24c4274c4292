"""Health check endpoint."""

import platform
import sys

from fastapi import APIRouter

router = APIRouter()

# Set by main.py during lifespan
_registry = None
_dispatcher = None


def set_registry(registry):
    global _registry
    _registry = registry


def set_dispatcher(dispatcher):
    global _dispatcher
    _dispatcher = dispatcher


@router.get("/health")
async def health_check():
    """Service health, live execution count, and workflow target."""
    return {
        "status": "healthy" if _registry is not None and _dispatcher is not None else "starting",
        "active_executions": len(_registry) if _registry is not None else 0,
        "dispatches_in_flight": getattr(_dispatcher, "in_flight", 0),
        "workflow_url": getattr(_dispatcher, "webhook_url", None),
        "python_version": sys.version,
        "platform": platform.platform(),
    }
