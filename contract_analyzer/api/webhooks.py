"""Workflow notifications in, live execution updates out.

  POST /api/webhook/n8n       — progress/result notification from n8n
  POST /api/webhook/updates   — same handler, legacy path
  GET  /api/webhook/updates   — text/event-stream of StatusRecords
"""

import logging
from typing import Any, List, Optional, Union

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel
from sse_starlette.sse import EventSourceResponse

from contract_analyzer.config import settings
from contract_analyzer.jobs.models import ExecutionStatus, StatusRecord
from contract_analyzer.jobs.update_stream import stream_updates

logger = logging.getLogger(__name__)

router = APIRouter()

# Wired in during lifespan (same pattern as submissions.py)
_registry = None


def set_registry(registry):
    global _registry
    _registry = registry


class WorkflowNotification(BaseModel):
    executionId: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    progress: Optional[Union[int, float]] = None
    status: Optional[str] = None
    results: Optional[List[Any]] = None


@router.post("/webhook/n8n")
@router.post("/webhook/updates")
async def receive_notification(payload: WorkflowNotification):
    """Store the latest workflow state so stream clients can pick it up."""
    if _registry is None:
        raise HTTPException(status_code=503, detail="Registry not ready")
    if not payload.executionId:
        raise HTTPException(status_code=400, detail="Missing executionId")

    execution_id = payload.executionId
    if execution_id not in _registry and not settings.accept_unknown_executions:
        logger.warning("Rejected notification for unknown execution %s", execution_id)
        raise HTTPException(status_code=404, detail="Unknown executionId")

    try:
        record = StatusRecord(
            title=payload.title or "Processing...",
            description=payload.description or "Please wait",
            progress=payload.progress or 0,
            status=payload.status or ExecutionStatus.PROCESSING.value,
            results=payload.results,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid notification: {exc}")

    _registry.put(execution_id, record)
    logger.info(
        "Update for %s: %s (%d%%)", execution_id, record.status, record.progress
    )
    return {"success": True}


@router.get("/webhook/updates")
async def execution_updates(
    request: Request,
    execution_id: Optional[str] = Query(None, alias="executionId"),
):
    """Server-sent event stream of an execution's status until it finishes."""
    if _registry is None:
        raise HTTPException(status_code=503, detail="Registry not ready")
    if not execution_id:
        raise HTTPException(status_code=400, detail="Missing executionId")

    async def _generate():
        async for record in stream_updates(
            _registry,
            execution_id,
            poll_interval=settings.stream_poll_interval_seconds,
            timeout=settings.stream_timeout_seconds,
            is_disconnected=request.is_disconnected,
        ):
            yield {"data": record.model_dump_json(exclude_none=True)}

    return EventSourceResponse(_generate())
