"""Browser-facing contract submission API.

  POST /api/contracts/analyze   — contract file + criteria JSON
  POST /api/analysis/callback   — contract file + callback URL

Both mint an execution id, record the initial status, hand the file to the
workflow engine without waiting, and answer {success, executionId} right away.
The browser then listens on GET /api/webhook/updates?executionId=...
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, File, Form, HTTPException, UploadFile
from pydantic import TypeAdapter, ValidationError

from contract_analyzer.config import settings
from contract_analyzer.jobs.models import (
    Criterion,
    DispatchJob,
    ExecutionStatus,
    StatusRecord,
    new_execution_id,
)

logger = logging.getLogger(__name__)

router = APIRouter()

# Wired in during lifespan (same pattern as webhooks.py)
_dispatcher = None
_registry = None


def set_dispatcher(dispatcher):
    global _dispatcher
    _dispatcher = dispatcher


def set_registry(registry):
    global _registry
    _registry = registry


_CRITERIA_ADAPTER = TypeAdapter(List[Criterion])

_READ_CHUNK = 1024 * 1024


# ---------------------------------------------------------------------------
# POST /api/contracts/analyze
# ---------------------------------------------------------------------------

@router.post("/contracts/analyze")
async def analyze_contract(
    file: Optional[UploadFile] = File(None),
    criteria: Optional[str] = Form(None),
):
    """Submit a contract with MUSS/SOLL/KANN/ANALYSE criteria for analysis.

    Returns:
        {success, executionId}
    """
    _require_wiring()
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail="No file provided")
    if not criteria or not criteria.strip():
        raise HTTPException(status_code=400, detail="No criteria provided")

    parsed = _parse_criteria(criteria)
    content = await _read_upload(file)
    _dispatcher.check_ready()

    return await _submit(file, content, criteria=parsed)


# ---------------------------------------------------------------------------
# POST /api/analysis/callback
# ---------------------------------------------------------------------------

@router.post("/analysis/callback")
async def submit_for_callback(
    file: Optional[UploadFile] = File(None),
    callback_url: Optional[str] = Form(None, alias="callbackUrl"),
):
    """Submit a contract; the workflow reports progress to callbackUrl.

    Returns:
        {success, executionId}
    """
    _require_wiring()
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail="No file provided")

    content = await _read_upload(file)
    _dispatcher.check_ready()

    return await _submit(
        file, content, callback_url=callback_url or settings.public_callback_url
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _require_wiring() -> None:
    if _dispatcher is None or _registry is None:
        raise HTTPException(status_code=503, detail="Dispatcher not ready")


def _parse_criteria(raw: str) -> List[Criterion]:
    try:
        parsed = _CRITERIA_ADAPTER.validate_json(raw)
    except ValidationError as exc:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid criteria: {exc.errors()[0].get('msg', 'malformed')}",
        )
    if not parsed:
        raise HTTPException(status_code=400, detail="No criteria provided")
    return parsed


async def _read_upload(file: UploadFile) -> bytes:
    chunks = []
    total = 0
    while True:
        chunk = await file.read(_READ_CHUNK)
        if not chunk:
            break
        total += len(chunk)
        if total > settings.max_upload_bytes:
            limit_mb = settings.max_upload_bytes // (1024 * 1024)
            raise HTTPException(status_code=413, detail=f"File too large (max {limit_mb} MB)")
        chunks.append(chunk)
    if total == 0:
        raise HTTPException(status_code=400, detail="No file provided")
    return b"".join(chunks)


async def _submit(
    file: UploadFile,
    content: bytes,
    criteria: Optional[List[Criterion]] = None,
    callback_url: Optional[str] = None,
) -> dict:
    execution_id = new_execution_id()
    while execution_id in _registry:
        execution_id = new_execution_id()
    job = DispatchJob(
        execution_id=execution_id,
        filename=file.filename,
        content_type=file.content_type or "application/octet-stream",
        content=content,
        criteria=criteria,
        callback_url=callback_url,
    )

    _registry.put(
        execution_id,
        StatusRecord(
            title="Datei wird hochgeladen...",
            description="Übertragung zu n8n läuft",
            progress=10,
            status=ExecutionStatus.UPLOADING.value,
        ),
    )
    logger.info(
        "Submitted %s (%s, %d bytes)", execution_id, job.filename, len(job.content)
    )

    await _dispatcher.dispatch(job)

    return {"success": True, "executionId": execution_id}
