"""Fire-and-forget dispatch of executions to the n8n workflow engine.

Each dispatch runs as its own asyncio task. The HTTP response to the browser
never waits on it; any failure is written into the execution registry as an
``error`` record so the live stream can surface it.
"""

import asyncio
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional, Set

import httpx

from contract_analyzer.jobs.dispatcher import WorkflowConfigError, WorkflowDispatcher
from contract_analyzer.jobs.models import DispatchJob, ExecutionStatus, StatusRecord
from contract_analyzer.storage.execution_registry import ExecutionRegistry

logger = logging.getLogger(__name__)


class HttpWorkflowDispatcher(WorkflowDispatcher):
    """Posts uploaded contracts to the workflow webhook as multipart form data."""

    def __init__(
        self,
        registry: ExecutionRegistry,
        webhook_url: str,
        timeout_seconds: float = 600.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        transport: optional httpx transport override (tests pass a MockTransport).
        """
        self._registry = registry
        self._webhook_url = webhook_url
        self._timeout = timeout_seconds
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def webhook_url(self) -> str:
        return self._webhook_url

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def check_ready(self) -> None:
        try:
            url = httpx.URL(self._webhook_url)
        except (httpx.InvalidURL, TypeError) as exc:
            raise WorkflowConfigError(f"Invalid workflow URL: {exc}") from exc
        if url.scheme not in ("http", "https") or not url.host:
            raise WorkflowConfigError(f"Invalid workflow URL: {self._webhook_url!r}")

    async def start(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                transport=self._transport,
            )

    async def stop(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def dispatch(self, job: DispatchJob) -> None:
        self.check_ready()
        if self._client is None:
            await self.start()
        task = asyncio.create_task(self._send(job), name=f"dispatch-{job.execution_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _send(self, job: DispatchJob) -> None:
        """One attempt, no retry. Failures land in the registry, never raise."""
        data = {
            "executionId": job.execution_id,
            "request_id": uuid.uuid4().hex,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        if job.callback_url:
            data["callbackUrl"] = job.callback_url
        if job.criteria is not None:
            data["criteria"] = json.dumps([c.model_dump() for c in job.criteria])
        files = {"file": (job.filename, job.content, job.content_type)}

        logger.info("Dispatching %s to %s", job.execution_id, self._webhook_url)
        try:
            # httpx timeouts are per phase; wait_for bounds the whole exchange
            response = await asyncio.wait_for(
                self._client.post(self._webhook_url, data=data, files=files),
                self._timeout,
            )
            response.raise_for_status()
        except (httpx.TimeoutException, asyncio.TimeoutError):
            logger.error("Workflow request for %s timed out", job.execution_id)
            self._record_failure(
                job.execution_id,
                "Zeitüberschreitung",
                f"n8n hat nicht innerhalb von {self._timeout:.0f}s geantwortet",
            )
        except httpx.HTTPStatusError as exc:
            logger.error(
                "Workflow rejected %s: HTTP %d", job.execution_id, exc.response.status_code
            )
            self._record_failure(
                job.execution_id,
                "Analyse fehlgeschlagen",
                f"n8n antwortete mit HTTP {exc.response.status_code}",
            )
        except httpx.HTTPError as exc:
            logger.error("Error sending %s to workflow: %s", job.execution_id, exc)
            self._record_failure(
                job.execution_id,
                "n8n nicht erreichbar",
                f"{type(exc).__name__}: {exc}",
            )
        else:
            logger.info(
                "Workflow accepted %s (HTTP %d)", job.execution_id, response.status_code
            )

    def _record_failure(self, execution_id: str, title: str, description: str) -> None:
        current = self._registry.get(execution_id)
        # Already streamed to completion and evicted, or the engine reported first
        if current is None or current.terminal:
            return
        self._registry.put(
            execution_id,
            StatusRecord(
                title=title,
                description=description,
                progress=100,
                status=ExecutionStatus.ERROR.value,
            ),
        )
