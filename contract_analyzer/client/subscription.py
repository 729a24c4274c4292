"""Client-side helpers: submit a contract and follow its live updates.

Usage:
    async with httpx.AsyncClient(base_url="http://localhost:3000") as http:
        client = ContractAnalyzerClient(http)
        execution_id = await client.submit_contract("vertrag.pdf", [{"type": "MUSS", "value": "Laufzeit"}])

        subscription = ExecutionSubscription(http, on_update=print)
        subscription.start(execution_id)
        state = await subscription.wait()

"Cancel" here is local only: it stops listening and resets state; the
workflow engine keeps running the job.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

import httpx
from pydantic import BaseModel

from contract_analyzer.jobs.models import Criterion, is_terminal

logger = logging.getLogger(__name__)

UPDATES_PATH = "/api/webhook/updates"


class SubmissionError(Exception):
    """The back end refused a submission."""


class UpdateState(BaseModel):
    """UI-facing view of one execution."""
    title: str = "Starting..."
    description: str = "Initializing connection to n8n. Please wait..."
    progress: int = 0
    status: Optional[str] = None
    results: Optional[List[Any]] = None
    is_complete: bool = False
    error: Optional[str] = None


def summarize_results(results: Optional[Iterable[Dict[str, Any]]]) -> Dict[str, Any]:
    """Count fulfilled conditions: {fulfilled, total, percentage}."""
    items = list(results or [])
    total = len(items)
    fulfilled = sum(1 for r in items if r.get("fulfilled"))
    percentage = round(fulfilled / total * 100) if total else 0
    return {"fulfilled": fulfilled, "total": total, "percentage": percentage}


class ContractAnalyzerClient:
    """Thin wrapper over the submission endpoints."""

    def __init__(self, http: httpx.AsyncClient):
        self._http = http

    async def submit_contract(
        self,
        file_path: Union[str, Path],
        criteria: List[Union[Criterion, Dict[str, Any]]],
    ) -> str:
        payload = [
            c.model_dump() if isinstance(c, Criterion) else Criterion(**c).model_dump()
            for c in criteria
        ]
        return await self._post(
            "/api/contracts/analyze", file_path, {"criteria": json.dumps(payload)}
        )

    async def submit_for_callback(
        self, file_path: Union[str, Path], callback_url: Optional[str] = None
    ) -> str:
        data = {"callbackUrl": callback_url} if callback_url else {}
        return await self._post("/api/analysis/callback", file_path, data)

    async def _post(self, url: str, file_path: Union[str, Path], data: Dict[str, str]) -> str:
        path = Path(file_path)
        files = {"file": (path.name, path.read_bytes(), "application/pdf")}
        response = await self._http.post(url, data=data, files=files)
        body = response.json()
        if response.status_code != 200 or not body.get("success"):
            raise SubmissionError(body.get("error") or f"HTTP {response.status_code}")
        return body["executionId"]


class ExecutionSubscription:
    """Follows at most one execution's event stream at a time."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        on_update: Optional[Callable[[UpdateState], None]] = None,
    ):
        self._http = http
        self._on_update = on_update
        self._task: Optional[asyncio.Task] = None
        self.execution_id: Optional[str] = None
        self.state = UpdateState()

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, execution_id: str) -> asyncio.Task:
        """Open the stream for execution_id, dropping any previous one."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self.execution_id = execution_id
        self.state = UpdateState()
        self._task = asyncio.create_task(self._listen(execution_id))
        return self._task

    async def wait(self) -> UpdateState:
        """Block until the current stream ends; returns the final state."""
        if self._task is not None:
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        return self.state

    async def close(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def cancel(self) -> None:
        """Stop listening and reset; the upstream job is not cancelled."""
        await self.close()
        self.execution_id = None
        self.state = UpdateState()

    async def _listen(self, execution_id: str) -> None:
        try:
            async with self._http.stream(
                "GET", UPDATES_PATH, params={"executionId": execution_id}
            ) as response:
                if response.status_code != 200:
                    self.state.error = f"Update stream refused: HTTP {response.status_code}"
                    return
                async for data in _iter_event_data(response):
                    if self._apply(data):
                        # Leaving the context manager closes the connection
                        return
            logger.warning("Update stream for %s ended before completion", execution_id)
            self.state.error = "Update stream closed before completion"
        except httpx.HTTPError as exc:
            logger.warning("Update stream for %s failed: %s", execution_id, exc)
            self.state.error = f"{type(exc).__name__}: {exc}"

    def _apply(self, data: str) -> bool:
        """Merge one event into state. Returns True on a terminal status."""
        try:
            update = json.loads(data)
        except json.JSONDecodeError:
            logger.warning("Ignoring malformed update: %r", data)
            return False
        if not isinstance(update, dict):
            logger.warning("Ignoring non-object update: %r", data)
            return False

        self.state.title = update.get("title", self.state.title)
        self.state.description = update.get("description", self.state.description)
        self.state.progress = update.get("progress", self.state.progress)
        self.state.status = update.get("status", self.state.status)
        if update.get("results") is not None:
            self.state.results = update["results"]

        terminal = is_terminal(self.state.status)
        if terminal:
            self.state.is_complete = True
        if self._on_update is not None:
            self._on_update(self.state)
        return terminal


async def _iter_event_data(response: httpx.Response):
    """Yield the data payload of each server-sent event."""
    data_lines: List[str] = []
    async for line in response.aiter_lines():
        if not line:
            if data_lines:
                yield "\n".join(data_lines)
                data_lines = []
            continue
        if line.startswith(":"):
            continue  # comment / keep-alive ping
        field, _, value = line.partition(":")
        if field == "data":
            data_lines.append(value[1:] if value.startswith(" ") else value)
    if data_lines:
        yield "\n".join(data_lines)
