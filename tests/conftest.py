"""Shared test fixtures for the contract analyzer test suite."""
import asyncio

import httpx
import pytest

from contract_analyzer.config import settings
from contract_analyzer.jobs.workflow_client import HttpWorkflowDispatcher
from contract_analyzer.main import create_app, wire_services
from contract_analyzer.storage.execution_registry import ExecutionRegistry

WORKFLOW_URL = "http://n8n.test/webhook/upload-pdf"


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def _fast_streams(monkeypatch):
    monkeypatch.setattr(settings, "stream_poll_interval_seconds", 0.01)
    monkeypatch.setattr(settings, "stream_timeout_seconds", 5.0)
    monkeypatch.setattr(settings, "accept_unknown_executions", False)


@pytest.fixture(autouse=True)
def _reset_sse_app_status():
    """sse-starlette keeps a process-wide exit event bound to the first loop."""
    import sse_starlette.sse as sse_module

    app_status = getattr(sse_module, "AppStatus", None)
    if app_status is not None and hasattr(app_status, "should_exit_event"):
        app_status.should_exit_event = None
    yield


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry():
    return ExecutionRegistry()


@pytest.fixture
def workflow_calls():
    """Every request the fake workflow engine received."""
    return []


@pytest.fixture
def engine_reply():
    """How the fake workflow engine answers. Override per test module/test."""
    return lambda request: httpx.Response(200, json={"message": "Workflow was started"})


@pytest.fixture
async def dispatcher(registry, workflow_calls, engine_reply):
    async def handler(request: httpx.Request):
        workflow_calls.append(request)
        reply = engine_reply(request)
        if asyncio.iscoroutine(reply):
            reply = await reply
        return reply

    d = HttpWorkflowDispatcher(
        registry,
        webhook_url=WORKFLOW_URL,
        timeout_seconds=5.0,
        transport=httpx.MockTransport(handler),
    )
    await d.start()
    yield d
    await d.stop()


@pytest.fixture
def app(registry, dispatcher):
    application = create_app()
    wire_services(registry, dispatcher)
    yield application
    wire_services(None, None)


@pytest.fixture
async def client(app):
    """Async HTTP client bound to the test app."""
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://testserver",
    ) as ac:
        yield ac


@pytest.fixture
def drain(dispatcher):
    """Await all background dispatch tasks."""

    async def _drain() -> None:
        await asyncio.gather(*list(dispatcher._tasks), return_exceptions=True)

    return _drain
