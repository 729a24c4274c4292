"""Tests for the in-memory execution registry."""
from contract_analyzer.jobs.models import StatusRecord
from contract_analyzer.storage.execution_registry import ExecutionRegistry


def _record(status="processing", progress=50, **kw):
    return StatusRecord(title="Analyzing", description="LLM läuft", progress=progress, status=status, **kw)


def test_get_unknown_returns_none(registry):
    assert registry.get("exec_missing") is None
    assert "exec_missing" not in registry


def test_put_then_get(registry):
    registry.put("exec_1", _record())
    fetched = registry.get("exec_1")
    assert fetched.status == "processing"
    assert fetched.progress == 50
    assert len(registry) == 1


def test_put_fully_replaces_record(registry):
    registry.put("exec_1", _record(results=[{"condition_id": "c1", "fulfilled": True}]))
    registry.put("exec_1", _record(status="uploading", progress=10))
    fetched = registry.get("exec_1")
    assert fetched.status == "uploading"
    assert fetched.progress == 10
    assert fetched.results is None


def test_evict_is_idempotent(registry):
    registry.put("exec_1", _record())
    registry.evict("exec_1")
    registry.evict("exec_1")
    registry.evict("never_existed")
    assert registry.get("exec_1") is None
    assert registry.touched_at("exec_1") is None
    assert len(registry) == 0


def test_put_refreshes_touched_at(clock):
    reg = ExecutionRegistry(clock=clock)
    reg.put("exec_1", _record())
    first = reg.touched_at("exec_1")
    clock.advance(30)
    reg.put("exec_1", _record(progress=60))
    assert reg.touched_at("exec_1") == first + 30


def test_sweep_expired_removes_only_stale_entries(clock):
    reg = ExecutionRegistry(clock=clock)
    reg.put("exec_old", _record())
    clock.advance(100)
    reg.put("exec_new", _record())
    clock.advance(50)

    removed = reg.sweep_expired(max_age_seconds=120)

    assert removed == 1
    assert reg.get("exec_old") is None
    assert reg.get("exec_new") is not None


def test_sweep_with_nothing_stale(clock):
    reg = ExecutionRegistry(clock=clock)
    reg.put("exec_1", _record())
    assert reg.sweep_expired(max_age_seconds=10) == 0
    assert "exec_1" in reg
