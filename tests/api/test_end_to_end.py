"""Full relay: submit, notify, stream, evict."""
import json

import pytest

from contract_analyzer.client.subscription import (
    ContractAnalyzerClient,
    ExecutionSubscription,
    summarize_results,
)


@pytest.mark.asyncio
async def test_submit_notify_and_follow_to_completion(client, registry, workflow_calls, drain, tmp_path):
    pdf = tmp_path / "rahmenvertrag.pdf"
    pdf.write_bytes(b"%PDF-1.4 Rahmenvertrag")

    execution_id = await ContractAnalyzerClient(client).submit_contract(
        pdf, [{"type": "MUSS", "value": "Laufzeit"}, {"type": "KANN", "value": "Skonto"}]
    )
    await drain()
    assert len(workflow_calls) == 1
    assert registry.get(execution_id).status == "uploading"

    # The workflow engine reports back
    for payload in (
        {"executionId": execution_id, "status": "processing", "progress": 50, "title": "Analyzing"},
        {
            "executionId": execution_id,
            "status": "completed",
            "progress": 100,
            "title": "Fertig",
            "results": [
                {"condition_id": "c1", "fulfilled": True},
                {"condition_id": "c2", "fulfilled": False, "reference": None},
            ],
        },
    ):
        resp = await client.post("/api/webhook/n8n", content=json.dumps(payload),
                                 headers={"content-type": "application/json"})
        assert resp.status_code == 200

    sub = ExecutionSubscription(client)
    sub.start(execution_id)
    state = await sub.wait()

    assert state.is_complete
    assert state.progress == 100
    assert summarize_results(state.results) == {"fulfilled": 1, "total": 2, "percentage": 50}
    assert registry.get(execution_id) is None

    # Late notifications for the finished execution are refused
    resp = await client.post(
        "/api/webhook/n8n", json={"executionId": execution_id, "status": "processing"}
    )
    assert resp.status_code == 404
