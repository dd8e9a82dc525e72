import sqlite3
from unittest.mock import AsyncMock

import pytest
from starlette.testclient import TestClient

from ledger_gateway.app import build_app_context
from ledger_gateway.config import ReconcilerSettings
from ledger_gateway.transport.http_server import create_http_app


@pytest.fixture
def context(settings, node):
    return build_app_context(settings, transport=node.transport())


@pytest.fixture
def http_client(context):
    app = create_http_app(context=context)
    with TestClient(app) as client:
        yield client


def test_set_then_get_then_history(http_client, node):
    response = http_client.post("/simple-storage", json={"value": 42})
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["value"] == "42"
    assert body["data"]["blockNumber"] == "1"
    assert body["data"]["gasUsed"] == "21000"

    response = http_client.get("/simple-storage")
    assert response.status_code == 200
    assert response.json()["data"]["value"] == "42"

    response = http_client.get("/simple-storage/history")
    assert response.status_code == 200
    body = response.json()
    assert len(body["data"]) == 1
    assert body["data"][0]["tx_hash"] == node.blocks[1]["transactions"][0]["hash"]
    assert body["data"][0]["input_data"] == {"value": "42"}
    assert body["pagination"] == {"limit": 10, "offset": 0, "total": 1}


@pytest.mark.parametrize(
    "payload",
    [
        {"value": -1},
        {"value": "abc"},
        {"value": True},
        {"value": 2**256},
        {},
    ],
)
def test_set_rejects_invalid_values(http_client, node, payload):
    response = http_client.post("/simple-storage", json=payload)

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "Validation error"
    assert "value" in body["details"]
    assert node.method_calls("eth_sendRawTransaction") == 0


def test_set_rejects_malformed_json(http_client):
    response = http_client.post(
        "/simple-storage",
        content=b"{not json",
        headers={"content-type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json()["details"] == "Request body must be valid JSON"


@pytest.mark.parametrize("query", ["limit=0", "limit=101", "offset=-1", "limit=abc"])
def test_history_rejects_bad_paging(http_client, query):
    response = http_client.get(f"/simple-storage/history?{query}")

    assert response.status_code == 400
    assert response.json()["error"] == "Validation error"


def test_estimation_failure_maps_to_400(http_client, node):
    node.revert_on_estimate = True

    response = http_client.post("/simple-storage", json={"value": 1})

    assert response.status_code == 400
    assert response.json()["error"] == "Transaction would revert"


def test_revert_maps_to_400(http_client, node):
    node.revert_on_execute = True

    response = http_client.post("/simple-storage", json={"value": 1})

    assert response.status_code == 400
    assert response.json()["error"] == "Transaction reverted"
    assert http_client.get("/simple-storage/history").json()["pagination"]["total"] == 0


def test_sequence_conflict_maps_to_409(http_client, node):
    http_client.post("/simple-storage", json={"value": 1})
    node.stale_nonce = True

    response = http_client.post("/simple-storage", json={"value": 2})

    assert response.status_code == 409


def test_receipt_timeout_maps_to_504(settings, node):
    settings = settings.model_copy(
        update={"ledger": settings.ledger.model_copy(update={"receipt_timeout_seconds": 0.05})}
    )
    node.never_mine = True
    app = create_http_app(context=build_app_context(settings, transport=node.transport()))

    with TestClient(app) as client:
        response = client.post("/simple-storage", json={"value": 1})

    assert response.status_code == 504
    assert response.json()["error"] == "Ledger timeout"


def test_unreachable_node_maps_to_503(http_client, node):
    node.down = True

    response = http_client.get("/simple-storage")

    assert response.status_code == 503
    assert response.json()["error"] == "Service unavailable"


def test_info_and_check(http_client):
    http_client.post("/simple-storage", json={"value": 5})

    info = http_client.get("/simple-storage/info").json()["data"]
    assert info["currentValue"] == "5"
    assert info["network"]["id"] == "1337"

    check = http_client.get("/simple-storage/check").json()["data"]
    assert check["inSync"] is True


def test_contracts_lists_active_deployments(http_client):
    response = http_client.get("/contracts")

    assert response.status_code == 200
    assert response.json() == {"success": True, "data": []}


def test_health_ok(http_client):
    response = http_client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert set(body["services"]) == {"ledger", "store", "contract"}


def test_health_degraded_when_store_is_down(http_client, context):
    context.store.close()

    response = http_client.get("/health")

    assert response.status_code == 503
    body = response.json()
    assert body["status"] == "degraded"
    assert body["services"]["ledger"]["status"] == "connected"
    assert body["services"]["store"]["status"] == "error"


def test_missing_contract_address(settings, node):
    settings = settings.model_copy(
        update={"ledger": settings.ledger.model_copy(update={"contract_address": None})}
    )
    app = create_http_app(context=build_app_context(settings, transport=node.transport()))

    with TestClient(app) as client:
        response = client.get("/simple-storage")
        assert response.status_code == 500
        assert response.json() == {
            "success": False,
            "error": "Configuration error",
            "details": "Contract address not configured",
        }
        assert client.get("/health").status_code == 200


def test_request_id_is_echoed(http_client):
    response = http_client.get("/simple-storage", headers={"x-request-id": "req-123"})

    assert response.headers["x-request-id"] == "req-123"


def test_lifespan_starts_reconciler_and_closes_context(settings, node):
    settings = settings.model_copy(
        update={
            "reconciler": ReconcilerSettings(enabled=True, interval_seconds=5, lookback_blocks=20)
        }
    )
    context = build_app_context(settings, transport=node.transport())
    context.reconciler.run_forever = AsyncMock()
    app = create_http_app(context=context)

    with TestClient(app):
        pass

    context.reconciler.run_forever.assert_called_once_with(5.0, 20)
    assert context.signer.available is False


def test_failed_reconciler_task_does_not_block_shutdown(settings, node):
    settings = settings.model_copy(
        update={
            "reconciler": ReconcilerSettings(enabled=True, interval_seconds=5, lookback_blocks=20)
        }
    )
    context = build_app_context(settings, transport=node.transport())
    context.reconciler.run_forever = AsyncMock(
        side_effect=ValueError("Expected a hex quantity, got None")
    )
    app = create_http_app(context=context)

    with TestClient(app) as client:
        assert client.get("/health").status_code == 200

    assert context.signer.available is False
    with pytest.raises(sqlite3.ProgrammingError):
        context.store.ping()
