"""Tests for transaction item endpoints exposed by api.main."""

from __future__ import annotations

from fastapi.testclient import TestClient

import api.main as api_main
from api.main import app
from backend.repositories.items_repository import InMemoryItemsRepository
from backend.repositories.lineage_repository import InMemoryLineageRepository
from backend.services.transaction_items import TransactionItemsService
from shared.models import ToolError, ToolErrorCode
from tests.fakes import ACCOUNT_ID, FakeClock, build_row


client = TestClient(app)


def _install_service(monkeypatch, *rows) -> TransactionItemsService:
    service = TransactionItemsService(
        items_repository=InMemoryItemsRepository(list(rows)),
        lineage_repository=InMemoryLineageRepository(clock=FakeClock()),
    )
    monkeypatch.setattr(api_main, "get_transaction_items_service", lambda: service)
    return service


def test_health() -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_list_transaction_items_returns_split(monkeypatch) -> None:
    _install_service(
        monkeypatch,
        build_row("sofa", latest_transaction_id="tx-1", purchase_price="899.00"),
        build_row("lamp", transaction_id="tx-1", latest_transaction_id="tx-2"),
    )

    response = client.get(f"/accounts/{ACCOUNT_ID}/transactions/tx-1/items")

    assert response.status_code == 200
    body = response.json()
    assert [item["id"] for item in body["in_transaction"]] == ["sofa"]
    assert [item["id"] for item in body["moved_out"]] == ["lamp"]
    assert float(body["in_transaction"][0]["purchase_price"]) == 899.0


def test_move_item_then_lineage(monkeypatch) -> None:
    _install_service(monkeypatch, build_row("lamp", latest_transaction_id="tx-1"))

    move_response = client.post(
        f"/accounts/{ACCOUNT_ID}/items/lamp/move",
        json={"to_transaction_id": "tx-2", "note": "  reassigned  "},
    )
    lineage_response = client.get(f"/accounts/{ACCOUNT_ID}/items/lamp/lineage")
    items_response = client.get(f"/accounts/{ACCOUNT_ID}/transactions/tx-1/items")

    assert move_response.status_code == 200
    edge = move_response.json()["edge"]
    assert edge["from_transaction_id"] == "tx-1"
    assert edge["to_transaction_id"] == "tx-2"
    assert edge["note"] == "reassigned"
    assert [item["id"] for item in lineage_response.json()["items"]] == [edge["id"]]
    assert [item["id"] for item in items_response.json()["moved_out"]] == ["lamp"]


def test_move_item_blank_destination_means_inventory(monkeypatch) -> None:
    _install_service(monkeypatch, build_row("lamp", latest_transaction_id="tx-1"))

    response = client.post(f"/accounts/{ACCOUNT_ID}/items/lamp/move", json={"to_transaction_id": " "})

    assert response.status_code == 200
    assert response.json()["edge"]["to_transaction_id"] is None


def test_move_unknown_item_maps_to_404(monkeypatch) -> None:
    _install_service(monkeypatch)

    response = client.post(f"/accounts/{ACCOUNT_ID}/items/ghost/move", json={"to_transaction_id": "tx-1"})

    assert response.status_code == 404
    assert response.json()["detail"] == "Item not found"


def test_move_item_rejects_unknown_fields(monkeypatch) -> None:
    _install_service(monkeypatch, build_row("lamp", latest_transaction_id="tx-1"))

    response = client.post(f"/accounts/{ACCOUNT_ID}/items/lamp/move", json={"to_project_id": "p-1"})

    assert response.status_code == 422


def test_backend_error_maps_to_400(monkeypatch) -> None:
    class _Service:
        def split_transaction_items(self, *, account_id: str, transaction_id: str):
            return ToolError(code=ToolErrorCode.BACKEND_ERROR, message="backend down")

    monkeypatch.setattr(api_main, "get_transaction_items_service", lambda: _Service())

    response = client.get(f"/accounts/{ACCOUNT_ID}/transactions/tx-1/items")

    assert response.status_code == 400
    assert response.json()["detail"] == "backend down"


def test_unexpected_exception_returns_json_500(monkeypatch) -> None:
    class _Service:
        def item_lineage_history(self, *, account_id: str, item_id: str):
            raise RuntimeError("unexpected")

    monkeypatch.setattr(api_main, "get_transaction_items_service", lambda: _Service())
    failing_client = TestClient(app, raise_server_exceptions=False)

    response = failing_client.get(f"/accounts/{ACCOUNT_ID}/items/lamp/lineage")

    assert response.status_code == 500
    assert response.json() == {"detail": "Internal Server Error"}
