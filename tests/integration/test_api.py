"""
API tests for the receiving FastAPI app.
"""
import pytest
from fastapi.testclient import TestClient

import api.app as api_app

ADMIN = {"X-User-Id": "admin-1", "X-User-Role": "admin"}
OWNER = {"X-User-Id": "user-7", "X-User-Role": "requester"}
STRANGER = {"X-User-Id": "user-9", "X-User-Role": "requester"}

RECEIPT = {
    "quantityReceived": 4,
    "invoiceNumber": "NF-2001",
    "invoiceDate": "2024-06-10",
    "expirationDate": "2099-12-31",
    "supplierId": 5,
}


@pytest.fixture
def client(test_config, monkeypatch):
    monkeypatch.setattr(api_app, "_config", test_config)
    monkeypatch.setattr(api_app, "_ledger", api_app.build_ledger(test_config))
    return TestClient(api_app.app)


@pytest.fixture
def approved(client):
    """Create a request with two items, approve the first and reject the second."""
    resp = client.post("/api/requests", headers=OWNER, json={
        "observations": "Lab restock",
        "items": [
            {"productName": "Pipette tips", "quantity": 10},
            {"productName": "Beakers", "quantity": 5},
        ],
    })
    assert resp.status_code == 201
    body = resp.json()
    request_id = body["id"]
    item_a, item_b = (i["id"] for i in body["items"])

    for item_id, status in ((item_a, "approved"), (item_b, "rejected")):
        r = client.patch(f"/api/requests/{request_id}/items/{item_id}/review",
                         headers=ADMIN, json={"status": status})
        assert r.status_code == 200
    r = client.patch(f"/api/requests/{request_id}/status", headers=ADMIN, json={"status": "partial"})
    assert r.status_code == 200
    return request_id, item_a, item_b


@pytest.mark.api
class TestReceivingApi:

    def test_health(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"

    def test_missing_actor_headers(self, client):
        assert client.get("/api/requests/1").status_code == 401

    def test_record_receipt(self, client, approved):
        request_id, item_id, _ = approved
        resp = client.post(f"/api/requests/{request_id}/items/{item_id}/receipts",
                           headers=ADMIN, json=RECEIPT)
        assert resp.status_code == 201
        body = resp.json()
        assert body["receipt"]["quantityReceived"] == 4
        assert body["receipt"]["invoiceNumber"] == "NF-2001"
        assert body["fulfillment"]["status"] == "partial"
        assert body["fulfillment"]["quantityPending"] == 6
        assert body["duplicate"] is False

    def test_validation_error_names_field(self, client, approved):
        request_id, item_id, _ = approved
        resp = client.post(f"/api/requests/{request_id}/items/{item_id}/receipts",
                           headers=ADMIN, json={**RECEIPT, "invoiceNumber": " "})
        assert resp.status_code == 400
        assert resp.json()["field"] == "invoiceNumber"
        assert resp.json()["type"] == "ValidationError"

    def test_oversized_quantity_is_bad_request(self, client, approved):
        request_id, item_id, _ = approved
        resp = client.post(f"/api/requests/{request_id}/items/{item_id}/receipts",
                           headers=ADMIN, json={**RECEIPT, "quantityReceived": 2**63})
        assert resp.status_code == 400
        assert resp.json()["field"] == "quantityReceived"

    def test_oversized_item_quantity_is_bad_request(self, client):
        resp = client.post("/api/requests", headers=OWNER, json={
            "items": [{"productName": "Gloves", "quantity": 2**63}],
        })
        assert resp.status_code == 400
        assert resp.json()["field"] == "items[0].quantity"

    def test_null_text_fields_are_accepted(self, client, approved):
        request_id, item_id, _ = approved
        resp = client.post(f"/api/requests/{request_id}/items/{item_id}/receipts", headers=ADMIN,
                           json={**RECEIPT, "notes": None, "qualityNotes": None, "receiptCondition": None})
        assert resp.status_code == 201
        assert resp.json()["receipt"]["receiptCondition"] == "good"
        assert resp.json()["receipt"]["notes"] == ""

    def test_requester_cannot_record(self, client, approved):
        request_id, item_id, _ = approved
        resp = client.post(f"/api/requests/{request_id}/items/{item_id}/receipts",
                           headers=OWNER, json=RECEIPT)
        assert resp.status_code == 403
        assert resp.json()["condition"] == "role"

    def test_rejected_item_cannot_be_received(self, client, approved):
        request_id, _, item_b = approved
        resp = client.post(f"/api/requests/{request_id}/items/{item_b}/receipts",
                           headers=ADMIN, json=RECEIPT)
        assert resp.status_code == 403
        assert resp.json()["condition"] == "item_status"

    def test_unknown_item(self, client, approved):
        request_id, _, _ = approved
        resp = client.post(f"/api/requests/{request_id}/items/9999/receipts",
                           headers=ADMIN, json=RECEIPT)
        assert resp.status_code == 404

    def test_idempotent_resubmission(self, client, approved):
        request_id, item_id, _ = approved
        url = f"/api/requests/{request_id}/items/{item_id}/receipts"
        payload = {**RECEIPT, "idempotencyKey": "double-click"}
        first = client.post(url, headers=ADMIN, json=payload).json()
        second = client.post(url, headers=ADMIN, json=payload).json()
        assert second["duplicate"] is True
        assert second["receipt"]["id"] == first["receipt"]["id"]
        assert len(client.get(url, headers=ADMIN).json()) == 1

    def test_receiving_status(self, client, approved):
        request_id, item_id, _ = approved
        client.post(f"/api/requests/{request_id}/items/{item_id}/receipts",
                    headers=ADMIN, json={**RECEIPT, "quantityReceived": 10})

        resp = client.get(f"/api/requests/{request_id}/receipts/status", headers=OWNER)
        assert resp.status_code == 200
        body = resp.json()
        assert body["summary"]["totalItems"] == 1
        assert body["summary"]["completeItems"] == 1
        assert body["summary"]["percentReceived"] == 100
        assert body["items"][0]["itemId"] == item_id
        assert body["items"][0]["lastReceivedAt"] is not None

    def test_status_hidden_from_other_requesters(self, client, approved):
        request_id, _, _ = approved
        resp = client.get(f"/api/requests/{request_id}/receipts/status", headers=STRANGER)
        assert resp.status_code == 403

    def test_item_fulfillment_and_overview(self, client, approved):
        request_id, item_id, _ = approved
        client.post(f"/api/requests/{request_id}/items/{item_id}/receipts",
                    headers=ADMIN, json={**RECEIPT, "quantityReceived": 12, "rejectedQuantity": 1})

        f = client.get(f"/api/items/{item_id}/fulfillment", headers=ADMIN).json()
        assert f["status"] == "over_delivered"
        assert f["quantityReceived"] == 11
        assert f["quantityPending"] == 0

        o = client.get(f"/api/requests/{request_id}/receipts/summary", headers=OWNER).json()
        assert o["totalReceipts"] == 1
        assert o["totalQuantity"] == 12
        assert o["totalRejected"] == 1
        assert o["uniqueSuppliers"] == 1

    def test_invalid_transition_is_conflict(self, client, approved):
        request_id, _, _ = approved
        resp = client.patch(f"/api/requests/{request_id}/status", headers=ADMIN, json={"status": "pending"})
        assert resp.status_code == 409

    def test_delete_item_with_receipts_is_conflict(self, client, approved):
        request_id, item_id, _ = approved
        client.post(f"/api/requests/{request_id}/items/{item_id}/receipts", headers=ADMIN, json=RECEIPT)
        resp = client.delete(f"/api/requests/{request_id}/items/{item_id}", headers=ADMIN)
        assert resp.status_code == 409

    def test_audit_log(self, client, approved):
        request_id, item_id, _ = approved
        client.post(f"/api/requests/{request_id}/items/{item_id}/receipts", headers=ADMIN, json=RECEIPT)
        entries = client.get(f"/api/requests/{request_id}/audit", headers=OWNER).json()
        assert entries[-1]["action"] == "receipt_recorded"
        assert entries[-1]["detail"]["quantity_received"] == 4

    def test_csv_report(self, client, approved):
        request_id, item_id, _ = approved
        client.post(f"/api/requests/{request_id}/items/{item_id}/receipts", headers=ADMIN, json=RECEIPT)

        resp = client.get("/api/reports/receipts", headers=ADMIN,
                          params={"format": "csv", "requestId": request_id})
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/csv")
        lines = resp.text.strip().splitlines()
        assert lines[0].startswith("receipt_id,")
        assert len(lines) == 2

    def test_xml_report(self, client, approved):
        resp = client.get("/api/reports/receipts", headers=ADMIN, params={"format": "xml"})
        assert resp.status_code == 200
        assert "<ReceiptsReport" in resp.text

    def test_report_admin_only(self, client):
        assert client.get("/api/reports/receipts", headers=OWNER).status_code == 403

    def test_report_bad_date(self, client):
        resp = client.get("/api/reports/receipts", headers=ADMIN, params={"startDate": "June"})
        assert resp.status_code == 400
        assert resp.json()["field"] == "startDate"
