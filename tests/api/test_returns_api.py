# tests/api/test_returns_api.py
from __future__ import annotations

import pytest

from tests.helpers.problem import assert_problem

pytestmark = pytest.mark.asyncio


async def _delivered_unit(client, serial_number: str = "SN-R1"):
    resp = await client.post(
        "/inventory/batches",
        json={"actor": "tester", "sku": "SKU-RET", "product_name": "Lamp", "quantity": 2},
    )
    batch = resp.json()
    resp = await client.post(
        "/deliveries",
        json={"actor": "tester", "batch_id": batch["id"], "serial_number": serial_number},
    )
    assert resp.status_code == 201, resp.text
    return batch, resp.json()


async def test_assign_serial_and_duplicate(client):
    resp = await client.post(
        "/inventory/batches",
        json={"actor": "tester", "sku": "SKU-SN", "product_name": "Lamp", "quantity": 2},
    )
    batch = resp.json()
    items = (await client.get(f"/inventory/batches/{batch['id']}/items")).json()

    resp = await client.post(
        "/serials/assign",
        json={"actor": "tester", "unit_id": items[0]["id"], "serial_number": "  SN-777 "},
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["serial_number"] == "SN-777"

    resp = await client.post(
        "/serials/assign",
        json={"actor": "tester", "unit_id": items[1]["id"], "serial_number": "SN-777"},
    )
    body = assert_problem(resp, 409, "duplicate_serial_number")
    assert body["context"]["path"] == "/serials/assign"

    resp = await client.get("/serials/SN-777")
    found = resp.json()
    assert found["exists"] is True
    assert found["unit"]["id"] == items[0]["id"]
    assert found["batch"]["id"] == batch["id"]

    resp = await client.get("/serials/SN-NOPE")
    assert resp.json()["exists"] is False

    resp = await client.get("/serials/SN-777/history")
    assert [h["action"] for h in resp.json()] == ["assigned"]


async def test_bulk_assign_reports_each_failure(client):
    resp = await client.post(
        "/inventory/batches",
        json={"actor": "tester", "sku": "SKU-BULK", "product_name": "Lamp", "quantity": 2},
    )
    items = (await client.get(f"/inventory/batches/{resp.json()['id']}/items")).json()

    resp = await client.post(
        "/serials/bulk-assign",
        json={
            "actor": "tester",
            "items": [
                {"unit_id": items[0]["id"], "serial_number": "SN-B1"},
                {"unit_id": items[1]["id"], "serial_number": "SN-B1"},
            ],
        },
    )
    assert resp.status_code == 200
    result = resp.json()
    assert result["successful"] == 1
    assert result["failed"] == 1
    assert result["errors"][0].startswith(f"{items[1]['id']}: ")


async def test_returnable_endpoint(client):
    await _delivered_unit(client, "SN-R1")

    resp = await client.get("/serials/SN-R1/returnable")
    body = resp.json()
    assert body["can_return"] is True
    assert body["current_status"] == "delivered"

    resp = await client.get("/serials/SN-UNKNOWN/returnable")
    body = resp.json()
    assert body["can_return"] is False
    assert body["unit"] is None


async def test_return_intake_and_decision(client):
    batch, delivery = await _delivered_unit(client, "SN-R2")

    resp = await client.post(
        "/returns",
        json={"actor": "tester", "serial_number": "SN-R2", "condition": "Opened", "reason": "Broken"},
    )
    assert resp.status_code == 201, resp.text
    record = resp.json()
    assert record["status"] == "received"
    assert record["return_decision"] == "pending"
    assert record["original_delivery_id"] == delivery["id"]

    resp = await client.get("/returns/pending")
    assert [r["id"] for r in resp.json()] == [record["id"]]

    resp = await client.post(
        f"/returns/{record['id']}/decision",
        json={"actor": "tester", "decision": "move_to_inventory"},
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "moved_to_inventory"

    resp = await client.post(
        f"/returns/{record['id']}/decision",
        json={"actor": "tester", "decision": "keep_in_returns"},
    )
    assert_problem(resp, 409, "decision_already_made")

    resp = await client.get(f"/inventory/batches/{batch['id']}")
    body = resp.json()
    assert body["available_quantity"] == 2
    assert body["returned_quantity"] == 0

    resp = await client.get("/serials/SN-R2/returns")
    assert [r["id"] for r in resp.json()] == [record["id"]]

    resp = await client.get("/returns/stats")
    stats = resp.json()
    assert stats["total"] == 1
    assert stats["moved_to_inventory"] == 1
    assert stats["by_condition"] == {"Opened": 1}


async def test_return_of_available_unit_is_rejected(client):
    resp = await client.post(
        "/inventory/batches",
        json={
            "actor": "tester",
            "sku": "SKU-AV",
            "product_name": "Lamp",
            "quantity": 1,
            "serial_numbers": ["SN-AV"],
        },
    )
    assert resp.status_code == 201

    resp = await client.post("/returns", json={"actor": "tester", "serial_number": "SN-AV"})
    assert_problem(resp, 409, "invalid_state_transition")


async def test_unknown_return_and_bad_decision(client):
    resp = await client.get("/returns/missing")
    assert_problem(resp, 404, "not_found")

    resp = await client.post(
        "/returns/missing/decision", json={"actor": "tester", "decision": "throw_away"}
    )
    assert_problem(resp, 422, "request_validation_error")


async def test_standalone_return_then_processed(client):
    resp = await client.post(
        "/returns",
        json={"actor": "tester", "product_name": "Mystery box", "lpn_number": "LPN-1"},
    )
    assert resp.status_code == 201, resp.text
    record = resp.json()
    assert record["serial_number"] is None
    assert record["original_item_id"] is None

    resp = await client.post(f"/returns/{record['id']}/processed", json={"actor": "tester"})
    assert resp.status_code == 200
    assert resp.json()["status"] == "processed"


async def test_list_search_and_item_returns(client):
    _, delivery = await _delivered_unit(client, "SN-R3")
    resp = await client.post(
        "/returns",
        json={"actor": "tester", "serial_number": "SN-R3", "tracking_number": "TRK-900"},
    )
    record = resp.json()

    resp = await client.get("/returns", params={"status": "received"})
    assert [r["id"] for r in resp.json()] == [record["id"]]

    resp = await client.get("/returns", params={"status": "processed"})
    assert resp.json() == []

    resp = await client.get("/returns/search", params={"q": "trk-9"})
    assert [r["id"] for r in resp.json()] == [record["id"]]

    resp = await client.get(f"/inventory/items/{delivery['item_id']}/returns")
    assert [r["id"] for r in resp.json()] == [record["id"]]

    resp = await client.get("/returns", params={"status": "lost"})
    assert_problem(resp, 422, "request_validation_error")
