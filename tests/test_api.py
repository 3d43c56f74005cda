"""
HTTP tests for the order intake API
"""

import asyncio
import json
from datetime import datetime, timedelta, timezone

import pytest

from order_intake.core.config import get_settings
from order_intake.core.exceptions import StorageConnectionError


def order_payload(order_id="20250711-T001", items=None, **overrides):
    payload = {
        "orderId": order_id,
        "dineType": "T",
        "totalAmount": 5.0,
        "tableNumber": "",
        "takeoutNumber": "7",
        "notes": "",
        "items": items if items is not None else [{"name": "Tea", "quantity": 2, "price": 2.5}],
    }
    payload.update(overrides)
    return payload


class TestHealthAndRoot:

    def test_health_ok(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "connected"
        assert data["server"] == "sqlite"
        assert data["message"] == "System operational"
        assert data["timestamp"].endswith("Z")

    def test_health_reports_store_failure(self, client, monkeypatch):
        async def unreachable():
            raise StorageConnectionError("Store is unreachable")

        monkeypatch.setattr(client.app.state.gateway, "ping", unreachable)

        response = client.get("/api/health")
        assert response.status_code == 500
        assert response.json()["database"] == "disconnected"

    def test_root_lists_endpoints(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert "/api/used-order-numbers" in response.json()["endpoints"]

    def test_unknown_route_is_json_404(self, client):
        response = client.get("/api/nope")
        assert response.status_code == 404
        assert response.json() == {"error": "The requested resource was not found"}

    def test_startup_fails_without_store(self, tmp_path, monkeypatch):
        from fastapi.testclient import TestClient
        from order_intake.main import app

        monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path}/missing/dir/orders.db")
        get_settings.cache_clear()

        with pytest.raises(StorageConnectionError):
            with TestClient(app):
                pass


class TestErrorDetail:

    def test_debug_exposes_detail_outside_production(self, monkeypatch):
        from order_intake.main import global_exception_handler

        monkeypatch.setenv("DEBUG", "true")
        monkeypatch.setenv("ENV_MODE", "development")
        get_settings.cache_clear()

        response = asyncio.run(global_exception_handler(None, RuntimeError("boom")))
        assert response.status_code == 500
        assert json.loads(response.body) == {
            "error": "Internal server error",
            "detail": "boom",
        }

    def test_production_hides_detail_even_with_debug(self, monkeypatch):
        from order_intake.main import global_exception_handler

        monkeypatch.setenv("DEBUG", "true")
        monkeypatch.setenv("ENV_MODE", "production")
        get_settings.cache_clear()

        response = asyncio.run(global_exception_handler(None, RuntimeError("boom")))
        assert response.status_code == 500
        assert "detail" not in json.loads(response.body)


class TestMenu:

    def test_menu_lists_enabled_items_by_category_then_name(self, client):
        response = client.get("/api/menu")
        assert response.status_code == 200

        data = response.json()
        assert [item["name"] for item in data] == ["Tea", "Noodles", "Rice"]
        noodles = data[1]
        assert noodles == {
            "id": 3,
            "name": "Noodles",
            "price": 4.0,
            "category": "Mains",
            "note": "spicy",
            "enabled": True,
            "image": "noodles.png",
            "orderLimit": 5,
        }
        assert data[0]["note"] == ""
        assert data[0]["orderLimit"] == 0


class TestOrders:

    def test_create_order_drops_unknown_item(self, client):
        response = client.post("/api/orders", json=order_payload(items=[
            {"name": "Tea", "quantity": 2, "price": 2.5},
            {"name": "Soda", "quantity": 1, "price": 1.0},
        ]))
        assert response.status_code == 200

        data = response.json()
        assert data["success"] is True
        assert data["orderId"] == "20250711-T001"
        assert data["message"] == "Order created successfully"
        assert data["droppedItems"] == ["Soda"]

        detail = client.get("/api/orders/20250711-T001").json()
        assert detail["status"] == "pending"
        assert detail["items"] == [{"menuId": 1, "name": "Tea", "quantity": 2, "price": 2.5}]

    def test_unresolvable_names_are_dropped_not_rejected(self, client):
        long_name = "x" * 150
        response = client.post("/api/orders", json=order_payload(items=[
            {"name": "Tea", "quantity": 1, "price": 2.5},
            {"name": "", "quantity": 1, "price": 1.0},
            {"quantity": 1, "price": 1.0},
            {"name": None, "quantity": 1},
            {"name": long_name, "quantity": 1, "price": 1.0},
        ]))
        assert response.status_code == 200
        assert response.json()["droppedItems"] == ["", "", "", long_name]

        detail = client.get("/api/orders/20250711-T001").json()
        assert [line["name"] for line in detail["items"]] == ["Tea"]

    def test_new_order_is_in_this_weeks_hot_items(self, client):
        client.post("/api/orders", json=order_payload(items=[{"name": "Rice", "quantity": 4, "price": 3.0}]))

        assert client.get("/api/hot-items").json() == ["Rice"]

        timestamp = client.get("/api/orders/20250711-T001").json()["timestamp"]
        assert timestamp.endswith("Z")
        created = datetime.fromisoformat(timestamp[:-1] + "+00:00")
        assert abs(created - datetime.now(timezone.utc)) < timedelta(minutes=1)

    def test_duplicate_order_id_is_conflict(self, client):
        assert client.post("/api/orders", json=order_payload()).status_code == 200

        response = client.post("/api/orders", json=order_payload(totalAmount=99))
        assert response.status_code == 409
        assert "error" in response.json()

        detail = client.get("/api/orders/20250711-T001").json()
        assert detail["totalAmount"] == 5.0

    def test_missing_optional_fields_get_defaults(self, client):
        response = client.post("/api/orders", json={
            "orderId": "20250711-D004",
            "dineType": "dine-in",
            "tableNumber": 12,
            "items": [{"name": "Rice"}],
        })
        assert response.status_code == 200

        detail = client.get("/api/orders/20250711-D004").json()
        assert detail["totalAmount"] == 0.0
        assert detail["tableNumber"] == "12"
        assert detail["takeoutNumber"] == ""
        assert detail["dineType"] == "dine-in"
        assert detail["items"] == [{"menuId": 2, "name": "Rice", "quantity": 0, "price": 0.0}]

    def test_invalid_order_data_fails(self, client):
        invalid_orders = [
            # Missing order id
            {"dineType": "T", "items": []},
            # Unknown dine type
            order_payload(dineType="delivery"),
            # Code letter does not match dine type
            order_payload(dineType="D"),
            # Not <date>-<D|T><NNN>
            order_payload(order_id="20250711-T1"),
            # Negative amount
            order_payload(totalAmount=-1),
            # Negative quantity
            order_payload(items=[{"name": "Tea", "quantity": -2}]),
        ]

        for invalid_order in invalid_orders:
            response = client.post("/api/orders", json=invalid_order)
            assert response.status_code == 422
            assert response.json()["error"] == "Invalid request body"

        assert client.get("/api/orders").json() == []

    def test_list_orders_newest_first(self, client, add_order):
        now = datetime.now()
        add_order("20250711-T001", [(1, 1)], created_at=now - timedelta(hours=2))
        add_order("20250711-T002", [(2, 1)], created_at=now)
        add_order("20250711-D001", [(3, 1)], created_at=now - timedelta(hours=1), dine_type="dine-in")

        response = client.get("/api/orders")
        assert response.status_code == 200

        data = response.json()
        assert [o["orderId"] for o in data] == ["20250711-T002", "20250711-D001", "20250711-T001"]
        assert set(data[0]) == {
            "orderId", "dineType", "status", "totalAmount",
            "tableNumber", "takeoutNumber", "notes", "timestamp",
        }

    def test_get_missing_order(self, client):
        response = client.get("/api/orders/20250711-T999")
        assert response.status_code == 404
        assert response.json() == {"error": "Order not found"}


class TestUsedOrderNumbers:

    def test_returns_used_numbers(self, client):
        for order_id in ["20250711-T001", "20250711-T003", "20250711-D002"]:
            dine_type = order_id[-4]
            client.post("/api/orders", json=order_payload(order_id=order_id, dineType=dine_type))

        response = client.get("/api/used-order-numbers?dineType=T&dateStr=20250711")
        assert response.status_code == 200
        assert response.json() == [1, 3]

        response = client.get("/api/used-order-numbers", params={"dineType": "dine-in", "dateStr": "20250711"})
        assert response.json() == [2]

    def test_requires_parameters(self, client):
        assert client.get("/api/used-order-numbers?dineType=T").status_code == 422
        assert client.get("/api/used-order-numbers?dineType=X&dateStr=20250711").status_code == 422


class TestHotItems:

    def test_weekly_policy_returns_names(self, client, add_order):
        add_order("20250711-T001", [(1, 1), (2, 5)])
        add_order("20250711-T002", [(4, 9)])

        response = client.get("/api/hot-items")
        assert response.status_code == 200
        assert response.json() == ["Rice", "Tea"]

    def test_all_time_policy_returns_summaries(self, db_url, add_order, monkeypatch):
        from fastapi.testclient import TestClient
        from order_intake.main import app

        monkeypatch.setenv("DATABASE_URL", db_url)
        monkeypatch.setenv("HOT_ITEMS_POLICY", "all-time")
        monkeypatch.setenv("HOT_ITEMS_LIMIT", "2")
        get_settings.cache_clear()
        add_order("20240101-T001", [(3, 2)], created_at=datetime(2024, 1, 1))

        with TestClient(app) as client:
            response = client.get("/api/hot-items")

        assert response.status_code == 200
        assert response.json() == [
            {"id": 3, "name": "Noodles", "price": 4.0, "orderCount": 2},
            {"id": 2, "name": "Rice", "price": 3.0, "orderCount": 0},
        ]

    def test_legacy_path_redirects(self, client):
        response = client.get("/hot-items?x=1", follow_redirects=False)
        assert response.status_code == 302
        assert response.headers["location"].endswith("/api/hot-items?x=1")
