"""
员工侧订单与服务请求 API 测试
"""
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from guestpass.models.ontology import ScopeKind
from guestpass.services.token_service import TokenService


@pytest.fixture
def order_body(menu):
    return {
        "items": [{"menu_item_id": menu["牛肉面"].id, "quantity": 2}],
        "total_amount": "76.00",
    }


@pytest.fixture
def guest_headers(db_session, sample_property, room_1205, sample_booking):
    issued = TokenService(db_session, event_publisher=lambda e: None).issue(
        sample_property.id, ScopeKind.ROOM, room_1205.id, str(sample_booking.id), timedelta(hours=1)
    )
    return {"X-Guest-Token": issued.token}


@pytest.fixture
def order_id(client, guest_headers, order_body):
    return client.post("/guest/orders", headers=guest_headers, json=order_body).json()["id"]


@pytest.fixture
def request_id(client, guest_headers):
    return client.post("/guest/service-requests", headers=guest_headers,
                       json={"category": "maintenance", "description": "空调不制冷"}).json()["id"]


class TestOrderApi:

    def test_list_for_kitchen(self, client: TestClient, kitchen_auth_headers, sample_property, order_id):
        response = client.get("/orders", headers=kitchen_auth_headers, params={"property_id": sample_property.id})
        assert response.status_code == 200
        orders = response.json()
        assert [o["id"] for o in orders] == [order_id]
        assert orders[0]["scope_kind"] == "room"

    def test_filter_by_status(self, client: TestClient, kitchen_auth_headers, sample_property, order_id):
        response = client.get("/orders", headers=kitchen_auth_headers,
                              params={"property_id": sample_property.id, "status": "delivered"})
        assert response.json() == []

    def test_lifecycle_with_history(self, client: TestClient, kitchen_auth_headers, order_id):
        for status in ("preparing", "ready", "delivered"):
            response = client.post(f"/orders/{order_id}/advance", headers=kitchen_auth_headers,
                                   json={"status": status})
            assert response.status_code == 200
            assert response.json()["status"] == status

        detail = client.get(f"/orders/{order_id}", headers=kitchen_auth_headers).json()
        assert [h["status"] for h in detail["history"]] == ["pending", "preparing", "ready", "delivered"]

    def test_skip_step_conflict(self, client: TestClient, kitchen_auth_headers, order_id):
        response = client.post(f"/orders/{order_id}/advance", headers=kitchen_auth_headers,
                               json={"status": "delivered"})
        assert response.status_code == 409

    def test_cancelled_is_terminal(self, client: TestClient, kitchen_auth_headers, order_id):
        client.post(f"/orders/{order_id}/advance", headers=kitchen_auth_headers, json={"status": "cancelled"})
        response = client.post(f"/orders/{order_id}/advance", headers=kitchen_auth_headers,
                               json={"status": "preparing"})
        assert response.status_code == 409

    def test_not_found(self, client: TestClient, kitchen_auth_headers):
        assert client.get("/orders/999", headers=kitchen_auth_headers).status_code == 404
        response = client.post("/orders/999/advance", headers=kitchen_auth_headers, json={"status": "preparing"})
        assert response.status_code == 404

    def test_housekeeper_cannot_advance(self, client: TestClient, housekeeper_auth_headers, order_id):
        response = client.post(f"/orders/{order_id}/advance", headers=housekeeper_auth_headers,
                               json={"status": "preparing"})
        assert response.status_code == 403

    def test_stats(self, client: TestClient, manager_auth_headers, kitchen_auth_headers, sample_property,
                   guest_headers, order_body, order_id):
        client.post("/guest/orders", headers=guest_headers, json=order_body)
        for status in ("preparing", "ready", "delivered"):
            client.post(f"/orders/{order_id}/advance", headers=kitchen_auth_headers, json={"status": status})

        response = client.get("/orders/stats", headers=manager_auth_headers,
                              params={"property_id": sample_property.id})
        assert response.status_code == 200
        stats = response.json()
        assert stats["total_orders"] == 2
        assert stats["pending_orders"] == 1
        assert stats["delivered_orders"] == 1
        assert float(stats["total_revenue"]) == 76.0
        assert float(stats["avg_order_value"]) == 76.0

    def test_stats_manager_only(self, client: TestClient, kitchen_auth_headers, sample_property):
        response = client.get("/orders/stats", headers=kitchen_auth_headers,
                              params={"property_id": sample_property.id})
        assert response.status_code == 403


class TestServiceRequestApi:

    def test_list_and_advance(self, client: TestClient, housekeeper_auth_headers, sample_property, request_id):
        response = client.get("/service-requests", headers=housekeeper_auth_headers,
                              params={"property_id": sample_property.id})
        assert [r["id"] for r in response.json()] == [request_id]

        for status in ("in-progress", "completed"):
            response = client.post(f"/service-requests/{request_id}/advance", headers=housekeeper_auth_headers,
                                   json={"status": status})
            assert response.status_code == 200

        detail = client.get(f"/service-requests/{request_id}", headers=housekeeper_auth_headers).json()
        assert [h["status"] for h in detail["history"]] == ["pending", "in-progress", "completed"]

    def test_completed_is_terminal(self, client: TestClient, housekeeper_auth_headers, request_id):
        client.post(f"/service-requests/{request_id}/advance", headers=housekeeper_auth_headers,
                    json={"status": "in-progress"})
        client.post(f"/service-requests/{request_id}/advance", headers=housekeeper_auth_headers,
                    json={"status": "completed"})
        response = client.post(f"/service-requests/{request_id}/advance", headers=housekeeper_auth_headers,
                               json={"status": "in-progress"})
        assert response.status_code == 409

    def test_unknown_status(self, client: TestClient, housekeeper_auth_headers, request_id):
        response = client.post(f"/service-requests/{request_id}/advance", headers=housekeeper_auth_headers,
                               json={"status": "in_progress"})
        assert response.status_code == 422

    def test_not_found(self, client: TestClient, housekeeper_auth_headers):
        assert client.get("/service-requests/999", headers=housekeeper_auth_headers).status_code == 404
