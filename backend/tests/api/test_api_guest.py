"""
客人自助 API 测试
"""
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from guestpass.models.ontology import Order, ScopeKind
from guestpass.services.token_service import TokenService


@pytest.fixture
def order_body(menu):
    """宫保鸡丁 48.00 x1 + 米饭 3.00 x2；客户端单价仅作展示，服务端按菜单计价"""
    return {
        "items": [
            {"menu_item_id": menu["宫保鸡丁"].id, "name": "宫保鸡丁", "unit_price": "48.00", "quantity": 1},
            {"menu_item_id": menu["米饭"].id, "name": "米饭", "unit_price": "3.00", "quantity": 2},
        ],
        "total_amount": "54.00",
    }


@pytest.fixture
def guest_headers(db_session, sample_property, room_1205, sample_booking):
    issued = TokenService(db_session, event_publisher=lambda e: None).issue(
        sample_property.id, ScopeKind.ROOM, room_1205.id, str(sample_booking.id), timedelta(hours=1)
    )
    return {"X-Guest-Token": issued.token}


class TestGuestScope:

    def test_me(self, client: TestClient, guest_headers, sample_property):
        response = client.get("/guest/me", headers=guest_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["property_name"] == sample_property.name
        assert data["scope_kind"] == "room"
        assert data["scope_label"] == "1205"

    def test_missing_header(self, client: TestClient):
        response = client.get("/guest/me")
        assert response.status_code == 401
        assert response.json()["detail"] == "无效或已失效的访问凭证"

    @pytest.mark.parametrize("token", ["garbage", "A" * 43])
    def test_bad_token(self, client: TestClient, token):
        response = client.get("/guest/entries", headers={"X-Guest-Token": token})
        assert response.status_code == 401
        assert response.json()["detail"] == "无效或已失效的访问凭证"

    def test_staff_jwt_is_not_a_guest_token(self, client: TestClient, manager_token):
        response = client.get("/guest/me", headers={"X-Guest-Token": manager_token})
        assert response.status_code == 401


class TestGuestOrders:

    def test_create_order(self, order_body, client: TestClient, guest_headers):
        response = client.post("/guest/orders", headers=guest_headers, json=order_body)
        assert response.status_code == 200
        assert response.json()["status"] == "pending"

    def test_room_in_body_is_ignored(self, client: TestClient, db_session, guest_headers, order_body,
                                     room_1205, room_1301):
        body = dict(order_body, roomId=room_1301.id, room_id=room_1301.id)
        response = client.post("/guest/orders", headers=guest_headers, json=body)
        assert response.status_code == 200

        order = db_session.get(Order, response.json()["id"])
        assert order.scope_id == room_1205.id

    def test_total_mismatch(self, order_body, client: TestClient, db_session, guest_headers):
        response = client.post("/guest/orders", headers=guest_headers, json=dict(order_body, total_amount="99"))
        assert response.status_code == 400
        assert "金额不一致" in response.json()["detail"]
        assert db_session.query(Order).count() == 0

    def test_rounding_within_a_cent(self, order_body, client: TestClient, guest_headers):
        response = client.post("/guest/orders", headers=guest_headers, json=dict(order_body, total_amount="54.004"))
        assert response.status_code == 200

    def test_empty_items(self, client: TestClient, guest_headers):
        response = client.post("/guest/orders", headers=guest_headers, json={"items": [], "total_amount": "0"})
        assert response.status_code == 422

    def test_invalid_token_wins_over_bad_body(self, order_body, client: TestClient, db_session):
        response = client.post("/guest/orders", headers={"X-Guest-Token": "A" * 43}, json=order_body)
        assert response.status_code == 401
        assert db_session.query(Order).count() == 0


class TestGuestServiceRequests:

    def test_create_and_list(self, order_body, client: TestClient, guest_headers):
        client.post("/guest/orders", headers=guest_headers, json=order_body)
        response = client.post("/guest/service-requests", headers=guest_headers,
                               json={"category": "housekeeping", "description": "  请打扫房间 "})
        assert response.status_code == 200

        entries = client.get("/guest/entries", headers=guest_headers).json()
        assert {e["kind"] for e in entries} == {"order", "service_request"}
        request = next(e for e in entries if e["kind"] == "service_request")
        assert request["category"] == "housekeeping"
        assert request["status"] == "pending"

    def test_blank_description(self, client: TestClient, guest_headers):
        response = client.post("/guest/service-requests", headers=guest_headers,
                               json={"category": "other", "description": "   "})
        assert response.status_code == 422

    def test_table_token_cannot_request_service(self, client: TestClient, receptionist_auth_headers, sample_table):
        session = client.post(f"/tables/{sample_table.id}/session", headers=receptionist_auth_headers).json()
        response = client.post("/guest/service-requests", headers={"X-Guest-Token": session["token"]},
                               json={"category": "other", "description": "加一把椅子"})
        assert response.status_code == 400

    def test_table_order(self, order_body, client: TestClient, receptionist_auth_headers, sample_table):
        session = client.post(f"/tables/{sample_table.id}/session", headers=receptionist_auth_headers).json()
        guest = {"X-Guest-Token": session["token"]}
        assert client.post("/guest/orders", headers=guest, json=order_body).status_code == 200
        assert len(client.get("/guest/entries", headers=guest).json()) == 1


class TestGuestMenu:

    def test_menu(self, client: TestClient, guest_headers, menu, sample_property):
        response = client.get("/guest/menu", headers=guest_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["property_name"] == sample_property.name
        assert data["scope_label"] == "1205"
        assert [item["name"] for item in data["menu"]["热菜"]] == ["宫保鸡丁"]
        assert float(data["menu"]["主食"][0]["price"]) == 38.0

    def test_menu_without_token(self, client: TestClient, menu):
        response = client.get("/guest/menu")
        assert response.status_code == 401

    def test_unknown_item_rejected(self, client: TestClient, db_session, guest_headers, menu):
        body = {"items": [{"menu_item_id": 9999, "quantity": 1}], "total_amount": "10.00"}
        response = client.post("/guest/orders", headers=guest_headers, json=body)
        assert response.status_code == 400
        assert "不存在或已下架" in response.json()["detail"]
        assert db_session.query(Order).count() == 0

    def test_server_price_wins(self, client: TestClient, db_session, guest_headers, menu):
        body = {
            "items": [{"menu_item_id": menu["宫保鸡丁"].id, "name": "宫保鸡丁", "unit_price": "1.00", "quantity": 1}],
            "total_amount": "1.00",
        }
        response = client.post("/guest/orders", headers=guest_headers, json=body)
        assert response.status_code == 400

        response = client.post("/guest/orders", headers=guest_headers, json=dict(body, total_amount="48.00"))
        assert response.status_code == 200
        order = db_session.get(Order, response.json()["id"])
        assert order.items[0]["unit_price"] == "48.00"
