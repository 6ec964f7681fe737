"""
房态 API 测试
"""
from fastapi.testclient import TestClient


class TestRoomQueries:

    def test_list_rooms(self, client: TestClient, receptionist_auth_headers, sample_property, room_1205, room_1301):
        response = client.get("/rooms", headers=receptionist_auth_headers,
                              params={"property_id": sample_property.id})
        assert response.status_code == 200
        assert [r["room_number"] for r in response.json()] == ["1205", "1301"]

    def test_filter_by_status(self, client: TestClient, receptionist_auth_headers, room_1205, room_1301,
                              sample_booking):
        client.post(f"/rooms/{room_1205.id}/assign", headers=receptionist_auth_headers,
                    json={"booking_id": sample_booking.id})
        response = client.get("/rooms", headers=receptionist_auth_headers, params={"status": "reserved"})
        assert [r["room_number"] for r in response.json()] == ["1205"]

    def test_status_summary(self, client: TestClient, receptionist_auth_headers, sample_property, room_1205):
        response = client.get("/rooms/status-summary", headers=receptionist_auth_headers,
                              params={"property_id": sample_property.id})
        assert response.status_code == 200
        assert response.json()["available"] == 1
        assert response.json()["total"] == 1

    def test_get_room_not_found(self, client: TestClient, receptionist_auth_headers):
        assert client.get("/rooms/999", headers=receptionist_auth_headers).status_code == 404

    def test_requires_login(self, client: TestClient, room_1205):
        assert client.get("/rooms").status_code in (401, 403)


class TestRoomTransitions:

    def test_assign_then_conflict(self, client: TestClient, receptionist_auth_headers, room_1205,
                                  sample_booking, second_booking):
        response = client.post(f"/rooms/{room_1205.id}/assign", headers=receptionist_auth_headers,
                               json={"booking_id": sample_booking.id})
        assert response.status_code == 200
        assert response.json()["status"] == "reserved"
        assert response.json()["occupant_booking_id"] == sample_booking.id

        response = client.post(f"/rooms/{room_1205.id}/assign", headers=receptionist_auth_headers,
                               json={"booking_id": second_booking.id})
        assert response.status_code == 409
        assert "其他房间" in response.json()["detail"]

    def test_advance_illegal(self, client: TestClient, housekeeper_auth_headers, room_1205, sample_booking):
        response = client.post(f"/rooms/{room_1205.id}/advance", headers=housekeeper_auth_headers, json={
            "expected_status": "available", "new_status": "occupied", "booking_id": sample_booking.id
        })
        assert response.status_code == 409

    def test_maintenance_with_guest(self, client: TestClient, receptionist_auth_headers,
                                    housekeeper_auth_headers, room_1205, sample_booking):
        client.post(f"/rooms/{room_1205.id}/assign", headers=receptionist_auth_headers,
                    json={"booking_id": sample_booking.id})
        response = client.post(f"/rooms/{room_1205.id}/advance", headers=housekeeper_auth_headers, json={
            "expected_status": "reserved", "new_status": "maintenance"
        })
        assert response.status_code == 409
        assert "退房" in response.json()["detail"]

    def test_maintenance_cycle(self, client: TestClient, housekeeper_auth_headers, room_1205):
        response = client.post(f"/rooms/{room_1205.id}/advance", headers=housekeeper_auth_headers, json={
            "expected_status": "available", "new_status": "maintenance"
        })
        assert response.json()["status"] == "maintenance"

    def test_unknown_status_value(self, client: TestClient, housekeeper_auth_headers, room_1205):
        response = client.post(f"/rooms/{room_1205.id}/advance", headers=housekeeper_auth_headers, json={
            "expected_status": "available", "new_status": "dirty"
        })
        assert response.status_code == 422

    def test_release(self, client: TestClient, receptionist_auth_headers, room_1205, sample_booking):
        client.post(f"/rooms/{room_1205.id}/assign", headers=receptionist_auth_headers,
                    json={"booking_id": sample_booking.id})
        response = client.post(f"/rooms/{room_1205.id}/release", headers=receptionist_auth_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "available"
        assert response.json()["occupant_booking_id"] is None

    def test_kitchen_cannot_assign(self, client: TestClient, kitchen_auth_headers, room_1205, sample_booking):
        response = client.post(f"/rooms/{room_1205.id}/assign", headers=kitchen_auth_headers,
                               json={"booking_id": sample_booking.id})
        assert response.status_code == 403
