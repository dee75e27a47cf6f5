"""
API tests for /shipments
"""
import pytest

from teatrade.core.auth import TokenUser

USER_ID = "user-sub-0001"
OTHER_USER_ID = "user-sub-0002"


def shipment_body(items, **overrides):
    body = {
        "items": [{"stocksId": stocks_id, "totalWeight": weight} for stocks_id, weight in items],
        "consignee": "Mombasa Packers",
        "vessel": "second",
        "shipmark": "SM-100",
        "packagingInstructions": "oneJuteOnePolly",
        "additionalInstructions": "Stack max 5 high",
    }
    body.update(overrides)
    return body


@pytest.mark.usefixtures("accounts")
class TestShipmentsApi:
    """Test the shipment lifecycle"""

    def create(self, client, stock_id, weight=100, **overrides):
        response = client.post(f"/shipments/users/{USER_ID}", json=shipment_body([(stock_id, weight)], **overrides))
        assert response.status_code == 201, response.text
        return response.json()["data"]

    def test_create_deducts_stock(self, as_user, make_stock):
        stock_id = make_stock(bags=10, weight=500.0)

        shipment = self.create(as_user, stock_id, weight=120, shipmentDate="2024-12-01T08:00:00Z")

        assert shipment["status"] == "Pending"
        assert shipment["shipmentDate"].startswith("2024-12-01T08:00:00")
        stock = as_user.get(f"/stocks/{stock_id}").json()["data"]
        assert (stock["weight"], stock["bags"]) == (380.0, 7)

    def test_create_for_someone_else_is_forbidden(self, as_user, make_stock):
        stock_id = make_stock()

        response = as_user.post(f"/shipments/users/{OTHER_USER_ID}", json=shipment_body([(stock_id, 10)]))

        assert response.status_code == 403

    def test_admin_cannot_create(self, as_admin, make_stock):
        stock_id = make_stock()

        response = as_admin.post(f"/shipments/users/{USER_ID}", json=shipment_body([(stock_id, 10)]))

        assert response.status_code == 403

    def test_insufficient_stock(self, as_user, make_stock):
        stock_id = make_stock(bags=2, weight=100.0)

        response = as_user.post(f"/shipments/users/{USER_ID}", json=shipment_body([(stock_id, 150)]))

        assert response.status_code == 400
        assert response.json() == {
            "status": "error",
            "message": f"Insufficient stock for stock {stock_id}: requested 150.0, available 100.0",
        }

    def test_validation_failure(self, as_user):
        response = as_user.post(f"/shipments/users/{USER_ID}", json=shipment_body([], vessel="tenth"))

        assert response.status_code == 400
        assert response.json()["message"] == "At least one stock item is required, Invalid vessel"

    def test_duplicate_shipmark(self, as_user, make_stock):
        stock_id = make_stock(weight=500.0)
        self.create(as_user, stock_id)

        response = as_user.post(f"/shipments/users/{USER_ID}", json=shipment_body([(stock_id, 10)]))

        assert response.status_code == 409

    def test_list_own_shipments(self, as_user, make_stock):
        first = make_stock()
        second = make_stock()
        self.create(as_user, first, shipmark="SM-1")
        self.create(as_user, second, shipmark="SM-2")

        body = as_user.get(f"/shipments/users/{USER_ID}", params={"stocksId": second}).json()

        assert body["meta"]["total"] == 1
        assert body["data"][0]["shipmark"] == "SM-2"

    def test_list_other_users_shipments_is_forbidden(self, as_user):
        assert as_user.get(f"/shipments/users/{OTHER_USER_ID}").status_code == 403

    def test_admin_lists_and_updates_status(self, client, login, regular_user, admin_user, make_stock):
        login(regular_user)
        shipment = self.create(client, make_stock())

        login(admin_user)
        listed = client.get("/shipments/admin", params={"status": "Pending"}).json()
        assert [row["id"] for row in listed["data"]] == [shipment["id"]]

        response = client.put(f"/shipments/admin/{shipment['id']}/status", json={"status": "Shipped"})
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "Shipped"

        invalid = client.put(f"/shipments/admin/{shipment['id']}/status", json={"status": "Lost"})
        assert invalid.status_code == 400
        assert invalid.json()["message"] == "Invalid shipment status"

    def test_status_update_requires_admin(self, as_user, make_stock):
        shipment = self.create(as_user, make_stock())

        response = as_user.put(f"/shipments/admin/{shipment['id']}/status", json={"status": "Shipped"})

        assert response.status_code == 403

    def test_delete_restores_stock(self, as_user, make_stock):
        stock_id = make_stock(bags=10, weight=500.0)
        shipment = self.create(as_user, stock_id, weight=120)

        response = as_user.delete(f"/shipments/users/{USER_ID}/{shipment['id']}")

        assert response.status_code == 200
        stock = as_user.get(f"/stocks/{stock_id}").json()["data"]
        assert (stock["weight"], stock["bags"]) == (500.0, 10)
        assert as_user.get(f"/shipments/users/{USER_ID}").json()["meta"]["total"] == 0

    def test_delete_unknown_shipment(self, as_user):
        assert as_user.delete(f"/shipments/users/{USER_ID}/999").status_code == 404

    def test_owner_updates_details(self, as_user, make_stock):
        shipment = self.create(as_user, make_stock())

        response = as_user.patch(f"/shipments/users/{USER_ID}/{shipment['id']}", json={
            "consignee": "Nairobi Blenders", "additionalInstructions": None,
        })

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["consignee"] == "Nairobi Blenders"
        assert data["additionalInstructions"] is None
        assert data["shipmark"] == "SM-100"

    def test_update_replaces_items_and_re_deducts_stock(self, as_user, make_stock):
        # Arrange
        first = make_stock(bags=10, weight=500.0)
        second = make_stock(bags=4, weight=200.0)
        shipment = self.create(as_user, first, weight=100)

        # Act
        response = as_user.patch(f"/shipments/users/{USER_ID}/{shipment['id']}", json={
            "items": [{"stocksId": first, "totalWeight": 150}, {"stocksId": second, "totalWeight": 50}],
        })

        # Assert
        assert response.status_code == 200
        lines = {(s["stocksId"], s["assignedWeight"]) for s in response.json()["data"]["stocks"]}
        assert lines == {(first, 150.0), (second, 50.0)}
        first_stock = as_user.get(f"/stocks/{first}").json()["data"]
        second_stock = as_user.get(f"/stocks/{second}").json()["data"]
        assert (first_stock["weight"], first_stock["bags"]) == (350.0, 7)
        assert (second_stock["weight"], second_stock["bags"]) == (150.0, 3)

    def test_update_with_insufficient_stock_keeps_old_items(self, as_user, make_stock):
        stock_id = make_stock(bags=10, weight=500.0)
        shipment = self.create(as_user, stock_id, weight=100)

        response = as_user.patch(f"/shipments/users/{USER_ID}/{shipment['id']}", json={
            "items": [{"stocksId": stock_id, "totalWeight": 900}],
        })

        assert response.status_code == 400
        stock = as_user.get(f"/stocks/{stock_id}").json()["data"]
        assert (stock["weight"], stock["bags"]) == (400.0, 8)

    def test_user_may_cancel(self, as_user, make_stock):
        shipment = self.create(as_user, make_stock())

        response = as_user.patch(f"/shipments/users/{USER_ID}/{shipment['id']}", json={"status": "Cancelled"})

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "Cancelled"

    def test_user_may_not_set_admin_statuses(self, as_user, make_stock):
        shipment = self.create(as_user, make_stock())

        response = as_user.patch(f"/shipments/users/{USER_ID}/{shipment['id']}", json={"status": "Shipped"})

        assert response.status_code == 403
        assert response.json()["message"] == "Forbidden: Users can only set status to Pending or Cancelled"

    def test_cancelled_shipment_is_frozen(self, as_user, make_stock):
        shipment = self.create(as_user, make_stock())
        as_user.patch(f"/shipments/users/{USER_ID}/{shipment['id']}", json={"status": "Cancelled"})

        response = as_user.patch(f"/shipments/users/{USER_ID}/{shipment['id']}", json={"consignee": "Late"})

        assert response.status_code == 400
        assert response.json()["message"] == "Cannot update a cancelled shipment"

    def test_update_someone_elses_shipment(self, client, login, regular_user, make_stock):
        login(regular_user)
        shipment = self.create(client, make_stock())
        login(TokenUser(id=OTHER_USER_ID, role="user"))

        via_own_path = client.patch(f"/shipments/users/{OTHER_USER_ID}/{shipment['id']}", json={"consignee": "X"})
        via_owner_path = client.patch(f"/shipments/users/{USER_ID}/{shipment['id']}", json={"consignee": "X"})

        assert via_own_path.status_code == 403
        assert via_own_path.json()["message"] == "Forbidden: You can only update your own shipments"
        assert via_owner_path.status_code == 403
        assert via_owner_path.json()["detail"] == "Forbidden: You can only update your own shipments"

    def test_update_unknown_shipment(self, as_user):
        response = as_user.patch(f"/shipments/users/{USER_ID}/999", json={"consignee": "X"})

        assert response.status_code == 404

    def test_shipment_history(self, as_user, make_stock):
        # Arrange
        stock_id = make_stock()
        shipment = self.create(as_user, stock_id, weight=40)
        as_user.patch(f"/shipments/users/{USER_ID}/{shipment['id']}", json={"status": "Cancelled"})

        # Act
        body = as_user.get(f"/shipments/users/{USER_ID}/shipment-history",
                           params={"shipmentId": shipment["id"]}).json()

        # Assert
        assert body["meta"]["total"] == 2
        assert body["meta"]["limit"] == 10
        assert sorted(entry["action"] for entry in body["data"]) == ["CREATED", "UPDATED"]
        entry = body["data"][0]
        assert entry["shipment"] == {"id": shipment["id"], "shipmark": "SM-100", "status": "Cancelled"}
        assert entry["items"] == [{"stocksId": stock_id, "totalWeight": 40.0}]

    def test_other_users_shipment_history_is_forbidden(self, as_user):
        response = as_user.get(f"/shipments/users/{OTHER_USER_ID}/shipment-history")

        assert response.status_code == 403
        assert response.json()["detail"] == "Forbidden: Cannot access other users' shipment history"

    def test_admin_reads_any_shipment_history(self, client, login, regular_user, admin_user, make_stock):
        login(regular_user)
        self.create(client, make_stock())

        login(admin_user)
        body = client.get(f"/shipments/users/{USER_ID}/shipment-history").json()

        assert body["meta"]["total"] == 1
