"""
API tests for /admins
"""
import pytest

ADMIN_ID = "admin-sub-0001"


def admin_body(**overrides):
    body = {
        "adminCognitoId": "admin-sub-0002",
        "name": "Second Admin",
        "email": "second@example.com",
        "phoneNumber": "+254722000000",
    }
    body.update(overrides)
    return body


@pytest.mark.usefixtures("accounts")
class TestAdminsApi:
    """Test admin account management"""

    def test_create_and_get(self, as_admin):
        # Act
        created = as_admin.post("/admins", json=admin_body())

        # Assert
        assert created.status_code == 201
        assert created.json()["data"]["adminCognitoId"] == "admin-sub-0002"
        fetched = as_admin.get("/admins/admin-sub-0002").json()["data"]
        assert fetched["email"] == "second@example.com"

    def test_duplicate_id_or_email(self, as_admin):
        by_id = as_admin.post("/admins", json=admin_body(adminCognitoId=ADMIN_ID))
        by_email = as_admin.post("/admins", json=admin_body(email="admin@example.com"))

        assert by_id.status_code == 409
        assert by_email.status_code == 409
        assert by_id.json()["message"] == "Admin with this Cognito ID or email already exists"

    def test_cognito_id_used_by_a_buyer(self, as_admin):
        response = as_admin.post("/admins", json=admin_body(adminCognitoId="user-sub-0001"))

        assert response.status_code == 409

    def test_create_validation(self, as_admin):
        response = as_admin.post("/admins", json=admin_body(email="nope", name=""))

        assert response.status_code == 400
        assert response.json()["message"] == "Name is required, Invalid email address"

    def test_unknown_admin(self, as_admin):
        response = as_admin.get("/admins/missing")

        assert response.status_code == 404
        assert response.json()["message"] == "Admin not found"

    def test_update(self, as_admin):
        response = as_admin.put(f"/admins/{ADMIN_ID}", json={"name": "Head Admin"})

        assert response.status_code == 200
        assert response.json()["data"]["name"] == "Head Admin"
        assert response.json()["data"]["email"] == "admin@example.com"

    def test_update_email_in_use(self, as_admin):
        as_admin.post("/admins", json=admin_body())

        response = as_admin.put(f"/admins/{ADMIN_ID}", json={"email": "second@example.com"})

        assert response.status_code == 409
        assert response.json()["message"] == "Email already in use by another admin"

    def test_update_unknown_admin(self, as_admin):
        assert as_admin.put("/admins/missing", json={"name": "X"}).status_code == 404

    @pytest.mark.parametrize("method, path", [
        ("POST", "/admins"),
        ("GET", f"/admins/{ADMIN_ID}"),
        ("PUT", f"/admins/{ADMIN_ID}"),
    ])
    def test_requires_admin(self, as_user, method, path):
        response = as_user.request(method, path, json=admin_body())

        assert response.status_code == 403
