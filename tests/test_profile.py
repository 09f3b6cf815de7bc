"""
Self-service profile: read, update name/email, change password.
"""
from sqlalchemy import select

from conftest import PASSWORD
from studio_cms.models import ActivityLog, AdminUser
from studio_cms.utils.auth import verify_password

NEW_PASSWORD = "N3w!Passw0rd"


class TestProfile:
    def test_get_own_profile(self, client, india_headers):
        resp = client.get("/api/admin/profile", headers=india_headers)

        assert resp.status_code == 200
        assert resp.json()["username"] == "priya"
        assert resp.json()["assigned_regions"] == ["IN"]
        assert "password_hash" not in resp.json()

    def test_requires_authentication(self, client, seed_users):
        assert client.get("/api/admin/profile").status_code == 401

    def test_update_name_and_email(self, client, db, seed_users, india_headers):
        resp = client.put("/api/admin/profile", json={"fullName": "Priya Sharma", "email": "priya@studio.in"},
                          headers=india_headers)

        assert resp.status_code == 200, resp.text
        assert resp.json()["full_name"] == "Priya Sharma"
        assert resp.json()["email"] == "priya@studio.in"
        log = db.execute(select(ActivityLog).where(ActivityLog.action_type == "profile_update")).scalar_one()
        assert log.admin_id == seed_users["india"].id
        assert log.old_values == {"full_name": "Priya", "email": "priya@studio.test"}

    def test_email_of_another_account_conflicts(self, client, db, india_headers):
        resp = client.put("/api/admin/profile", json={"email": "root@studio.test"}, headers=india_headers)

        assert resp.status_code == 409
        db.expire_all()
        assert db.execute(select(AdminUser).where(AdminUser.username == "priya")).scalar_one().email == \
            "priya@studio.test"

    def test_blank_email_is_rejected(self, client, india_headers):
        resp = client.put("/api/admin/profile", json={"email": "  "}, headers=india_headers)

        assert resp.status_code == 400


class TestPasswordChange:
    def _change(self, client, headers, current=PASSWORD, new=NEW_PASSWORD):
        return client.put("/api/admin/profile/password",
                          json={"currentPassword": current, "newPassword": new}, headers=headers)

    def test_change_password(self, client, db, india_headers):
        resp = self._change(client, india_headers)

        assert resp.status_code == 200, resp.text
        db.expire_all()
        user = db.execute(select(AdminUser).where(AdminUser.username == "priya")).scalar_one()
        assert verify_password(NEW_PASSWORD, user.password_hash)
        assert db.execute(select(ActivityLog).where(ActivityLog.action_type == "password_change")).scalar_one()
        login = client.post("/api/auth/login", json={"username": "priya", "password": NEW_PASSWORD})
        assert login.status_code == 200

    def test_wrong_current_password(self, client, db, india_headers):
        resp = self._change(client, india_headers, current="wrong")

        assert resp.status_code == 401
        assert resp.json()["detail"] == "Current password is incorrect"
        assert db.execute(select(ActivityLog).where(ActivityLog.action_type == "password_change")).first() is None

    def test_weak_new_password(self, client, india_headers):
        resp = self._change(client, india_headers, new="short")

        assert resp.status_code == 400
        assert resp.json()["error"] == "Password does not meet requirements"

    def test_new_password_must_differ(self, client, india_headers):
        resp = self._change(client, india_headers, new=PASSWORD)

        assert resp.status_code == 400
        assert "different" in resp.json()["detail"]
