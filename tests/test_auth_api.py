from datetime import timedelta

import pytest

from tutorworld.core.clock import utcnow
from tutorworld.models.user import User
from tutorworld.utils.email import NotificationKind

from conftest import PASSWORD

NEW_PASSWORD = "N3wPassword!"


def sent_code(notifier, kind):
    codes = [data["code"] for _, sent_kind, data in notifier.sent if sent_kind is kind]
    return codes[-1]


def register(client, email="new.student@example.com", **overrides):
    payload = {
        "email": email,
        "password": PASSWORD,
        "first_name": "Nina",
        "last_name": "Student",
        "grade": "6",
        **overrides,
    }
    return client.post("/auth/register", json=payload)


def login(client, email, password=PASSWORD):
    return client.post("/auth/login", json={"email": email, "password": password})


class TestRegistration:
    def test_register_verify_login(self, client, notifier):
        response = register(client, email="New.Student@Example.com")
        assert response.status_code == 201
        user = response.json()["user"]
        assert user["email"] == "new.student@example.com"
        assert user["role"] == "student"
        assert user["is_email_verified"] is False

        response = login(client, "new.student@example.com")
        assert response.status_code == 403
        assert response.json()["type"] == "forbidden"

        code = sent_code(notifier, NotificationKind.VERIFICATION_CODE)
        response = client.post("/auth/verify-email", json={"email": "new.student@example.com", "code": code})
        assert response.status_code == 200

        response = login(client, "new.student@example.com")
        assert response.status_code == 200
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["access_token"] and body["refresh_token"]
        assert body["user"]["is_email_verified"] is True

    def test_duplicate_email(self, client, student):
        response = register(client, email=student.email)
        assert response.status_code == 409
        assert response.json() == {"error": "User with this email already exists", "type": "conflict"}

    def test_weak_password(self, client):
        response = register(client, password="password")
        assert response.status_code == 422
        assert response.json()["type"] == "validation_error"

    def test_wrong_verification_code(self, client, notifier):
        register(client)
        code = sent_code(notifier, NotificationKind.VERIFICATION_CODE)
        wrong = "000000" if code != "000000" else "111111"

        response = client.post("/auth/verify-email", json={"email": "new.student@example.com", "code": wrong})
        assert response.status_code == 400

    def test_resend_verification_issues_new_code(self, client, notifier):
        register(client)
        response = client.post("/auth/resend-verification", json={"email": "new.student@example.com"})

        assert response.status_code == 200
        assert notifier.kinds() == [NotificationKind.VERIFICATION_CODE] * 2


class TestLogin:
    def test_invalid_credentials(self, client, student):
        response = login(client, student.email, "Wrong-passw0rd")
        assert response.status_code == 401
        assert response.json()["error"] == "Invalid email or password"
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_unknown_email_looks_the_same(self, client):
        response = login(client, "nobody@example.com")
        assert response.status_code == 401
        assert response.json()["error"] == "Invalid email or password"

    def test_deactivated_account(self, client, make_user):
        user = make_user(is_active=False)
        assert login(client, user.email).status_code == 403

    def test_me(self, client, student):
        token = login(client, student.email).json()["access_token"]
        response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        assert response.json()["user_id"] == student.user_id

    def test_missing_token(self, client):
        response = client.get("/auth/me")
        assert response.status_code == 401
        assert response.json()["type"] == "unauthenticated"

    def test_garbage_token(self, client):
        response = client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_logout_revokes_token(self, client, student):
        token = login(client, student.email).json()["access_token"]
        headers = {"Authorization": f"Bearer {token}"}

        assert client.post("/auth/logout", headers=headers).status_code == 200
        response = client.get("/auth/me", headers=headers)
        assert response.status_code == 401
        assert response.json()["error"] == "Token has been revoked"

    def test_refresh(self, client, student):
        refresh_token = login(client, student.email).json()["refresh_token"]

        response = client.post("/auth/refresh", json={"refresh_token": refresh_token})
        assert response.status_code == 200
        assert response.json()["user"]["user_id"] == student.user_id

    def test_access_token_is_not_a_refresh_token(self, client, student):
        access_token = login(client, student.email).json()["access_token"]
        response = client.post("/auth/refresh", json={"refresh_token": access_token})
        assert response.status_code == 401

    def test_deactivated_user_token_is_rejected(self, client, db, student, headers):
        student.is_active = False
        db.commit()

        response = client.get("/auth/me", headers=headers(student))
        assert response.status_code == 403


class TestPasswords:
    def test_forgot_password_does_not_reveal_accounts(self, client, student, notifier):
        known = client.post("/auth/forgot-password", json={"email": student.email})
        unknown = client.post("/auth/forgot-password", json={"email": "ghost@example.com"})

        assert known.status_code == unknown.status_code == 200
        assert known.json() == unknown.json()
        assert notifier.kinds() == [NotificationKind.PASSWORD_RESET_CODE]

    def test_reset_password(self, client, student, notifier):
        client.post("/auth/forgot-password", json={"email": student.email})
        code = sent_code(notifier, NotificationKind.PASSWORD_RESET_CODE)

        response = client.post(
            "/auth/reset-password",
            json={"email": student.email, "code": code, "new_password": NEW_PASSWORD},
        )
        assert response.status_code == 200
        assert login(client, student.email).status_code == 401
        assert login(client, student.email, NEW_PASSWORD).status_code == 200

        # codes are single use
        response = client.post(
            "/auth/reset-password",
            json={"email": student.email, "code": code, "new_password": PASSWORD},
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid or expired reset code"

    def test_expired_reset_code(self, client, db, student, notifier):
        client.post("/auth/forgot-password", json={"email": student.email})
        code = sent_code(notifier, NotificationKind.PASSWORD_RESET_CODE)
        db.expire_all()
        stored = db.query(User).filter_by(id=student.id).one()
        stored.reset_code_expires_at = utcnow() - timedelta(minutes=1)
        db.commit()

        response = client.post(
            "/auth/reset-password",
            json={"email": student.email, "code": code, "new_password": NEW_PASSWORD},
        )
        assert response.status_code == 400

    def test_change_password(self, client, student, headers):
        response = client.post(
            "/auth/change-password",
            json={"current_password": "Wrong-passw0rd", "new_password": NEW_PASSWORD},
            headers=headers(student),
        )
        assert response.status_code == 400

        response = client.post(
            "/auth/change-password",
            json={"current_password": PASSWORD, "new_password": NEW_PASSWORD},
            headers=headers(student),
        )
        assert response.status_code == 200
        assert login(client, student.email, NEW_PASSWORD).status_code == 200


class TestProfile:
    def test_update_profile(self, client, student, headers):
        response = client.put(
            "/auth/me", json={"first_name": "Renamed", "username": "renamed"}, headers=headers(student)
        )
        assert response.status_code == 200
        assert response.json()["first_name"] == "Renamed"
        assert response.json()["username"] == "renamed"

    def test_username_taken(self, client, make_user, student, headers):
        make_user(username="taken")
        response = client.put("/auth/me", json={"username": "taken"}, headers=headers(student))
        assert response.status_code == 409


@pytest.mark.parametrize("path", ["/", "/health"])
def test_health_endpoints(client, path):
    response = client.get(path)
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert "X-Request-ID" in response.headers
