"""Tests for registration and login."""
from __future__ import annotations

from datetime import datetime, timezone

from werkzeug.security import generate_password_hash

from smoothflow.extensions import db
from smoothflow.models import AuthAccount, User


def _create_user_with_auth(*, role: str, password: str, email: str = "admin@example.com") -> None:
    user = User(name="Account Holder", email=email, role=role)
    db.session.add(user)
    db.session.flush()

    auth = AuthAccount(
        user_id=user.user_id,
        password_hash=generate_password_hash(password),
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )
    db.session.add(auth)
    db.session.commit()


def test_register_creates_customer(app, client) -> None:
    response = client.post(
        "/auth/register",
        json={"name": "New Customer", "email": "New@Example.com", "password": "Secret123!", "role": "ADMIN"},
    )

    assert response.status_code == 201
    body = response.get_json()
    assert body["token"]
    assert body["user"]["email"] == "new@example.com"
    assert body["user"]["role"] == "CUSTOMER"

    with app.app_context():
        user = User.query.filter_by(email="new@example.com").one()
        assert user.auth_account is not None
        assert user.auth_account.password_hash != "Secret123!"


def test_register_strips_markup_from_name(client) -> None:
    response = client.post(
        "/auth/register",
        json={"name": "<b>Sara</b><script>alert(1)</script>", "email": "sara@example.com", "password": "Secret123!"},
    )

    assert response.status_code == 201
    assert response.get_json()["user"]["name"] == "Sara"


def test_register_missing_fields(client) -> None:
    response = client.post("/auth/register", json={"email": "x@example.com"})

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_payload"


def test_register_duplicate_email(app, client) -> None:
    with app.app_context():
        _create_user_with_auth(role="CUSTOMER", password="Secret123!", email="taken@example.com")

    response = client.post(
        "/auth/register",
        json={"name": "Other", "email": "taken@example.com", "password": "Secret123!"},
    )

    assert response.status_code == 409
    assert response.get_json()["error"] == "conflict"


def test_login_success(app, client) -> None:
    with app.app_context():
        _create_user_with_auth(role="ADMIN", password="Secret123!")

    response = client.post(
        "/auth/login",
        json={"email": "admin@example.com", "password": "Secret123!"},
    )

    assert response.status_code == 200
    body = response.get_json()
    assert "token" in body and body["token"]
    assert body["user"]["role"] == "ADMIN"

    with app.app_context():
        account = AuthAccount.query.one()
        assert account.last_login_at is not None


def test_login_invalid_password(app, client) -> None:
    with app.app_context():
        _create_user_with_auth(role="CUSTOMER", password="Secret123!", email="wrong@example.com")

    response = client.post(
        "/auth/login",
        json={"email": "wrong@example.com", "password": "BadPass"},
    )

    assert response.status_code == 401
    assert response.get_json()["error"] == "unauthorized"


def test_login_token_grants_access(app, client) -> None:
    with app.app_context():
        _create_user_with_auth(role="CUSTOMER", password="Secret123!", email="cart@example.com")

    token = client.post(
        "/auth/login",
        json={"email": "cart@example.com", "password": "Secret123!"},
    ).get_json()["token"]

    response = client.get("/cart", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    assert response.get_json() == {"cart": None}
