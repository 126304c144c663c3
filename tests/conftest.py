"""pytest configuration and shared fixtures."""
from __future__ import annotations

import itertools
import sys
from datetime import datetime
from pathlib import Path

import pytest

# Ensure the project root is available on sys.path so tests can import the package.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from smoothflow import create_app  # noqa: E402
from smoothflow.auth import build_token  # noqa: E402
from smoothflow.extensions import db  # noqa: E402
from smoothflow.models import (Order, OrderItem, Payment, Service,  # noqa: E402
                               ServiceOption, User)


@pytest.fixture
def app(tmp_path):
    app = create_app({
        "TESTING": True,
        "SECRET_KEY": "test-secret",
        "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
        "UPLOAD_FOLDER": str(tmp_path / "uploads"),
    })
    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    """Create a user and return its id."""
    counter = itertools.count(1)

    def _make(role: str = "CUSTOMER", name: str | None = None, email: str | None = None) -> int:
        n = next(counter)
        with app.app_context():
            user = User(name=name or f"User {n}", email=email or f"user{n}@example.com", role=role)
            db.session.add(user)
            db.session.commit()
            return user.user_id

    return _make


@pytest.fixture
def auth_headers(app):
    """Build an Authorization header for an existing user id."""

    def _headers(user_id: int) -> dict[str, str]:
        with app.app_context():
            user = db.session.get(User, user_id)
            return {"Authorization": f"Bearer {build_token(user)}"}

    return _headers


@pytest.fixture
def make_service(app):
    """Create a catalog service with optional options; return (service_id, [option_ids])."""

    def _make(
        title: str = "PC Maintenance",
        base_price_cents: int = 8000,
        options: tuple[tuple[str, int], ...] = (),
        **fields,
    ) -> tuple[int, list[int]]:
        with app.app_context():
            service = Service(title=title, base_price_cents=base_price_cents, category="maintenance", **fields)
            for option_title, price_cents in options:
                service.options.append(ServiceOption(title=option_title, price_cents=price_cents))
            db.session.add(service)
            db.session.commit()
            return service.service_id, [option.option_id for option in service.options]

    return _make


@pytest.fixture
def make_order(app):
    """Create an order (optionally with one item and some payments) and return its id."""
    counter = itertools.count(1)

    def _make(
        user_id: int,
        *,
        total_amount_cents: int = 10000,
        status: str = "PENDING",
        payment_method: str | None = None,
        service_id: int | None = None,
        option_id: int | None = None,
        payments: int = 0,
        created_at: datetime | None = None,
    ) -> int:
        with app.app_context():
            order = Order(
                order_number=f"ORD-TEST-{next(counter)}",
                user_id=user_id,
                total_amount_cents=total_amount_cents,
                status=status,
                payment_method=payment_method,
            )
            if created_at is not None:
                order.created_at = created_at
            if service_id is not None:
                order.items.append(
                    OrderItem(
                        service_id=service_id,
                        option_id=option_id,
                        quantity=1,
                        unit_price_cents=total_amount_cents,
                        total_price_cents=total_amount_cents,
                    )
                )
            db.session.add(order)
            db.session.flush()
            for _ in range(payments):
                db.session.add(
                    Payment(order_id=order.order_id, amount_cents=total_amount_cents, method="bank_transfer")
                )
            db.session.commit()
            return order.order_id

    return _make
