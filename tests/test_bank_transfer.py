"""Tests for the bank-transfer flow: customer submission and admin review."""
from __future__ import annotations

from datetime import datetime

import pytest

from smoothflow.extensions import db
from smoothflow.models import Order, Payment


@pytest.fixture
def customer(make_user):
    return make_user(name="Dana Customer", email="dana@example.com")


@pytest.fixture
def admin(make_user):
    return make_user(role="ADMIN", name="Admin")


def test_submit_bank_transfer_queues_order(app, client, auth_headers, customer, make_order) -> None:
    order_id = make_order(customer, total_amount_cents=7500)

    response = client.post(
        f"/orders/{order_id}/bank-transfer",
        headers=auth_headers(customer),
        json={"receipt_path": "/tmp/uploads/receipts/receipt_1.png"},
    )
    data = response.get_json()

    assert response.status_code == 200
    assert data["success"] is True
    assert data["order"]["status"] == "PENDING_ADMIN_APPROVAL"
    assert data["order"]["bank_transfer_status"] == "PENDING_ADMIN_APPROVAL"
    assert data["order"]["payment_method"] == "bank_transfer"
    assert data["order"]["bank_transfer_receipt"] == "/tmp/uploads/receipts/receipt_1.png"
    with app.app_context():
        payments = Payment.query.filter_by(order_id=order_id).all()
        assert len(payments) == 1
        assert payments[0].status == "PENDING"
        assert payments[0].amount_cents == 7500


def test_resubmitting_does_not_duplicate_payment(app, client, auth_headers, customer, make_order) -> None:
    order_id = make_order(customer)
    headers = auth_headers(customer)

    client.post(f"/orders/{order_id}/bank-transfer", headers=headers, json={"receipt_path": "a.png"})
    response = client.post(f"/orders/{order_id}/bank-transfer", headers=headers, json={"receipt_path": "b.png"})

    assert response.status_code == 200
    assert response.get_json()["order"]["bank_transfer_receipt"] == "b.png"
    with app.app_context():
        assert Payment.query.filter_by(order_id=order_id).count() == 1


def test_submit_bank_transfer_requires_receipt(client, auth_headers, customer, make_order) -> None:
    order_id = make_order(customer)

    response = client.post(f"/orders/{order_id}/bank-transfer", headers=auth_headers(customer), json={})

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_payload"


def test_submit_bank_transfer_for_other_users_order(client, auth_headers, customer, make_user, make_order) -> None:
    order_id = make_order(make_user())

    response = client.post(
        f"/orders/{order_id}/bank-transfer", headers=auth_headers(customer), json={"receipt_path": "a.png"}
    )

    assert response.status_code == 404


def test_admin_lists_bank_transfers_newest_first(
    client, auth_headers, admin, customer, make_service, make_order
) -> None:
    service_id, (option_id,) = make_service(title="Cable Management", options=(("Premium sleeving", 2000),))
    older = make_order(
        customer,
        payment_method="bank_transfer",
        service_id=service_id,
        option_id=option_id,
        created_at=datetime(2024, 1, 1, 12, 0),
    )
    newer = make_order(customer, payment_method="bank_transfer", created_at=datetime(2024, 2, 1, 12, 0))
    make_order(customer, payment_method=None)

    response = client.get("/admin/bank-transfers", headers=auth_headers(admin))
    orders = response.get_json()["orders"]

    assert response.status_code == 200
    assert [order["id"] for order in orders] == [newer, older]
    assert orders[1]["user"] == {"name": "Dana Customer", "email": "dana@example.com", "phone": None}
    assert orders[1]["items"][0]["service"] == {"title": "Cable Management"}
    assert orders[1]["items"][0]["option"] == {"title": "Premium sleeving"}
    assert orders[0]["items"] == []


def test_admin_approves_bank_transfer(app, client, auth_headers, admin, customer, make_order) -> None:
    order_id = make_order(customer, payment_method="bank_transfer", payments=1)

    response = client.post(
        f"/admin/orders/{order_id}/approve",
        headers=auth_headers(admin),
        json={"action": "approve", "admin_notes": "Funds received"},
    )
    order = response.get_json()["order"]

    assert response.status_code == 200
    assert order["status"] == "CONFIRMED"
    assert order["payment_status"] == "PAID"
    assert order["bank_transfer_status"] == "APPROVED"
    assert order["admin_notes"] == "Funds received"
    assert order["admin_approved_by"] == admin
    assert order["admin_approved_at"] is not None
    with app.app_context():
        assert [p.status for p in Payment.query.filter_by(order_id=order_id)] == ["COMPLETED"]


def test_admin_rejects_bank_transfer(app, client, auth_headers, admin, customer, make_order) -> None:
    order_id = make_order(customer, payment_method="bank_transfer", payments=1)

    response = client.post(
        f"/admin/orders/{order_id}/approve", headers=auth_headers(admin), json={"action": "reject"}
    )

    assert response.status_code == 200
    with app.app_context():
        order = db.session.get(Order, order_id)
        assert order.status == "CANCELLED"
        assert order.bank_transfer_status == "REJECTED"
        assert order.payment_status == "FAILED"
        assert [p.status for p in order.payments] == ["FAILED"]


def test_approved_transfer_cannot_be_resubmitted(app, client, auth_headers, admin, customer, make_order) -> None:
    order_id = make_order(customer, payment_method="bank_transfer")
    client.post(f"/admin/orders/{order_id}/approve", headers=auth_headers(admin), json={"action": "approve"})

    response = client.post(
        f"/orders/{order_id}/bank-transfer", headers=auth_headers(customer), json={"receipt_path": "late.png"}
    )

    assert response.status_code == 409
    assert response.get_json()["error"] == "conflict"
    with app.app_context():
        order = db.session.get(Order, order_id)
        assert order.status == "CONFIRMED"
        assert order.bank_transfer_status == "APPROVED"
        assert order.bank_transfer_receipt is None
        assert Payment.query.filter_by(order_id=order_id).count() == 0


@pytest.mark.parametrize("payload", [{}, {"action": "maybe"}])
def test_review_bank_transfer_rejects_unknown_action(client, auth_headers, admin, customer, make_order, payload) -> None:
    order_id = make_order(customer, payment_method="bank_transfer")

    response = client.post(f"/admin/orders/{order_id}/approve", headers=auth_headers(admin), json=payload)

    assert response.status_code == 400


def test_review_bank_transfer_unknown_order(client, auth_headers, admin, customer, make_order) -> None:
    card_order = make_order(customer, payment_method=None)

    missing = client.post("/admin/orders/999/approve", headers=auth_headers(admin), json={"action": "approve"})
    not_transfer = client.post(
        f"/admin/orders/{card_order}/approve", headers=auth_headers(admin), json={"action": "approve"}
    )

    assert missing.status_code == 404
    assert not_transfer.status_code == 404
