"""Tests for customer support tickets and the admin support desk."""
from __future__ import annotations

from datetime import datetime

import pytest

from smoothflow.extensions import db
from smoothflow.models import SupportReply, SupportTicket


@pytest.fixture
def users(make_user):
    return {
        "admin": make_user(role="ADMIN", name="Admin"),
        "customer": make_user(name="Sam Customer", email="sam@example.com"),
    }


@pytest.fixture
def ticket_id(app, users):
    with app.app_context():
        ticket = SupportTicket(
            ticket_number="TKT-1-ABC123",
            user_id=users["customer"],
            subject="PC will not boot",
            message="It powers on but there is no display.",
            priority="high",
        )
        ticket.replies.append(
            SupportReply(message="Second", is_admin=True, created_at=datetime(2024, 1, 2, 9, 0))
        )
        ticket.replies.append(
            SupportReply(message="First", is_admin=False, created_at=datetime(2024, 1, 1, 9, 0))
        )
        db.session.add(ticket)
        db.session.commit()
        return ticket.ticket_id


def test_create_ticket(client, auth_headers, users) -> None:
    response = client.post(
        "/support",
        headers=auth_headers(users["customer"]),
        json={"subject": "Noisy fan", "message": "The <b>GPU</b> fan rattles under load.", "priority": "LOW"},
    )
    ticket = response.get_json()["ticket"]

    assert response.status_code == 201
    assert ticket["ticket_number"].startswith("TKT-")
    assert ticket["status"] == "OPEN"
    assert ticket["priority"] == "low"
    assert ticket["message"] == "The GPU fan rattles under load."


def test_create_ticket_keeps_paragraphs(client, auth_headers, users) -> None:
    message = "First paragraph here.\n\nSecond paragraph here."

    response = client.post(
        "/support", headers=auth_headers(users["customer"]), json={"subject": "Two issues", "message": message}
    )
    mine = client.get("/support", headers=auth_headers(users["customer"]))

    assert response.status_code == 201
    assert response.get_json()["ticket"]["message"] == message
    assert mine.get_json()["tickets"][0]["message"] == message


@pytest.mark.parametrize(
    "payload",
    [
        {"message": "Long enough message"},
        {"subject": "Hi", "message": "too short"},
        {"subject": "Hi", "message": "Long enough message", "priority": "urgent"},
    ],
)
def test_create_ticket_rejects_payload(client, auth_headers, users, payload) -> None:
    response = client.post("/support", headers=auth_headers(users["customer"]), json=payload)

    assert response.status_code == 400


def test_list_my_tickets_only_own(client, auth_headers, users, ticket_id, make_user) -> None:
    other = make_user()

    mine = client.get("/support", headers=auth_headers(users["customer"]))
    theirs = client.get("/support", headers=auth_headers(other))

    assert [ticket["id"] for ticket in mine.get_json()["tickets"]] == [ticket_id]
    assert theirs.get_json()["tickets"] == []


def test_admin_get_ticket_with_replies_oldest_first(client, auth_headers, users, ticket_id) -> None:
    response = client.get(f"/admin/support/{ticket_id}", headers=auth_headers(users["admin"]))
    ticket = response.get_json()["ticket"]

    assert response.status_code == 200
    assert ticket["user"] == {"name": "Sam Customer", "email": "sam@example.com"}
    assert [reply["message"] for reply in ticket["replies"]] == ["First", "Second"]


def test_admin_list_tickets(client, auth_headers, users, ticket_id) -> None:
    response = client.get("/admin/support", headers=auth_headers(users["admin"]))
    tickets = response.get_json()["tickets"]

    assert response.status_code == 200
    assert len(tickets) == 1
    assert len(tickets[0]["replies"]) == 2


def test_admin_get_ticket_not_found(client, auth_headers, users) -> None:
    response = client.get("/admin/support/999", headers=auth_headers(users["admin"]))

    assert response.status_code == 404
    assert response.get_json()["message"] == "Ticket not found"


def test_customer_cannot_use_support_desk(client, auth_headers, users, ticket_id) -> None:
    response = client.get(f"/admin/support/{ticket_id}", headers=auth_headers(users["customer"]))

    assert response.status_code == 403


def test_admin_reply_moves_open_ticket_in_progress(app, client, auth_headers, users, ticket_id) -> None:
    response = client.post(
        f"/admin/support/{ticket_id}/reply",
        headers=auth_headers(users["admin"]),
        json={"message": "Please reseat the GPU."},
    )

    assert response.status_code == 201
    assert response.get_json()["reply"]["is_admin"] is True
    with app.app_context():
        ticket = db.session.get(SupportTicket, ticket_id)
        assert ticket.status == "IN_PROGRESS"
        assert len(ticket.replies) == 3


def test_admin_reply_requires_message(client, auth_headers, users, ticket_id) -> None:
    response = client.post(f"/admin/support/{ticket_id}/reply", headers=auth_headers(users["admin"]), json={})

    assert response.status_code == 400


def test_admin_updates_ticket_status(client, auth_headers, users, ticket_id) -> None:
    headers = auth_headers(users["admin"])

    closed = client.put(f"/admin/support/{ticket_id}/status", headers=headers, json={"status": "CLOSED"})
    invalid = client.put(f"/admin/support/{ticket_id}/status", headers=headers, json={"status": "DONE"})
    missing = client.put("/admin/support/999/status", headers=headers, json={"status": "CLOSED"})

    assert closed.status_code == 200
    assert closed.get_json()["ticket"]["status"] == "CLOSED"
    assert invalid.status_code == 400
    assert missing.status_code == 404
