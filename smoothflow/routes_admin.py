"""Admin-only routes: dashboard stats, bank transfers, order deletion and support desk."""
from __future__ import annotations

from datetime import datetime, timezone

from flask import Blueprint, current_app, g, jsonify, request
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import joinedload, selectinload

from .auth import admin_required
from .errors import database_error
from .extensions import db
from .models import (BANK_TRANSFER, TICKET_STATUSES, Order, OrderItem, Payment,
                     SupportReply, SupportTicket, User)
from .validation import sanitize_notes

bp_admin = Blueprint("admin", __name__)


@bp_admin.get("/stats")
@admin_required
def get_stats() -> tuple[dict[str, object], int]:
    """Dashboard counters.
    ---
    tags:
      - Admin
    responses:
      200:
        description: totalUsers, totalOrders, totalRevenue, pendingOrders
      401:
        description: Not logged in
      403:
        description: Not an admin
    """
    try:
        # Four scalar subqueries in one SELECT give a single consistent read.
        total_users, total_orders, revenue_cents, pending_orders = db.session.execute(
            select(
                select(func.count(User.user_id)).scalar_subquery(),
                select(func.count(Order.order_id)).scalar_subquery(),
                select(func.coalesce(func.sum(Order.total_amount_cents), 0)).scalar_subquery(),
                select(func.count(Order.order_id)).where(Order.status == "PENDING").scalar_subquery(),
            )
        ).one()
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to compute admin stats")

    return jsonify({
        "totalUsers": total_users,
        "totalOrders": total_orders,
        "totalRevenue": int(revenue_cents) / 100.0,
        "pendingOrders": pending_orders,
    }), 200


# BANK TRANSFERS AND ORDERS
# ============================================================================

@bp_admin.get("/bank-transfers")
@admin_required
def list_bank_transfer_orders() -> tuple[dict[str, object], int]:
    """All bank-transfer orders, newest first, with customer contact and item titles."""
    try:
        orders = (
            Order.query.options(
                joinedload(Order.user),
                selectinload(Order.items).joinedload(OrderItem.service),
                selectinload(Order.items).joinedload(OrderItem.option),
            )
            .filter(Order.payment_method == BANK_TRANSFER)
            .order_by(Order.created_at.desc(), Order.order_id.desc())
            .all()
        )
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to fetch bank transfer orders")

    results = []
    for order in orders:
        data = order.to_dict()
        data["user"] = order.user.to_contact_dict() if order.user else None
        data["items"] = [item.to_summary_dict() for item in order.items]
        results.append(data)

    return jsonify({"orders": results}), 200


@bp_admin.post("/orders/<int:order_id>/approve")
@admin_required
def review_bank_transfer(order_id: int) -> tuple[dict[str, object], int]:
    """Approve or reject the bank transfer of an order.

    Approval confirms the order and marks it paid; rejection cancels it and
    fails its pending payments.
    """
    payload = request.get_json(silent=True) or {}
    action = payload.get("action")
    if action not in ("approve", "reject"):
        return jsonify({"error": "invalid_payload", "message": "action must be 'approve' or 'reject'"}), 400

    admin = g.current_user
    try:
        order = Order.query.filter_by(order_id=order_id, payment_method=BANK_TRANSFER).first()
        if order is None:
            return jsonify({"error": "not_found", "message": "Order not found"}), 404

        approved = action == "approve"
        order.bank_transfer_status = "APPROVED" if approved else "REJECTED"
        order.status = "CONFIRMED" if approved else "CANCELLED"
        order.payment_status = "PAID" if approved else "FAILED"
        order.admin_notes = sanitize_notes(payload.get("admin_notes")) or None
        order.admin_approved_by = admin.user_id
        order.admin_approved_at = datetime.now(timezone.utc)

        Payment.query.filter_by(order_id=order.order_id, status="PENDING").update(
            {Payment.status: "COMPLETED" if approved else "FAILED"}, synchronize_session=False
        )
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to review bank transfer")

    current_app.logger.info(
        "Bank transfer for order %s %sd by admin %s", order.order_number, action, admin.user_id
    )
    return jsonify({
        "success": True,
        "order": order.to_dict(),
        "message": "Order approved" if approved else "Order rejected",
    }), 200


@bp_admin.delete("/orders")
@admin_required
def delete_order() -> tuple[dict[str, str], int]:
    """Delete an order together with its payments.

    Payments go first, then the order (its items cascade). Both deletes share
    one transaction: either everything is removed or nothing is.
    """
    payload = request.get_json(silent=True) or {}
    order_id = payload.get("order_id")
    if order_id is None or order_id == "":
        return jsonify({"error": "invalid_payload", "message": "Order ID is required"}), 400
    if isinstance(order_id, bool) or not isinstance(order_id, int):
        return jsonify({"error": "invalid_payload", "message": "Order ID must be an integer"}), 400

    try:
        order = db.session.get(Order, order_id)
        if order is None:
            return jsonify({"error": "not_found", "message": "Order not found"}), 404

        Payment.query.filter_by(order_id=order_id).delete(synchronize_session=False)
        db.session.delete(order)
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to delete order")

    current_app.logger.info("Order %s deleted by admin %s", order_id, g.current_user.user_id)
    return jsonify({"message": "Order deleted successfully"}), 200


# SUPPORT DESK
# ============================================================================

def _ticket_query():
    return SupportTicket.query.options(
        joinedload(SupportTicket.user),
        selectinload(SupportTicket.replies),
    )


@bp_admin.get("/support")
@admin_required
def list_tickets() -> tuple[dict[str, object], int]:
    try:
        tickets = (
            _ticket_query()
            .order_by(SupportTicket.created_at.desc(), SupportTicket.ticket_id.desc())
            .all()
        )
        return jsonify({"tickets": [ticket.to_detail_dict() for ticket in tickets]}), 200
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to list support tickets")


@bp_admin.get("/support/<int:ticket_id>")
@admin_required
def get_ticket(ticket_id: int) -> tuple[dict[str, object], int]:
    try:
        ticket = _ticket_query().filter(SupportTicket.ticket_id == ticket_id).first()
        if ticket is None:
            return jsonify({"error": "not_found", "message": "Ticket not found"}), 404

        return jsonify({"ticket": ticket.to_detail_dict()}), 200
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to fetch support ticket")


@bp_admin.post("/support/<int:ticket_id>/reply")
@admin_required
def reply_to_ticket(ticket_id: int) -> tuple[dict[str, object], int]:
    """Post an admin reply; an OPEN ticket moves to IN_PROGRESS."""
    payload = request.get_json(silent=True) or {}
    message = sanitize_notes(payload.get("message"))
    if not message:
        return jsonify({"error": "invalid_payload", "message": "message is required"}), 400

    try:
        ticket = db.session.get(SupportTicket, ticket_id)
        if ticket is None:
            return jsonify({"error": "not_found", "message": "Ticket not found"}), 404

        reply = SupportReply(ticket_id=ticket.ticket_id, message=message, is_admin=True)
        db.session.add(reply)
        if ticket.status == "OPEN":
            ticket.status = "IN_PROGRESS"
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to reply to support ticket")

    return jsonify({"reply": reply.to_dict()}), 201


@bp_admin.put("/support/<int:ticket_id>/status")
@admin_required
def update_ticket_status(ticket_id: int) -> tuple[dict[str, object], int]:
    payload = request.get_json(silent=True) or {}
    status = payload.get("status")
    if status not in TICKET_STATUSES:
        return (
            jsonify({"error": "invalid_payload", "message": "status must be OPEN, IN_PROGRESS or CLOSED"}),
            400,
        )

    try:
        ticket = db.session.get(SupportTicket, ticket_id)
        if ticket is None:
            return jsonify({"error": "not_found", "message": "Ticket not found"}), 404

        ticket.status = status
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to update support ticket status")

    current_app.logger.info("Support ticket %s set to %s", ticket.ticket_number, status)
    return jsonify({"ticket": ticket.to_dict()}), 200
