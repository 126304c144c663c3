"""Extended routes: cart, reviews and customer support tickets."""
from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import joinedload, selectinload

from .auth import login_required
from .errors import ValidationError, database_error
from .extensions import db
from .models import (TICKET_PRIORITIES, Cart, CartItem, Order, Review, Service,
                     ServiceOption, SupportTicket)
from .routes import generate_reference
from .validation import (MAX_ITEM_QUANTITY, parse_id, parse_quantity,
                         sanitize_notes, sanitize_user_input)

bp_ext = Blueprint("api_ext", __name__)

MIN_TICKET_MESSAGE = 10


# CART
# ============================================================================

def _load_cart(user_id: int) -> Cart | None:
    return (
        Cart.query.options(
            selectinload(Cart.items).joinedload(CartItem.service),
            selectinload(Cart.items).joinedload(CartItem.option),
        )
        .filter(Cart.user_id == user_id)
        .first()
    )


@bp_ext.get("/cart")
@login_required()
def get_cart() -> tuple[dict[str, object], int]:
    """Return the caller's cart, or null if none was created yet."""
    try:
        cart = _load_cart(g.current_user.user_id)
        return jsonify({"cart": cart.to_dict() if cart else None}), 200
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to fetch cart")


@bp_ext.post("/cart")
@login_required()
def add_to_cart() -> tuple[dict[str, object], int]:
    """Add a service (and optional option) to the cart, creating the cart on first use.
    ---
    tags:
      - Cart
    responses:
      200:
        description: Item added
      400:
        description: Invalid payload or unavailable service
      401:
        description: Not logged in
      404:
        description: Service or option not found
    """
    payload = request.get_json(silent=True) or {}
    try:
        service_id = parse_id(payload.get("service_id"), "service_id")
        option_id = parse_id(payload.get("option_id"), "option_id", required=False)
        quantity = parse_quantity(payload.get("quantity", 1))
    except ValidationError as exc:
        return exc.to_response()

    user_id = g.current_user.user_id
    try:
        service = db.session.get(Service, service_id)
        if service is None:
            return jsonify({"error": "not_found", "message": "Service not found"}), 404
        if not service.is_orderable(quantity):
            return jsonify({"error": "invalid_payload", "message": "Service is not available"}), 400

        if option_id is not None:
            option = db.session.get(ServiceOption, option_id)
            if option is None or option.service_id != service_id or not option.active:
                return jsonify({"error": "not_found", "message": "Service option not found"}), 404

        cart = Cart.query.filter_by(user_id=user_id).first()
        if cart is None:
            cart = Cart(user_id=user_id)
            db.session.add(cart)
            db.session.flush()

        line = CartItem.query.filter_by(
            cart_id=cart.cart_id, service_id=service_id, option_id=option_id
        ).first()
        if line is None:
            db.session.add(
                CartItem(cart_id=cart.cart_id, service_id=service_id, option_id=option_id, quantity=quantity)
            )
        elif line.quantity + quantity > MAX_ITEM_QUANTITY:
            db.session.rollback()
            return (
                jsonify({
                    "error": "invalid_payload",
                    "message": f"quantity must be between 1 and {MAX_ITEM_QUANTITY}",
                }),
                400,
            )
        else:
            line.quantity += quantity

        db.session.commit()
        cart = _load_cart(user_id)
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to add item to cart")

    return jsonify({"message": "Item added to cart", "cart": cart.to_dict()}), 200


@bp_ext.delete("/cart/clear")
@login_required()
def clear_cart() -> tuple[dict[str, str], int]:
    """Remove every item from the caller's cart; the cart itself is kept."""
    try:
        cart = Cart.query.filter_by(user_id=g.current_user.user_id).first()
        if cart is None:
            return jsonify({"error": "not_found", "message": "Cart not found"}), 404

        CartItem.query.filter_by(cart_id=cart.cart_id).delete(synchronize_session=False)
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to clear cart")

    return jsonify({"message": "Cart cleared successfully"}), 200


# REVIEWS
# ============================================================================

@bp_ext.get("/reviews")
def list_reviews() -> tuple[dict[str, object], int]:
    """List reviews, newest first, optionally for one service."""
    raw_service_id = request.args.get("service_id")
    service_id = None
    if raw_service_id is not None:
        if not raw_service_id.isdigit():
            return jsonify({"error": "invalid_payload", "message": "service_id must be an integer"}), 400
        service_id = int(raw_service_id)

    try:
        query = Review.query.options(joinedload(Review.user), joinedload(Review.service))
        if service_id is not None:
            query = query.filter(Review.service_id == service_id)
        reviews = query.order_by(Review.created_at.desc(), Review.review_id.desc()).all()
        return jsonify({"reviews": [review.to_dict() for review in reviews]}), 200
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to list reviews")


@bp_ext.post("/reviews")
@login_required()
def create_review() -> tuple[dict[str, object], int]:
    payload = request.get_json(silent=True) or {}
    try:
        service_id = parse_id(payload.get("service_id"), "service_id")
        order_id = parse_id(payload.get("order_id"), "order_id", required=False)
    except ValidationError as exc:
        return exc.to_response()

    rating = payload.get("rating")
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        return jsonify({"error": "invalid_payload", "message": "rating must be an integer from 1 to 5"}), 400

    user_id = g.current_user.user_id
    try:
        if db.session.get(Service, service_id) is None:
            return jsonify({"error": "not_found", "message": "Service not found"}), 404

        if order_id is not None:
            order = Order.query.filter_by(order_id=order_id, user_id=user_id).first()
            if order is None:
                return jsonify({"error": "not_found", "message": "Order not found"}), 404

        existing = Review.query.filter(
            Review.user_id == user_id,
            Review.service_id == service_id,
            Review.order_id.is_(None) if order_id is None else Review.order_id == order_id,
        ).first()
        if existing:
            return (
                jsonify({"error": "conflict", "message": "You have already reviewed this service"}),
                409,
            )

        review = Review(
            user_id=user_id,
            service_id=service_id,
            order_id=order_id,
            rating=rating,
            comment=sanitize_notes(payload.get("comment")) or None,
            verified=True,
        )
        db.session.add(review)
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to create review")

    return jsonify({"review": review.to_dict()}), 201


@bp_ext.post("/reviews/<int:review_id>/helpful")
@login_required()
def mark_review_helpful(review_id: int) -> tuple[dict[str, object], int]:
    """Increment a review's helpful counter.

    The increment runs as a single UPDATE in the database so concurrent votes
    are never lost. Repeat votes from the same user are all counted.
    """
    try:
        result = (
            Review.query.filter(Review.review_id == review_id)
            .update({Review.helpful: Review.helpful + 1}, synchronize_session=False)
        )
        if result == 0:
            db.session.rollback()
            return jsonify({"error": "not_found", "message": "Review not found"}), 404

        helpful = db.session.query(Review.helpful).filter(Review.review_id == review_id).scalar()
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to mark review as helpful")

    return jsonify({
        "success": True,
        "message": "Thanks for your feedback on this review",
        "helpful": helpful,
    }), 200


# SUPPORT TICKETS
# ============================================================================

@bp_ext.post("/support")
@login_required()
def create_ticket() -> tuple[dict[str, object], int]:
    payload = request.get_json(silent=True) or {}

    subject = sanitize_user_input(payload.get("subject"))
    message = sanitize_notes(payload.get("message"))
    priority = str(payload.get("priority") or "medium").strip().lower()

    if not subject:
        return jsonify({"error": "invalid_payload", "message": "subject is required"}), 400
    if len(message) < MIN_TICKET_MESSAGE:
        return (
            jsonify({
                "error": "invalid_payload",
                "message": f"message must be at least {MIN_TICKET_MESSAGE} characters",
            }),
            400,
        )
    if priority not in TICKET_PRIORITIES:
        return jsonify({"error": "invalid_payload", "message": "priority must be low, medium or high"}), 400

    try:
        ticket = SupportTicket(
            ticket_number=generate_reference("TKT", length=6),
            user_id=g.current_user.user_id,
            subject=subject,
            message=message,
            priority=priority,
            status="OPEN",
        )
        db.session.add(ticket)
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to create support ticket")

    current_app.logger.info("Support ticket %s opened", ticket.ticket_number)
    return jsonify({"ticket": ticket.to_dict()}), 201


@bp_ext.get("/support")
@login_required()
def list_my_tickets() -> tuple[dict[str, object], int]:
    try:
        tickets = (
            SupportTicket.query.filter_by(user_id=g.current_user.user_id)
            .order_by(SupportTicket.created_at.desc(), SupportTicket.ticket_id.desc())
            .all()
        )
        return jsonify({"tickets": [ticket.to_dict() for ticket in tickets]}), 200
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to list support tickets")
