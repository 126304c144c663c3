"""HTTP routes for the SmoothFlow backend."""
from __future__ import annotations

import random
import string
from datetime import datetime, timezone
from pathlib import Path

from flask import Blueprint, Flask, current_app, g, jsonify, request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload
from werkzeug.security import check_password_hash, generate_password_hash

from .auth import build_token, login_required
from .errors import NotFound, ValidationError, database_error
from .extensions import db
from .models import (BANK_TRANSFER, AuthAccount, Cart, CartItem, Order,
                     OrderItem, Payment, Service, ServiceOption, User)
from .validation import (parse_datetime, parse_id, parse_quantity,
                         sanitize_notes, sanitize_user_input, validate_upload)

bp = Blueprint("api", __name__)

RECEIPT_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "application/pdf": "pdf",
}


def generate_reference(prefix: str, length: int = 9) -> str:
    """Build a human-readable reference such as ``ORD-1700000000000-AB12CD34E``."""
    millis = int(datetime.now(timezone.utc).timestamp() * 1000)
    suffix = "".join(random.choices(string.ascii_uppercase + string.digits, k=length))
    return f"{prefix}-{millis}-{suffix}"


@bp.get("/health")
def health_check() -> tuple[dict[str, str], int]:
    """
    Expose a simple uptime check endpoint.
    ---
    tags:
      - Health
    responses:
      200:
        description: Service is healthy and running.
    """
    return jsonify({"status": "ok"}), 200


@bp.get("/db-health")
def database_health() -> tuple[dict[str, str], int]:
    """Check connectivity to the configured database.
    ---
    tags:
      - Health
    responses:
      200:
        description: Database connection is ok.
      500:
        description: Database connection failed.
    """
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Database connectivity check failed", exc_info=exc)
        return jsonify({"database": "unavailable"}), 500

    return jsonify({"database": "ok"}), 200


@bp.get("/debug")
def debug_info() -> tuple[dict[str, object], int]:
    """Report configuration presence and database connectivity.

    Only served in debug mode or when DEBUG_ALLOW is set. Unlike every other
    endpoint it reports the raw database error message.
    """
    if not (current_app.debug or current_app.config.get("DEBUG_ALLOW")):
        return jsonify({"error": "not_found", "message": "Not Found"}), 404

    if current_app.testing:
        environment = "testing"
    elif current_app.debug:
        environment = "development"
    else:
        environment = "production"

    info: dict[str, object] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": environment,
        "database": {
            "url": "***" if current_app.config.get("SQLALCHEMY_DATABASE_URI") else "Not set",
            "connection": "testing",
        },
        "secret_key": "***" if current_app.config.get("SECRET_KEY") else "Not set",
    }

    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Debug database check failed", exc_info=exc)
        info["database"]["connection"] = "error"
        info["error"] = "debug_failed"
        info["message"] = str(exc.orig if getattr(exc, "orig", None) else exc)
        return jsonify(info), 500

    info["database"]["connection"] = "connected"
    return jsonify(info), 200


# --- Authentication ---

@bp.post("/auth/register")
def register_user() -> tuple[dict[str, object], int]:
    """Register a new customer account.
    ---
    tags:
      - Authentication
    responses:
      201:
        description: User registered, returns access token
      400:
        description: Invalid payload
      409:
        description: Email already in use
      500:
        description: Server error
    """
    payload = request.get_json(silent=True) or {}

    name = sanitize_user_input(payload.get("name"))
    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""
    phone = sanitize_user_input(payload.get("phone")) or None

    if not name or not email or not password:
        return (
            jsonify({"error": "invalid_payload", "message": "name, email, and password are required"}),
            400,
        )

    if "@" not in email:
        return jsonify({"error": "invalid_payload", "message": "email is invalid"}), 400

    if len(password) < 8:
        return (
            jsonify({"error": "invalid_payload", "message": "password must be at least 8 characters"}),
            400,
        )

    if User.query.filter_by(email=email).first():
        return jsonify({"error": "conflict", "message": "email address is already in use"}), 409

    try:
        # Public registration always creates customers.
        new_user = User(name=name, email=email, phone=phone)
        db.session.add(new_user)
        db.session.flush()

        db.session.add(AuthAccount(user_id=new_user.user_id, password_hash=generate_password_hash(password)))
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to register new user")

    return jsonify({"token": build_token(new_user), "user": new_user.to_dict_basic()}), 201


@bp.post("/auth/login")
def login() -> tuple[dict[str, object], int]:
    """Authenticate a user by email/password and return an access token.
    ---
    tags:
      - Authentication
    responses:
      200:
        description: Login successful, returns access token
      400:
        description: Missing email or password
      401:
        description: Invalid credentials
    """
    payload = request.get_json(silent=True) or {}

    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""

    if not email or not password:
        return (
            jsonify({"error": "invalid_payload", "message": "email and password are required"}),
            400,
        )

    record = (
        db.session.query(User, AuthAccount)
        .join(AuthAccount, AuthAccount.user_id == User.user_id)
        .filter(User.email == email)
        .first()
    )

    if not record:
        return jsonify({"error": "unauthorized", "message": "invalid email or password"}), 401

    user, auth_account = record

    if not check_password_hash(auth_account.password_hash, password):
        return jsonify({"error": "unauthorized", "message": "invalid email or password"}), 401

    auth_account.last_login_at = datetime.now(timezone.utc)

    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to update last login timestamp")

    return jsonify({"token": build_token(user), "user": user.to_dict_basic()}), 200


# --- Orders ---

def _order_detail_query():
    return Order.query.options(
        selectinload(Order.items).joinedload(OrderItem.service),
        selectinload(Order.items).joinedload(OrderItem.option),
        selectinload(Order.payments),
    )


def _price_order_items(raw_items: object) -> list[OrderItem]:
    """Turn the requested lines into priced ``OrderItem`` rows.

    Unit price is the service base price plus the option price, read from the
    catalog; prices sent by the client are ignored.
    """
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("items must contain at least one service")

    order_items = []
    for raw in raw_items:
        if not isinstance(raw, dict):
            raise ValidationError("each item must be an object")
        service_id = parse_id(raw.get("service_id"), "service_id")
        option_id = parse_id(raw.get("option_id"), "option_id", required=False)
        quantity = parse_quantity(raw.get("quantity", 1))

        service = db.session.get(Service, service_id)
        if service is None:
            raise NotFound(f"Service {service_id} not found")
        if not service.is_orderable(quantity):
            raise ValidationError(f"Service {service.title} is not available")

        unit_price = service.base_price_cents
        option = None
        if option_id is not None:
            option = db.session.get(ServiceOption, option_id)
            if option is None or option.service_id != service.service_id:
                raise NotFound(f"Option {option_id} not found for service {service_id}")
            if not option.active:
                raise ValidationError(f"Option {option.title} is not available")
            unit_price += option.price_cents

        order_items.append(
            OrderItem(
                service=service,
                option=option,
                quantity=quantity,
                unit_price_cents=unit_price,
                total_price_cents=unit_price * quantity,
                notes=sanitize_notes(raw.get("notes")) or None,
            )
        )
    return order_items


@bp.get("/orders")
@login_required()
def list_orders() -> tuple[dict[str, object], int]:
    """List the caller's orders, newest first."""
    try:
        orders = (
            _order_detail_query()
            .filter(Order.user_id == g.current_user.user_id)
            .order_by(Order.created_at.desc(), Order.order_id.desc())
            .all()
        )
        return jsonify({"orders": [order.to_detail_dict() for order in orders]}), 200
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to list orders")


@bp.post("/orders")
@login_required()
def create_order() -> tuple[dict[str, object], int]:
    """Check out: create an order from the requested items and empty the cart.
    ---
    tags:
      - Orders
    responses:
      201:
        description: Order created
      400:
        description: Invalid items or unavailable service
      401:
        description: Not logged in
      404:
        description: Unknown service or option
    """
    payload = request.get_json(silent=True) or {}
    user = g.current_user

    try:
        scheduled_date = parse_datetime(payload.get("scheduled_date"), "scheduled_date")
        order_items = _price_order_items(payload.get("items"))
    except (ValidationError, NotFound) as exc:
        return exc.to_response()
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to price order items")

    try:
        order = Order(
            order_number=generate_reference("ORD"),
            user_id=user.user_id,
            total_amount_cents=sum(item.total_price_cents for item in order_items),
            notes=sanitize_notes(payload.get("notes")) or None,
            scheduled_date=scheduled_date,
            items=order_items,
        )
        db.session.add(order)

        cart = Cart.query.filter_by(user_id=user.user_id).first()
        if cart is not None:
            CartItem.query.filter_by(cart_id=cart.cart_id).delete(synchronize_session=False)

        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to create order")

    current_app.logger.info("Order %s created by user %s", order.order_number, user.user_id)
    return jsonify({"order": order.to_detail_dict()}), 201


@bp.get("/orders/<int:order_id>")
@login_required()
def get_order(order_id: int) -> tuple[dict[str, object], int]:
    """Get one of the caller's orders with items, services, options and payments.

    Orders belonging to someone else are reported exactly like missing ones.
    """
    try:
        order = (
            _order_detail_query()
            .filter(Order.order_id == order_id, Order.user_id == g.current_user.user_id)
            .first()
        )
        if order is None:
            return jsonify({"error": "not_found", "message": "Order not found"}), 404

        return jsonify({"order": order.to_detail_dict()}), 200
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to fetch order")


@bp.post("/orders/<int:order_id>/bank-transfer")
@login_required()
def submit_bank_transfer(order_id: int) -> tuple[dict[str, object], int]:
    """Attach a bank-transfer receipt to an order and queue it for admin approval."""
    payload = request.get_json(silent=True) or {}
    receipt_path = (payload.get("receipt_path") or "").strip()
    if not receipt_path:
        return jsonify({"error": "invalid_payload", "message": "receipt_path is required"}), 400

    try:
        order = Order.query.filter_by(order_id=order_id, user_id=g.current_user.user_id).first()
        if order is None:
            return jsonify({"error": "not_found", "message": "Order not found"}), 404

        if order.bank_transfer_status == "APPROVED":
            return (
                jsonify({"error": "conflict", "message": "Bank transfer already approved"}),
                409,
            )

        order.payment_method = BANK_TRANSFER
        order.bank_transfer_receipt = receipt_path[:500]
        order.bank_transfer_status = "PENDING_ADMIN_APPROVAL"
        order.status = "PENDING_ADMIN_APPROVAL"
        order.payment_status = "PENDING"

        pending = Payment.query.filter_by(order_id=order.order_id, status="PENDING").first()
        if pending is None:
            db.session.add(
                Payment(
                    order_id=order.order_id,
                    amount_cents=order.total_amount_cents,
                    method=BANK_TRANSFER,
                    status="PENDING",
                )
            )

        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to submit bank transfer")

    return jsonify({
        "success": True,
        "order": order.to_dict(),
        "message": "Transfer receipt submitted. An administrator will review it shortly.",
    }), 200


@bp.post("/upload/receipt")
@login_required()
def upload_receipt() -> tuple[dict[str, object], int]:
    """Store a bank-transfer receipt (JPEG, PNG or PDF) for one of the caller's orders.

    The returned ``file_path`` is relative to UPLOAD_FOLDER.
    """
    file = request.files.get("file")
    if file is None or not file.filename:
        return jsonify({"error": "invalid_payload", "message": "file is required"}), 400

    raw_order_id = (request.form.get("order_id") or "").strip()
    if not raw_order_id:
        return jsonify({"error": "invalid_payload", "message": "order_id is required"}), 400
    if not raw_order_id.isdigit():
        return jsonify({"error": "invalid_payload", "message": "order_id must be an integer"}), 400

    content = file.read()
    problem = validate_upload(file.mimetype, len(content), current_app.config["MAX_UPLOAD_BYTES"])
    if problem:
        return jsonify({"error": "invalid_payload", "message": problem}), 400

    order = Order.query.filter_by(order_id=int(raw_order_id), user_id=g.current_user.user_id).first()
    if order is None:
        return jsonify({"error": "not_found", "message": "Order not found"}), 404

    millis = int(datetime.now(timezone.utc).timestamp() * 1000)
    file_name = f"receipt_{order.order_id}_{millis}.{RECEIPT_EXTENSIONS[file.mimetype.lower()]}"
    upload_dir = Path(current_app.config["UPLOAD_FOLDER"]) / "receipts"

    try:
        upload_dir.mkdir(parents=True, exist_ok=True)
        (upload_dir / file_name).write_bytes(content)
    except OSError as exc:
        current_app.logger.exception("Failed to store receipt upload", exc_info=exc)
        return jsonify({"error": "internal_error", "message": "Could not store the file"}), 500

    return jsonify({
        "success": True,
        "file_path": f"receipts/{file_name}",
        "file_name": file_name,
    }), 200


def register_routes(app: Flask) -> None:
    from .routes_admin import bp_admin
    from .routes_extended import bp_ext

    app.register_blueprint(bp)
    app.register_blueprint(bp_ext)
    app.register_blueprint(bp_admin, url_prefix="/admin")
