"""Database models for the SmoothFlow backend."""
from __future__ import annotations

from datetime import datetime, timezone

from .extensions import db


def utc_now() -> datetime:
    """Return a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _amount(cents: int | None) -> float | None:
    return cents / 100.0 if cents is not None else None


ROLE_CUSTOMER = "CUSTOMER"
ROLE_ADMIN = "ADMIN"

ORDER_STATUSES = (
    "PENDING",
    "PENDING_ADMIN_APPROVAL",
    "CONFIRMED",
    "IN_PROGRESS",
    "COMPLETED",
    "CANCELLED",
)
PAYMENT_STATUSES = ("PENDING", "PAID", "FAILED", "REFUNDED")
BANK_TRANSFER_STATUSES = ("PENDING", "PENDING_ADMIN_APPROVAL", "APPROVED", "REJECTED")
BANK_TRANSFER = "bank_transfer"

TICKET_STATUSES = ("OPEN", "IN_PROGRESS", "CLOSED")
TICKET_PRIORITIES = ("low", "medium", "high")


class User(db.Model):
    __tablename__ = "users"

    user_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    phone = db.Column(db.String(30))
    role = db.Column(
        db.Enum(
            ROLE_CUSTOMER,
            ROLE_ADMIN,
            name="user_role",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        default=ROLE_CUSTOMER,
        server_default=ROLE_CUSTOMER,
    )
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    auth_account = db.relationship("AuthAccount", back_populates="user", uselist=False)
    orders = db.relationship("Order", back_populates="user", foreign_keys="Order.user_id", lazy="dynamic")
    cart = db.relationship("Cart", back_populates="user", uselist=False)

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def to_dict_basic(self) -> dict[str, object]:
        return {
            "id": self.user_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "role": self.role,
        }

    def to_contact_dict(self) -> dict[str, object]:
        return {"name": self.name, "email": self.email, "phone": self.phone}


class AuthAccount(db.Model):
    __tablename__ = "auth_accounts"

    user_id = db.Column(db.Integer, db.ForeignKey("users.user_id", ondelete="CASCADE"), primary_key=True)
    password_hash = db.Column(db.String(255), nullable=False)
    last_login_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    user = db.relationship("User", back_populates="auth_account")


class Service(db.Model):
    """Catalog entry for a PC service."""

    __tablename__ = "services"

    service_id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    base_price_cents = db.Column(db.Integer, nullable=False)
    category = db.Column(db.String(100), nullable=False)
    active = db.Column(db.Boolean, nullable=False, default=True)
    available = db.Column(db.Boolean, nullable=False, default=True)
    popular = db.Column(db.Boolean, nullable=False, default=False)
    stock = db.Column(db.Integer)  # None means not tracked
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    options = db.relationship(
        "ServiceOption",
        back_populates="service",
        order_by="ServiceOption.option_id",
        cascade="all, delete-orphan",
    )

    def is_orderable(self, quantity: int = 1) -> bool:
        if not (self.active and self.available):
            return False
        return self.stock is None or self.stock >= quantity

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.service_id,
            "title": self.title,
            "description": self.description,
            "base_price_cents": self.base_price_cents,
            "base_price": _amount(self.base_price_cents),
            "category": self.category,
            "active": bool(self.active),
            "available": bool(self.available),
            "popular": bool(self.popular),
            "stock": self.stock,
        }


class ServiceOption(db.Model):
    """Add-on for a service; its price is added to the service base price."""

    __tablename__ = "service_options"

    option_id = db.Column(db.Integer, primary_key=True)
    service_id = db.Column(
        db.Integer, db.ForeignKey("services.service_id", ondelete="CASCADE"), nullable=False
    )
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    active = db.Column(db.Boolean, nullable=False, default=True)

    service = db.relationship("Service", back_populates="options")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.option_id,
            "service_id": self.service_id,
            "title": self.title,
            "description": self.description,
            "price_cents": self.price_cents,
            "price": _amount(self.price_cents),
            "active": bool(self.active),
        }


class Order(db.Model):
    __tablename__ = "orders"

    order_id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(40), unique=True, nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False, index=True)
    status = db.Column(
        db.Enum(*ORDER_STATUSES, name="order_status", native_enum=False, validate_strings=True),
        nullable=False,
        default="PENDING",
        server_default="PENDING",
    )
    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    payment_method = db.Column(db.String(30), index=True)
    payment_status = db.Column(
        db.Enum(*PAYMENT_STATUSES, name="payment_status", native_enum=False, validate_strings=True),
        nullable=False,
        default="PENDING",
        server_default="PENDING",
    )
    bank_transfer_status = db.Column(
        db.Enum(
            *BANK_TRANSFER_STATUSES,
            name="bank_transfer_status",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        default="PENDING",
        server_default="PENDING",
    )
    bank_transfer_receipt = db.Column(db.String(500))
    admin_notes = db.Column(db.Text)
    admin_approved_by = db.Column(db.Integer, db.ForeignKey("users.user_id"))
    admin_approved_at = db.Column(db.DateTime)
    notes = db.Column(db.Text)
    scheduled_date = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    user = db.relationship("User", back_populates="orders", foreign_keys=[user_id])
    items = db.relationship(
        "OrderItem",
        back_populates="order",
        order_by="OrderItem.order_item_id",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    # Left to the database: payments must be removed explicitly before the order.
    payments = db.relationship(
        "Payment", back_populates="order", order_by="Payment.payment_id", passive_deletes="all"
    )

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.order_id,
            "order_number": self.order_number,
            "user_id": self.user_id,
            "status": self.status,
            "total_amount_cents": self.total_amount_cents,
            "total_amount": _amount(self.total_amount_cents),
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "bank_transfer_status": self.bank_transfer_status,
            "bank_transfer_receipt": self.bank_transfer_receipt,
            "admin_notes": self.admin_notes,
            "admin_approved_by": self.admin_approved_by,
            "admin_approved_at": _iso(self.admin_approved_at),
            "notes": self.notes,
            "scheduled_date": _iso(self.scheduled_date),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def to_detail_dict(self) -> dict[str, object]:
        data = self.to_dict()
        data["items"] = [item.to_dict() for item in self.items]
        data["payments"] = [payment.to_dict() for payment in self.payments]
        return data


class OrderItem(db.Model):
    """Line of an order; prices are captured at order time."""

    __tablename__ = "order_items"

    order_item_id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(
        db.Integer, db.ForeignKey("orders.order_id", ondelete="CASCADE"), nullable=False, index=True
    )
    service_id = db.Column(db.Integer, db.ForeignKey("services.service_id"), nullable=False)
    option_id = db.Column(db.Integer, db.ForeignKey("service_options.option_id"))
    quantity = db.Column(db.Integer, nullable=False, default=1)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    total_price_cents = db.Column(db.Integer, nullable=False)
    notes = db.Column(db.Text)

    order = db.relationship("Order", back_populates="items")
    service = db.relationship("Service")
    option = db.relationship("ServiceOption")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.order_item_id,
            "service_id": self.service_id,
            "option_id": self.option_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "unit_price": _amount(self.unit_price_cents),
            "total_price_cents": self.total_price_cents,
            "total_price": _amount(self.total_price_cents),
            "notes": self.notes,
            "service": self.service.to_dict() if self.service else None,
            "option": self.option.to_dict() if self.option else None,
        }

    def to_summary_dict(self) -> dict[str, object]:
        return {
            "id": self.order_item_id,
            "quantity": self.quantity,
            "total_price_cents": self.total_price_cents,
            "service": {"title": self.service.title} if self.service else None,
            "option": {"title": self.option.title} if self.option else None,
        }


class Payment(db.Model):
    __tablename__ = "payments"

    payment_id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.order_id"), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    method = db.Column(db.String(30), nullable=False)
    status = db.Column(
        db.Enum(
            "PENDING",
            "COMPLETED",
            "FAILED",
            name="payment_record_status",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        default="PENDING",
        server_default="PENDING",
    )
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    order = db.relationship("Order", back_populates="payments")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.payment_id,
            "order_id": self.order_id,
            "amount_cents": self.amount_cents,
            "amount": _amount(self.amount_cents),
            "method": self.method,
            "status": self.status,
            "created_at": _iso(self.created_at),
        }


class Cart(db.Model):
    __tablename__ = "carts"

    cart_id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), unique=True, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    user = db.relationship("User", back_populates="cart")
    items = db.relationship(
        "CartItem",
        back_populates="cart",
        order_by="CartItem.cart_item_id",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.cart_id,
            "user_id": self.user_id,
            "items": [item.to_dict() for item in self.items],
        }


class CartItem(db.Model):
    __tablename__ = "cart_items"

    cart_item_id = db.Column(db.Integer, primary_key=True)
    cart_id = db.Column(db.Integer, db.ForeignKey("carts.cart_id", ondelete="CASCADE"), nullable=False)
    service_id = db.Column(db.Integer, db.ForeignKey("services.service_id"), nullable=False)
    option_id = db.Column(db.Integer, db.ForeignKey("service_options.option_id"))
    quantity = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    cart = db.relationship("Cart", back_populates="items")
    service = db.relationship("Service")
    option = db.relationship("ServiceOption")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.cart_item_id,
            "service_id": self.service_id,
            "option_id": self.option_id,
            "quantity": self.quantity,
            "service": {
                "id": self.service.service_id,
                "title": self.service.title,
                "base_price_cents": self.service.base_price_cents,
            }
            if self.service
            else None,
            "option": {
                "id": self.option.option_id,
                "title": self.option.title,
                "price_cents": self.option.price_cents,
            }
            if self.option
            else None,
        }


class Review(db.Model):
    __tablename__ = "reviews"

    review_id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False)
    service_id = db.Column(db.Integer, db.ForeignKey("services.service_id"), nullable=False, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.order_id", ondelete="SET NULL"))
    rating = db.Column(db.Integer, nullable=False)
    comment = db.Column(db.Text)
    helpful = db.Column(db.Integer, nullable=False, default=0, server_default="0")
    verified = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    user = db.relationship("User")
    service = db.relationship("Service")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.review_id,
            "service_id": self.service_id,
            "order_id": self.order_id,
            "rating": self.rating,
            "comment": self.comment,
            "helpful": self.helpful,
            "verified": bool(self.verified),
            "created_at": _iso(self.created_at),
            "user": {"id": self.user.user_id, "name": self.user.name} if self.user else None,
            "service": {"id": self.service.service_id, "title": self.service.title}
            if self.service
            else None,
        }


class SupportTicket(db.Model):
    __tablename__ = "support_tickets"

    ticket_id = db.Column(db.Integer, primary_key=True)
    ticket_number = db.Column(db.String(40), unique=True, nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False, index=True)
    subject = db.Column(db.String(200), nullable=False)
    message = db.Column(db.Text, nullable=False)
    priority = db.Column(
        db.Enum(*TICKET_PRIORITIES, name="ticket_priority", native_enum=False, validate_strings=True),
        nullable=False,
        default="medium",
        server_default="medium",
    )
    status = db.Column(
        db.Enum(*TICKET_STATUSES, name="ticket_status", native_enum=False, validate_strings=True),
        nullable=False,
        default="OPEN",
        server_default="OPEN",
    )
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    user = db.relationship("User")
    replies = db.relationship(
        "SupportReply",
        back_populates="ticket",
        order_by="[SupportReply.created_at.asc(), SupportReply.reply_id.asc()]",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.ticket_id,
            "ticket_number": self.ticket_number,
            "user_id": self.user_id,
            "subject": self.subject,
            "message": self.message,
            "priority": self.priority,
            "status": self.status,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def to_detail_dict(self) -> dict[str, object]:
        data = self.to_dict()
        data["user"] = {"name": self.user.name, "email": self.user.email} if self.user else None
        data["replies"] = [reply.to_dict() for reply in self.replies]
        return data


class SupportReply(db.Model):
    __tablename__ = "support_replies"

    reply_id = db.Column(db.Integer, primary_key=True)
    ticket_id = db.Column(
        db.Integer, db.ForeignKey("support_tickets.ticket_id", ondelete="CASCADE"), nullable=False
    )
    message = db.Column(db.Text, nullable=False)
    is_admin = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    ticket = db.relationship("SupportTicket", back_populates="replies")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.reply_id,
            "ticket_id": self.ticket_id,
            "message": self.message,
            "is_admin": bool(self.is_admin),
            "created_at": _iso(self.created_at),
        }
