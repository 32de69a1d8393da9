from flask_sqlalchemy import SQLAlchemy
from flask_login import UserMixin
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

db = SQLAlchemy()


def utcnow():
    """Server-side 'now' in UTC (naive)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_local(value, tz=None):
    """Stored naive-UTC datetime -> naive wall-clock time in ``tz``."""
    if value is None or tz is None:
        return value
    return value.replace(tzinfo=timezone.utc).astimezone(ZoneInfo(tz)).replace(tzinfo=None)


def from_local(value, tz=None):
    """Naive wall-clock time in ``tz`` -> naive UTC, as stored."""
    if value is None or tz is None:
        return value
    return value.replace(tzinfo=ZoneInfo(tz)).astimezone(timezone.utc).replace(tzinfo=None)


def _iso(value):
    return value.isoformat() if value else None


# ==========================
# User Model
# ==========================
class User(db.Model, UserMixin):
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(50), unique=True, nullable=False)
    password = db.Column(db.String(200), nullable=False)  # werkzeug hash

    # single active session, token kept as a sha256 hash
    session_token = db.Column(db.String(64), unique=True, index=True)
    session_expires = db.Column(db.DateTime)
    last_activity = db.Column(db.DateTime)

    def __repr__(self):
        return f"<User {self.username}>"


# ==========================
# Product Model
# ==========================
class Product(db.Model):
    __table_args__ = (
        db.CheckConstraint("stock >= 0", name="ck_product_stock_non_negative"),
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    price = db.Column(db.Float, nullable=False, default=0.0)
    stock = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "price": float(self.price),
            "stock": int(self.stock),
            "created_at": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<Product {self.name}>"


# ==========================
# Client Model
# ==========================
class Client(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    phone = db.Column(db.String(30), default="")
    address = db.Column(db.String(255), default="")
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone or "",
            "address": self.address or "",
            "created_at": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<Client {self.name}>"


# ==========================
# Bill Model
# ==========================
class Bill(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(db.Integer, db.ForeignKey("client.id"), nullable=False)
    total = db.Column(db.Float, nullable=False, default=0.0)  # before discount
    discount = db.Column(db.Float, nullable=False, default=0.0)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)

    client = db.relationship("Client", backref=db.backref("bills", lazy=True))

    @property
    def payable(self):
        return round(float(self.total) - float(self.discount or 0), 2)

    def __repr__(self):
        return f"<Bill {self.id}>"


# ==========================
# Bill Item Model
# ==========================
class BillItem(db.Model):
    id = db.Column(db.Integer, primary_key=True)

    bill_id = db.Column(
        db.Integer,
        db.ForeignKey("bill.id"),
        nullable=False
    )

    product_id = db.Column(
        db.Integer,
        db.ForeignKey("product.id"),
        nullable=False
    )

    quantity = db.Column(db.Integer, nullable=False)
    price_at_time = db.Column(db.Float, nullable=False)

    product = db.relationship("Product")
    bill = db.relationship(
        "Bill",
        backref=db.backref("items", lazy=True, order_by="BillItem.id")
    )

    def __repr__(self):
        return f"<BillItem bill={self.bill_id} product={self.product_id}>"


# ==========================
# Service Models
# ==========================
class Service(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    price = db.Column(db.Float, nullable=False, default=0.0)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "price": float(self.price),
            "created_at": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<Service {self.name}>"


class ServiceBill(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(db.Integer, db.ForeignKey("client.id"), nullable=False)
    total = db.Column(db.Float, nullable=False, default=0.0)
    discount = db.Column(db.Float, nullable=False, default=0.0)
    transport = db.Column(db.Float, nullable=False, default=0.0)
    advance = db.Column(db.Float, nullable=False, default=0.0)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)

    client = db.relationship("Client", backref=db.backref("service_bills", lazy=True))

    @property
    def payable(self):
        return round(float(self.total) - float(self.discount or 0), 2)

    def __repr__(self):
        return f"<ServiceBill {self.id}>"


class ServiceItem(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    service_bill_id = db.Column(
        db.Integer,
        db.ForeignKey("service_bill.id"),
        nullable=False
    )
    service_id = db.Column(
        db.Integer,
        db.ForeignKey("service.id"),
        nullable=False
    )
    quantity = db.Column(db.Integer, nullable=False)
    price_at_time = db.Column(db.Float, nullable=False)

    service = db.relationship("Service")
    service_bill = db.relationship(
        "ServiceBill",
        backref=db.backref(
            "items",
            lazy=True,
            order_by="ServiceItem.id",
            cascade="all, delete-orphan",
        )
    )

    def __repr__(self):
        return f"<ServiceItem bill={self.service_bill_id} service={self.service_id}>"


# ==========================
# Payment Models
# ==========================
STATUS_UNPAID = "Unpaid"
STATUS_PARTIAL = "Partially Paid"
STATUS_PAID = "Paid"


def payment_status(total, paid):
    if paid >= total:
        return STATUS_PAID
    if paid > 0:
        return STATUS_PARTIAL
    return STATUS_UNPAID


class Payment(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(db.Integer, db.ForeignKey("client.id"), nullable=False)
    bill_id = db.Column(db.Integer, db.ForeignKey("bill.id"), nullable=True)  # None = advance
    total = db.Column(db.Float, nullable=False, default=0.0)
    paid = db.Column(db.Float, nullable=False, default=0.0)
    comment = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    client = db.relationship("Client", backref=db.backref("payments", lazy=True))
    bill = db.relationship("Bill", backref=db.backref("payments", lazy=True, order_by="Payment.id"))

    @property
    def due(self):
        return round(float(self.total) - float(self.paid), 2)

    @property
    def status(self):
        return payment_status(float(self.total), float(self.paid))

    def to_dict(self):
        return {
            "id": self.id,
            "client_id": self.client_id,
            "bill_id": self.bill_id,
            "total": float(self.total),
            "paid": float(self.paid),
            "due": self.due,
            "status": self.status,
            "comment": self.comment,
            "created_at": _iso(self.created_at),
            "client": (
                {"id": self.client.id, "name": self.client.name, "phone": self.client.phone}
                if self.client else None
            ),
        }

    def __repr__(self):
        return f"<Payment {self.id} {self.status}>"


class PaymentHistory(db.Model):
    """Append-only audit trail of payment changes."""

    __tablename__ = "payments_history"

    id = db.Column(db.Integer, primary_key=True)
    payment_id = db.Column(db.Integer, nullable=False, index=True)  # survives deletes
    bill_id = db.Column(db.Integer)
    client_id = db.Column(db.Integer)
    total = db.Column(db.Float)
    paid = db.Column(db.Float)
    comment = db.Column(db.Text)
    action = db.Column(db.String(10), nullable=False)  # INSERT / UPDATE / DELETE
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "payment_id": self.payment_id,
            "bill_id": self.bill_id,
            "client_id": self.client_id,
            "total": self.total,
            "paid": self.paid,
            "comment": self.comment,
            "action": self.action,
            "created_at": _iso(self.created_at),
        }
