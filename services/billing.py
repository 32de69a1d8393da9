"""
Billing workflow: compose a bill, take the stock, persist and re-read it.

The stock decrement, the header insert and the item inserts share one
database transaction. Any failure rolls all three back.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, time

from sqlalchemy import update
from sqlalchemy.orm import joinedload

from models import db, Bill, BillItem, Client, Product, from_local

logger = logging.getLogger(__name__)

DISCOUNT_PATTERN = re.compile(r"^\d*\.?\d{0,2}$")


class BillingError(Exception):
    """Raised for bill validation and submission errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class InsufficientStock(BillingError):
    def __init__(self, product, requested: int):
        super().__init__(
            f"Not enough stock for {product.name} (available {product.stock})",
            {
                "product_id": product.id,
                "product_name": product.name,
                "available": int(product.stock),
                "requested": requested,
            },
        )


def invoice_number(bill_id: int) -> str:
    return f"{bill_id:06d}"


def parse_quantity(value) -> int:
    if isinstance(value, bool):
        raise BillingError("Quantity must be a positive whole number")
    try:
        quantity = int(value)
    except (TypeError, ValueError):
        raise BillingError("Quantity must be a positive whole number")
    if quantity != value and str(quantity) != str(value).strip():
        raise BillingError("Quantity must be a positive whole number")
    if quantity <= 0:
        raise BillingError("Quantity must be a positive whole number")
    return quantity


def parse_amount(value, field="discount") -> float:
    """Parse a non-negative money amount with at most two decimals.

    Empty input means zero.
    """
    if value is None or value == "":
        return 0.0
    if isinstance(value, bool):
        raise BillingError(f"Invalid {field}")
    if isinstance(value, (int, float)):
        if value < 0 or round(value, 2) != value:
            raise BillingError(f"Invalid {field}")
        return float(value)

    text = str(value).strip()
    if text in ("", "."):
        return 0.0
    if not DISCOUNT_PATTERN.match(text):
        raise BillingError(f"Invalid {field}")
    return float(text)


# ---------------------------------------------------
# Bill Composer
# ---------------------------------------------------
@dataclass
class LineItem:
    item_id: int
    name: str
    quantity: int
    price_at_time: float

    @property
    def amount(self) -> float:
        return round(self.quantity * self.price_at_time, 2)


class BillComposer:
    """Collects the client and line items of one sales bill.

    Stock is checked against the product objects handed to ``add_item``;
    the store is re-checked by ``adjust_stock`` at submission.
    """

    track_stock = True
    select_message = "Please select a product"
    empty_message = "Please add at least one item"

    def __init__(self, client=None):
        self.client = client
        self.items: list[LineItem] = []
        self.discount = 0.0

    def add_item(self, item, quantity) -> LineItem:
        if item is None:
            raise BillingError(self.select_message)
        quantity = parse_quantity(quantity)

        if self.track_stock:
            on_bill = sum(i.quantity for i in self.items if i.item_id == item.id)
            if on_bill + quantity > int(item.stock):
                raise BillingError(
                    f"Only {item.stock} items available in stock",
                    {"product_id": item.id, "available": int(item.stock)},
                )

        line = LineItem(item.id, item.name, quantity, float(item.price))
        self.items.append(line)
        return line

    def remove_item(self, index: int) -> LineItem:
        try:
            return self.items.pop(index)
        except IndexError:
            raise BillingError(f"No line item at position {index}")

    def set_discount(self, value):
        self.discount = parse_amount(value, "discount")

    @property
    def subtotal(self) -> float:
        return round(sum(i.amount for i in self.items), 2)

    @property
    def payable(self) -> float:
        return round(self.subtotal - self.discount, 2)

    def validate(self):
        if self.client is None:
            raise BillingError("Please select a client")
        if not self.items:
            raise BillingError(self.empty_message)
        if self.discount > self.subtotal:
            raise BillingError(
                "Discount cannot exceed the bill total",
                {"subtotal": self.subtotal, "discount": self.discount},
            )


def get_client(client_id):
    if not client_id:
        return None
    client = db.session.get(Client, client_id)
    if client is None:
        raise BillingError(f"Client not found: {client_id}")
    return client


def compose_bill(data: dict) -> BillComposer:
    """Build a composer from a JSON payload, reading products from the store."""
    composer = BillComposer(get_client(data.get("client_id")))

    items = data.get("items") or []
    if not isinstance(items, list):
        raise BillingError("Invalid item format")
    for it in items:
        if not isinstance(it, dict):
            raise BillingError("Invalid item format")
        product_id = it.get("product_id")
        product = db.session.get(Product, product_id) if product_id else None
        if product_id and product is None:
            raise BillingError(f"Product not found: {product_id}")
        composer.add_item(product, it.get("quantity", 1))

    composer.set_discount(data.get("discount"))
    return composer


# ---------------------------------------------------
# Stock Adjuster
# ---------------------------------------------------
def adjust_stock(items):
    """Decrement each product's stock by its billed quantity, in list order.

    Each decrement is one conditional UPDATE against the stored stock, never
    a write-back of a value read earlier. Does not commit; the caller owns
    the transaction.
    """
    for item in items:
        result = db.session.execute(
            update(Product)
            .where(Product.id == item.item_id, Product.stock >= item.quantity)
            .values(stock=Product.stock - item.quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            continue

        product = db.session.get(Product, item.item_id, populate_existing=True)
        if product is None:
            raise BillingError(f"Product not found: {item.item_id}")

        logger.warning(
            "Stock rejected for product %s: available %s, requested %s",
            product.id, product.stock, item.quantity,
        )
        raise InsufficientStock(product, item.quantity)


# ---------------------------------------------------
# Bill Persister
# ---------------------------------------------------
def persist_bill(composer: BillComposer) -> Bill:
    bill = Bill(
        client_id=composer.client.id,
        total=composer.subtotal,
        discount=composer.discount,
    )
    db.session.add(bill)
    db.session.flush()  # get id

    for item in composer.items:
        db.session.add(BillItem(
            bill_id=bill.id,
            product_id=item.item_id,
            quantity=item.quantity,
            price_at_time=item.price_at_time,
        ))
    return bill


def load_bill(bill_id):
    return (
        Bill.query
        .options(
            joinedload(Bill.client),
            joinedload(Bill.items).joinedload(BillItem.product),
        )
        .filter_by(id=bill_id)
        .first()
    )


def bill_to_dict(bill: Bill) -> dict:
    return {
        "id": bill.id,
        "invoice_no": invoice_number(bill.id),
        "client_id": bill.client_id,
        "client": bill.client.to_dict() if bill.client else None,
        "total": float(bill.total),
        "discount": float(bill.discount or 0),
        "payable": bill.payable,
        "created_at": bill.created_at.isoformat(),
        "items": [
            {
                "id": it.id,
                "product_id": it.product_id,
                "quantity": it.quantity,
                "price_at_time": float(it.price_at_time),
                "amount": round(it.quantity * float(it.price_at_time), 2),
                "product": {
                    "id": it.product.id,
                    "name": it.product.name,
                    "price": float(it.product.price),
                } if it.product else None,
            }
            for it in bill.items
        ],
    }


def submit_bill(composer: BillComposer) -> dict:
    """Validate, take stock, write the bill and return its joined record."""
    composer.validate()

    try:
        adjust_stock(composer.items)
        bill = persist_bill(composer)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        "Bill %s created for client %s: total=%.2f discount=%.2f",
        bill.id, composer.client.id, composer.subtotal, composer.discount,
    )
    return bill_to_dict(load_bill(bill.id))


# ---------------------------------------------------
# Bill history
# ---------------------------------------------------
def day_range(day, tz=None):
    """Inclusive bounds of a calendar day in ``tz``, in stored UTC."""
    start = datetime.combine(day, time.min)
    end = datetime.combine(day, time.max)
    return from_local(start, tz), from_local(end, tz)


def search_bills(model, q="", on_date=None, tz=None):
    """Filter bill headers by client name / invoice number and day."""
    query = model.query.join(Client).options(joinedload(model.client))

    q = (q or "").strip()
    if q:
        q_like = f"%{q}%"
        if q.isdigit():
            query = query.filter((model.id == int(q)) | Client.name.ilike(q_like))
        else:
            query = query.filter(Client.name.ilike(q_like))

    if on_date is not None:
        start, end = day_range(on_date, tz)
        query = query.filter(model.created_at >= start, model.created_at <= end)

    return query.order_by(model.created_at.desc(), model.id.desc()).all()
