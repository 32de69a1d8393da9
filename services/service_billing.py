import logging

from sqlalchemy.orm import joinedload

from models import db, Service, ServiceBill, ServiceItem
from services.billing import (
    BillComposer,
    BillingError,
    get_client,
    invoice_number,
    parse_amount,
)

logger = logging.getLogger(__name__)


class ServiceBillComposer(BillComposer):
    """Labour/repair bill: no stock, plus transport charge and advance."""

    track_stock = False
    select_message = "Please select a service"
    empty_message = "Please add at least one service"

    def __init__(self, client=None):
        super().__init__(client)
        self.transport = 0.0
        self.advance = 0.0

    def set_transport(self, value):
        self.transport = parse_amount(value, "transport charge")

    def set_advance(self, value):
        self.advance = parse_amount(value, "advance")


def compose_service_bill(data: dict, client=None) -> ServiceBillComposer:
    composer = ServiceBillComposer(client or get_client(data.get("client_id")))

    items = data.get("items") or []
    if not isinstance(items, list):
        raise BillingError("Invalid item format")
    for it in items:
        if not isinstance(it, dict):
            raise BillingError("Invalid item format")
        service_id = it.get("service_id")
        service = db.session.get(Service, service_id) if service_id else None
        if service_id and service is None:
            raise BillingError(f"Service not found: {service_id}")
        composer.add_item(service, it.get("quantity", 1))

    composer.set_discount(data.get("discount"))
    composer.set_transport(data.get("transport"))
    composer.set_advance(data.get("advance"))
    return composer


def _add_items(bill, composer):
    for item in composer.items:
        db.session.add(ServiceItem(
            service_bill_id=bill.id,
            service_id=item.item_id,
            quantity=item.quantity,
            price_at_time=item.price_at_time,
        ))


def load_service_bill(bill_id):
    return (
        ServiceBill.query
        .options(
            joinedload(ServiceBill.client),
            joinedload(ServiceBill.items).joinedload(ServiceItem.service),
        )
        .filter_by(id=bill_id)
        .first()
    )


def service_bill_to_dict(bill: ServiceBill) -> dict:
    return {
        "id": bill.id,
        "invoice_no": invoice_number(bill.id),
        "client_id": bill.client_id,
        "client": bill.client.to_dict() if bill.client else None,
        "total": float(bill.total),
        "discount": float(bill.discount or 0),
        "transport": float(bill.transport or 0),
        "advance": float(bill.advance or 0),
        "payable": bill.payable,
        "created_at": bill.created_at.isoformat(),
        "items": [
            {
                "id": it.id,
                "service_id": it.service_id,
                "quantity": it.quantity,
                "price_at_time": float(it.price_at_time),
                "amount": round(it.quantity * float(it.price_at_time), 2),
                "service": {
                    "id": it.service.id,
                    "name": it.service.name,
                    "price": float(it.service.price),
                } if it.service else None,
            }
            for it in bill.items
        ],
    }


def submit_service_bill(composer: ServiceBillComposer) -> dict:
    composer.validate()

    try:
        bill = ServiceBill(
            client_id=composer.client.id,
            total=composer.subtotal,
            discount=composer.discount,
            transport=composer.transport,
            advance=composer.advance,
        )
        db.session.add(bill)
        db.session.flush()
        _add_items(bill, composer)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info("Service bill %s created for client %s", bill.id, composer.client.id)
    return service_bill_to_dict(load_service_bill(bill.id))


def update_service_bill(bill: ServiceBill, composer: ServiceBillComposer) -> dict:
    """Replace the totals and the item set of an existing service bill."""
    composer.validate()

    try:
        bill.total = composer.subtotal
        bill.discount = composer.discount
        bill.transport = composer.transport
        bill.advance = composer.advance
        bill.items.clear()
        db.session.flush()
        _add_items(bill, composer)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info("Service bill %s updated", bill.id)
    db.session.expire_all()
    return service_bill_to_dict(load_service_bill(bill.id))
