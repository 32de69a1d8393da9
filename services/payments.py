import logging

from sqlalchemy.orm import joinedload

from models import db, Bill, Client, Payment, PaymentHistory, payment_status
from services.billing import BillingError, day_range, invoice_number, parse_amount

logger = logging.getLogger(__name__)


def _log_history(payment, action):
    db.session.add(PaymentHistory(
        payment_id=payment.id,
        bill_id=payment.bill_id,
        client_id=payment.client_id,
        total=payment.total,
        paid=payment.paid,
        comment=payment.comment,
        action=action,
    ))


def _bill_for_client(bill_id, client_id, payment_id=None):
    bill = db.session.get(Bill, bill_id)
    if bill is None or bill.client_id != client_id:
        raise BillingError(f"Bill not found for client: {bill_id}")

    # one payment row per bill; further instalments update it
    existing = Payment.query.filter_by(bill_id=bill.id).first()
    if existing is not None and existing.id != payment_id:
        raise BillingError(
            "Bill already has a payment; update it instead",
            {"payment_id": existing.id},
        )
    return bill


def create_payment(data: dict) -> Payment:
    client = db.session.get(Client, data.get("client_id")) if data.get("client_id") else None
    if client is None:
        raise BillingError("Please select a client")

    bill_id = data.get("bill_id")
    total = data.get("total")
    if bill_id:
        bill = _bill_for_client(bill_id, client.id)
        if total in (None, ""):
            total = bill.payable

    payment = Payment(
        client_id=client.id,
        bill_id=bill_id or None,
        total=parse_amount(total, "total"),
        paid=parse_amount(data.get("paid"), "paid amount"),
        comment=data.get("comment"),
    )
    try:
        db.session.add(payment)
        db.session.flush()
        _log_history(payment, "INSERT")
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info("Payment %s recorded for client %s (%s)", payment.id, client.id, payment.status)
    return payment


def update_payment(payment: Payment, data: dict) -> Payment:
    changes = {}
    if "bill_id" in data:
        bill_id = data["bill_id"]
        if bill_id:
            _bill_for_client(bill_id, payment.client_id, payment.id)
        changes["bill_id"] = bill_id or None
    if "total" in data:
        changes["total"] = parse_amount(data["total"], "total")
    if "paid" in data:
        changes["paid"] = parse_amount(data["paid"], "paid amount")
    if "comment" in data:
        changes["comment"] = data["comment"]

    for key, value in changes.items():
        setattr(payment, key, value)

    try:
        _log_history(payment, "UPDATE")
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info("Payment %s updated (%s)", payment.id, payment.status)
    return payment


def delete_payment(payment: Payment):
    try:
        _log_history(payment, "DELETE")
        db.session.delete(payment)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info("Payment %s deleted", payment.id)


def client_bill_rows(client_id, invoice="", on_date=None, tz=None):
    """Bills of one client, each with its first payment and derived status."""
    query = (
        Bill.query
        .options(joinedload(Bill.payments))
        .filter_by(client_id=client_id)
    )
    if on_date is not None:
        start, end = day_range(on_date, tz)
        query = query.filter(Bill.created_at >= start, Bill.created_at <= end)

    rows = []
    for bill in query.order_by(Bill.created_at.desc(), Bill.id.desc()).all():
        invoice_no = invoice_number(bill.id)
        if invoice and invoice.lower() not in invoice_no.lower():
            continue

        payment = bill.payments[0] if bill.payments else None
        payable = bill.payable
        paid = float(payment.paid) if payment else 0.0
        rows.append({
            "bill": {
                "id": bill.id,
                "invoice_no": invoice_no,
                "total": float(bill.total),
                "discount": float(bill.discount or 0),
                "payable": payable,
                "created_at": bill.created_at.isoformat(),
            },
            "payment": payment.to_dict() if payment else None,
            "paid": paid,
            "due": round(payable - paid, 2),
            "status": payment_status(payable, paid),
        })
    return rows
