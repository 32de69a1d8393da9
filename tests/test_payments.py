import pytest

from models import db, Bill, Client, Payment
from services.billing import BillingError
from services.payments import create_payment, update_payment


@pytest.fixture
def payment(ctx):
    client = Client(name="Asad", phone="03001234567")
    db.session.add(client)
    db.session.flush()
    bill = Bill(client_id=client.id, total=450, discount=50)
    db.session.add(bill)
    db.session.commit()
    return create_payment({"client_id": client.id, "bill_id": bill.id, "paid": 100})


def test_invalid_update_leaves_payment_untouched(payment):
    with pytest.raises(BillingError, match="Invalid paid amount"):
        update_payment(payment, {"total": 900, "paid": "-1", "comment": "typo"})

    assert payment.total == 400
    assert payment.paid == 100
    assert payment.comment is None
    assert db.session.get(Payment, payment.id).total == 400


def test_update_applies_all_fields(payment):
    update_payment(payment, {"paid": 400, "comment": "cleared"})

    assert payment.status == "Paid"
    assert payment.due == 0
    assert payment.comment == "cleared"
