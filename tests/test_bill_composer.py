from types import SimpleNamespace

import pytest

from services.billing import BillComposer, BillingError, parse_amount, parse_quantity
from services.service_billing import ServiceBillComposer


def product(id=1, name="LED Bulb", price=150.0, stock=10):
    return SimpleNamespace(id=id, name=name, price=price, stock=stock)


ASAD = SimpleNamespace(id=1, name="Asad")


def test_line_total_discount_and_payable():
    composer = BillComposer(ASAD)
    line = composer.add_item(product(), 3)
    composer.set_discount("50")

    assert line.amount == 450
    assert composer.subtotal == 450
    assert composer.payable == 400
    composer.validate()


def test_price_is_captured_when_added():
    bulb = product()
    composer = BillComposer(ASAD)
    composer.add_item(bulb, 2)
    bulb.price = 999

    assert composer.items[0].price_at_time == 150
    assert composer.subtotal == 300


@pytest.mark.parametrize("lines, discount", [
    ([(150.0, 3)], 50.0),
    ([(99.99, 1), (10.5, 4)], 0.0),
    ([(1200.0, 2), (35.25, 3), (7.0, 10)], 125.75),
])
def test_payable_is_sum_of_extensions_minus_discount(lines, discount):
    composer = BillComposer(ASAD)
    for i, (price, qty) in enumerate(lines, start=1):
        composer.add_item(product(id=i, name=f"P{i}", price=price, stock=100), qty)
    composer.set_discount(discount)

    expected = round(sum(price * qty for price, qty in lines) - discount, 2)
    assert composer.payable == expected


def test_add_rejects_quantity_over_stock_without_mutating():
    composer = BillComposer(ASAD)
    composer.add_item(product(id=2, name="Switch", stock=5), 1)

    with pytest.raises(BillingError) as exc:
        composer.add_item(product(stock=10), 11)

    assert "Only 10 items available" in str(exc.value)
    assert [i.name for i in composer.items] == ["Switch"]


def test_add_counts_quantity_already_on_bill():
    bulb = product(stock=10)
    composer = BillComposer(ASAD)
    composer.add_item(bulb, 6)

    with pytest.raises(BillingError):
        composer.add_item(bulb, 5)
    assert len(composer.items) == 1

    composer.add_item(bulb, 4)
    assert sum(i.quantity for i in composer.items) == 10


def test_add_requires_product():
    composer = BillComposer(ASAD)
    with pytest.raises(BillingError, match="Please select a product"):
        composer.add_item(None, 1)
    assert composer.items == []


@pytest.mark.parametrize("qty", [0, -1, "abc", 2.5, "2.5", None, True])
def test_invalid_quantity(qty):
    with pytest.raises(BillingError):
        parse_quantity(qty)


def test_quantity_accepts_numeric_text():
    assert parse_quantity("3") == 3
    assert parse_quantity(4) == 4


@pytest.mark.parametrize("value, expected", [
    ("", 0.0),
    (None, 0.0),
    ("50", 50.0),
    ("12.5", 12.5),
    ("12.25", 12.25),
    (".5", 0.5),
    (20, 20.0),
])
def test_discount_parsing(value, expected):
    assert parse_amount(value) == expected


@pytest.mark.parametrize("value", ["12.345", "-5", "abc", "1,000", -3, 1.005])
def test_discount_rejects_bad_input(value):
    with pytest.raises(BillingError):
        parse_amount(value)


def test_remove_item():
    composer = BillComposer(ASAD)
    composer.add_item(product(id=1, name="A"), 1)
    composer.add_item(product(id=2, name="B"), 1)

    removed = composer.remove_item(0)

    assert removed.name == "A"
    assert [i.name for i in composer.items] == ["B"]
    with pytest.raises(BillingError):
        composer.remove_item(5)


def test_validate_requires_client_and_items():
    with pytest.raises(BillingError, match="Please select a client"):
        BillComposer(None).validate()
    with pytest.raises(BillingError, match="Please add at least one item"):
        BillComposer(ASAD).validate()


def test_validate_rejects_discount_above_total():
    composer = BillComposer(ASAD)
    composer.add_item(product(), 1)
    composer.set_discount("200")

    with pytest.raises(BillingError, match="Discount cannot exceed"):
        composer.validate()


def test_service_composer_skips_stock_and_keeps_charges():
    repair = SimpleNamespace(id=7, name="Fan Repair", price=800.0)
    composer = ServiceBillComposer(ASAD)
    composer.add_item(repair, 3)
    composer.set_transport("300")
    composer.set_advance("1000")

    assert composer.subtotal == 2400
    assert composer.transport == 300
    assert composer.advance == 1000
    with pytest.raises(BillingError, match="Please select a service"):
        composer.add_item(None, 1)
    with pytest.raises(BillingError, match="Please add at least one service"):
        ServiceBillComposer(ASAD).validate()
