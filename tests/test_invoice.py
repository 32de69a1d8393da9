from datetime import datetime

from services.invoice import (
    build_invoice,
    build_service_invoice,
    format_currency,
    format_date,
    render_pdf,
)

SHOP = {"name": "Ali Electronics", "address": "Gilgit", "phone": ""}


def sales_bill():
    return {
        "id": 12,
        "invoice_no": "000012",
        "client": {"name": "Asad", "phone": "03001234567", "address": "Gilgit"},
        "total": 450.0,
        "discount": 50.0,
        "created_at": "2026-10-18T09:30:00",
        "items": [
            {
                "quantity": 3,
                "price_at_time": 150.0,
                "amount": 450.0,
                "product": {"id": 1, "name": "LED Bulb", "price": 150.0},
            },
        ],
    }


def service_bill(items=1):
    return {
        "id": 5,
        "invoice_no": "000005",
        "client": {"name": "Karim", "phone": "", "address": ""},
        "total": 2500.0 * items,
        "discount": 100.0,
        "transport": 300.0,
        "advance": 1000.0,
        "created_at": "2026-01-02T15:00:00",
        "items": [
            {
                "quantity": 1,
                "price_at_time": 2500.0,
                "amount": 2500.0,
                "service": {"id": n, "name": f"Job {n}", "price": 2500.0},
            }
            for n in range(1, items + 1)
        ],
    }


def test_currency_and_date_formatting():
    assert format_currency(400) == "Rs. 400.00"
    assert format_currency(1234.5) == "Rs. 1,234.50"
    assert format_currency(None) == "Rs. 0.00"
    assert format_date(datetime(2026, 10, 18, 9, 30)) == "October 18, 2026"
    assert format_date("2026-01-02T15:00:00") == "January 2, 2026"
    assert format_date(None) == ""


def test_sales_invoice_layout():
    invoice = build_invoice(sales_bill(), SHOP)

    assert invoice["invoice_no"] == "000012"
    assert invoice["date"] == "October 18, 2026"
    assert invoice["customer"]["name"] == "Asad"
    assert invoice["rows"] == [{
        "sn": 1,
        "name": "LED Bulb",
        "quantity": 3,
        "rate": "Rs. 150.00",
        "amount": "Rs. 450.00",
        "blank": False,
    }]
    assert invoice["totals"] == [
        ("Subtotal", "Rs. 450.00"),
        ("Discount", "Rs. 50.00"),
        ("Total", "Rs. 400.00"),
    ]


def test_sales_invoice_without_client():
    bill = sales_bill()
    bill["client"] = None
    assert build_invoice(bill, SHOP)["customer"]["name"] == "Unknown Customer"


def test_service_invoice_totals():
    invoice = build_service_invoice(service_bill(), SHOP)

    assert invoice["item_total"] == 2500
    assert invoice["grand_total"] == 2800
    assert invoice["balance"] == 2800 - 1000 - 100
    assert invoice["totals"][-1] == ("Balance", "Rs. 1,700.00")


def test_service_invoice_pads_to_fixed_rows():
    invoice = build_service_invoice(service_bill(items=3), SHOP, min_rows=14)

    assert len(invoice["rows"]) == 14
    assert [r["blank"] for r in invoice["rows"][:4]] == [False, False, False, True]
    assert [r["sn"] for r in invoice["rows"]] == list(range(1, 15))


def test_service_invoice_never_truncates_items():
    invoice = build_service_invoice(service_bill(items=16), SHOP, min_rows=14)
    assert len(invoice["rows"]) == 16
    assert not any(r["blank"] for r in invoice["rows"])


def test_pdf_output():
    pdf = render_pdf(build_service_invoice(service_bill(), SHOP)).read()
    assert pdf.startswith(b"%PDF")


def test_dates_print_in_shop_timezone():
    late_evening = datetime(2026, 10, 18, 20, 0)  # UTC

    assert format_date(late_evening) == "October 18, 2026"
    assert format_date(late_evening, "Asia/Karachi") == "October 19, 2026"

    bill = sales_bill()
    bill["created_at"] = late_evening.isoformat()
    assert build_invoice(bill, SHOP, "Asia/Karachi")["date"] == "October 19, 2026"
