"""Print layouts for sales and service invoices.

Both builders take the joined bill dict produced by the billing services and
return a plain layout dict that the HTML templates and the PDF writer share.
"""

from datetime import datetime
from io import BytesIO

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import inch
from reportlab.pdfgen import canvas

from models import to_local


def format_currency(amount) -> str:
    return f"Rs. {float(amount or 0):,.2f}"


def format_date(value, tz=None) -> str:
    """Date line for a stored UTC timestamp, shown in the shop timezone ``tz``."""
    if not value:
        return ""
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    value = to_local(value, tz)
    return f"{value:%B} {value.day}, {value.year}"


def _customer(bill):
    client = bill.get("client") or {}
    return {
        "name": client.get("name") or "Unknown Customer",
        "phone": client.get("phone") or "",
        "address": client.get("address") or "",
    }


def _row(sn, name, item):
    return {
        "sn": sn,
        "name": name,
        "quantity": item["quantity"],
        "rate": format_currency(item["price_at_time"]),
        "amount": format_currency(item["amount"]),
        "blank": False,
    }


def build_invoice(bill: dict, shop: dict, tz=None) -> dict:
    rows = []
    for sn, item in enumerate(bill["items"], start=1):
        product = item.get("product") or {}
        rows.append(_row(sn, product.get("name", ""), item))

    subtotal = round(sum(item["amount"] for item in bill["items"]), 2)
    discount = float(bill.get("discount") or 0)
    grand_total = round(subtotal - discount, 2)

    return {
        "kind": "sales",
        "shop": shop,
        "invoice_no": bill["invoice_no"],
        "date": format_date(bill["created_at"], tz),
        "customer": _customer(bill),
        "rows": rows,
        "totals": [
            ("Subtotal", format_currency(subtotal)),
            ("Discount", format_currency(discount)),
            ("Total", format_currency(grand_total)),
        ],
        "subtotal": subtotal,
        "discount": discount,
        "grand_total": grand_total,
    }


def build_service_invoice(bill: dict, shop: dict, min_rows: int = 14, tz=None) -> dict:
    """Service layout: transport and advance, table padded to ``min_rows``."""
    rows = []
    for sn, item in enumerate(bill["items"], start=1):
        service = item.get("service") or {}
        rows.append(_row(sn, service.get("name", ""), item))

    for sn in range(len(rows) + 1, min_rows + 1):
        rows.append({
            "sn": sn,
            "name": "",
            "quantity": "",
            "rate": "",
            "amount": "",
            "blank": True,
        })

    item_total = round(sum(item["amount"] for item in bill["items"]), 2)
    transport = float(bill.get("transport") or 0)
    advance = float(bill.get("advance") or 0)
    discount = float(bill.get("discount") or 0)
    grand_total = round(item_total + transport, 2)
    balance = round(grand_total - advance - discount, 2)

    return {
        "kind": "service",
        "shop": shop,
        "invoice_no": bill["invoice_no"],
        "date": format_date(bill["created_at"], tz),
        "customer": _customer(bill),
        "rows": rows,
        "totals": [
            ("Transport Charges", format_currency(transport)),
            ("Total", format_currency(grand_total)),
            ("Advance", format_currency(advance)),
            ("Discount", format_currency(discount)),
            ("Balance", format_currency(balance)),
        ],
        "item_total": item_total,
        "transport": transport,
        "advance": advance,
        "discount": discount,
        "grand_total": grand_total,
        "balance": balance,
    }


def render_pdf(layout: dict) -> BytesIO:
    buffer = BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4)
    width, height = A4

    # Title
    c.setFont("Helvetica-Bold", 18)
    c.drawCentredString(width / 2, height - inch, layout["shop"]["name"])
    c.setFont("Helvetica", 9)
    c.drawCentredString(width / 2, height - 1.2 * inch, layout["shop"].get("address", ""))

    # Bill meta
    customer = layout["customer"]
    c.setFont("Helvetica", 11)
    c.drawString(inch, height - 1.6 * inch, f"Invoice #: {layout['invoice_no']}")
    c.drawString(inch, height - 1.85 * inch, f"Customer: {customer['name']}")
    if customer["phone"]:
        c.drawString(inch, height - 2.1 * inch, f"Phone: {customer['phone']}")
    c.drawRightString(width - inch, height - 1.6 * inch, f"Date: {layout['date']}")

    # Table header
    y = height - 2.6 * inch
    c.setFont("Helvetica-Bold", 10)
    c.drawString(inch, y, "S#")
    c.drawString(1.4 * inch, y, "Item")
    c.drawRightString(width - 3 * inch, y, "Qty")
    c.drawRightString(width - 2 * inch, y, "Rate")
    c.drawRightString(width - inch, y, "Amount")
    y -= 0.18 * inch
    c.line(inch, y, width - inch, y)
    y -= 0.12 * inch

    c.setFont("Helvetica", 10)
    for row in layout["rows"]:
        c.drawString(inch, y, str(row["sn"]))
        c.drawString(1.4 * inch, y, row["name"])
        c.drawRightString(width - 3 * inch, y, str(row["quantity"]))
        c.drawRightString(width - 2 * inch, y, row["rate"])
        c.drawRightString(width - inch, y, row["amount"])
        y -= 0.25 * inch
        if y < 2 * inch:
            c.showPage()
            c.setFont("Helvetica", 10)
            y = height - inch

    y -= 0.12 * inch
    c.line(inch, y, width - inch, y)
    for label, value in layout["totals"]:
        y -= 0.25 * inch
        c.drawString(width - 3.5 * inch, y, f"{label}:")
        c.drawRightString(width - inch, y, value)

    c.showPage()
    c.save()
    buffer.seek(0)
    return buffer
