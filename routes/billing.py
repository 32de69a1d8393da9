# routes/billing.py
from datetime import date

from flask import Blueprint, current_app, jsonify, render_template, request, send_file
from flask_login import login_required

from models import db, Bill
from services.billing import (
    BillingError,
    bill_to_dict,
    compose_bill,
    invoice_number,
    load_bill,
    search_bills,
    submit_bill,
)
from services.invoice import build_invoice, format_date, render_pdf

bp = Blueprint("billing", __name__, url_prefix="/billing")


# ---------------------------------------------------
# Shared helpers (also used by service billing)
# ---------------------------------------------------
def shop_details(kind="sales"):
    config = current_app.config
    return {
        "name": config["SERVICE_SHOP_NAME"] if kind == "service" else config["SHOP_NAME"],
        "address": config["SHOP_ADDRESS"],
        "phone": config["SHOP_PHONE"],
    }


def shop_timezone():
    return current_app.config["TIMEZONE"]


def parse_date_arg(value):
    """'YYYY-MM-DD' query argument -> date; (None, error) when malformed."""
    if not value:
        return None, None
    try:
        return date.fromisoformat(value), None
    except ValueError:
        return None, "Invalid date, expected YYYY-MM-DD"


def billing_error(exc: BillingError):
    return jsonify({"error": str(exc), "details": exc.details}), 400


def history_row(bill):
    return {
        "id": bill.id,
        "invoice_no": invoice_number(bill.id),
        "client": bill.client.name if bill.client else "Unknown Client",
        "date": format_date(bill.created_at, shop_timezone()),
        "created_at": bill.created_at.isoformat(),
        "total": float(bill.total),
        "discount": float(bill.discount or 0),
        "payable": bill.payable,
    }


# ---------------- Create bill ----------------
@bp.route("/create", methods=["POST"])
@login_required
def create_bill():
    data = request.get_json(silent=True) or {}

    try:
        composer = compose_bill(data)
        bill = submit_bill(composer)
    except BillingError as e:
        return billing_error(e)
    except Exception:
        current_app.logger.exception("Failed to generate bill")
        return jsonify({"error": "Failed to generate bill"}), 500

    return jsonify({
        "message": "Bill generated successfully",
        "bill": bill,
    }), 201


# ---------------- Bill history ----------------
@bp.route("/bills", methods=["GET"])
@login_required
def list_bills():
    on_date, error = parse_date_arg(request.args.get("date"))
    if error:
        return jsonify({"error": error}), 400

    bills = search_bills(Bill, request.args.get("q", ""), on_date, shop_timezone())
    return jsonify({"bills": [history_row(b) for b in bills]})


@bp.route("/bills/<int:bill_id>", methods=["GET"])
@login_required
def get_bill(bill_id):
    bill = load_bill(bill_id)
    if bill is None:
        return jsonify({"error": "Bill not found"}), 404
    return jsonify({"bill": bill_to_dict(bill)})


# ---------------- View bill (HTML printable) ----------------
@bp.route("/invoice/<int:bill_id>", methods=["GET"])
@login_required
def print_bill(bill_id):
    bill = load_bill(bill_id)
    if bill is None:
        return jsonify({"error": "Bill not found"}), 404

    invoice = build_invoice(bill_to_dict(bill), shop_details(), shop_timezone())
    return render_template("invoice.html", invoice=invoice)


# ---------------- Invoice PDF (server) ----------------
@bp.route("/invoice/<int:bill_id>/pdf", methods=["GET"])
@login_required
def invoice_pdf(bill_id):
    bill = db.get_or_404(Bill, bill_id)
    invoice = build_invoice(bill_to_dict(load_bill(bill.id)), shop_details(), shop_timezone())

    return send_file(
        render_pdf(invoice),
        mimetype="application/pdf",
        as_attachment=True,
        download_name=f"invoice_{invoice['invoice_no']}.pdf",
    )
