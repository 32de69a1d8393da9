from flask import Blueprint, current_app, jsonify, render_template, request, send_file
from flask_login import login_required

from models import db, ServiceBill
from routes.billing import (
    billing_error,
    history_row,
    parse_date_arg,
    shop_details,
    shop_timezone,
)
from services.billing import BillingError, search_bills
from services.invoice import build_service_invoice, render_pdf
from services.service_billing import (
    compose_service_bill,
    load_service_bill,
    service_bill_to_dict,
    submit_service_bill,
    update_service_bill,
)

service_billing_bp = Blueprint("service_billing", __name__, url_prefix="/service-billing")


def _service_invoice(bill_id):
    bill = load_service_bill(bill_id)
    if bill is None:
        return None
    return build_service_invoice(
        service_bill_to_dict(bill),
        shop_details("service"),
        min_rows=current_app.config["INVOICE_MIN_ROWS"],
        tz=shop_timezone(),
    )


@service_billing_bp.route("/create", methods=["POST"])
@login_required
def create_service_bill():
    data = request.get_json(silent=True) or {}

    try:
        bill = submit_service_bill(compose_service_bill(data))
    except BillingError as e:
        return billing_error(e)
    except Exception:
        current_app.logger.exception("Failed to process service bill")
        return jsonify({"error": "Failed to process service bill"}), 500

    return jsonify({
        "message": "Service bill generated successfully",
        "bill": bill,
    }), 201


@service_billing_bp.route("/bills/<int:bill_id>", methods=["PUT"])
@login_required
def edit_service_bill(bill_id):
    bill = db.get_or_404(ServiceBill, bill_id)
    data = request.get_json(silent=True) or {}

    try:
        # the customer of an existing bill is fixed
        updated = update_service_bill(bill, compose_service_bill(data, client=bill.client))
    except BillingError as e:
        return billing_error(e)
    except Exception:
        current_app.logger.exception("Failed to update service bill %s", bill_id)
        return jsonify({"error": "Failed to process service bill"}), 500

    return jsonify({
        "message": "Service bill updated successfully",
        "bill": updated,
    })


@service_billing_bp.route("/bills", methods=["GET"])
@login_required
def list_service_bills():
    on_date, error = parse_date_arg(request.args.get("date"))
    if error:
        return jsonify({"error": error}), 400

    bills = search_bills(ServiceBill, request.args.get("q", ""), on_date, shop_timezone())
    rows = []
    for b in bills:
        row = history_row(b)
        row["transport"] = float(b.transport or 0)
        row["advance"] = float(b.advance or 0)
        rows.append(row)
    return jsonify({"bills": rows})


@service_billing_bp.route("/bills/<int:bill_id>", methods=["GET"])
@login_required
def get_service_bill(bill_id):
    bill = load_service_bill(bill_id)
    if bill is None:
        return jsonify({"error": "Service bill not found"}), 404
    return jsonify({"bill": service_bill_to_dict(bill)})


@service_billing_bp.route("/invoice/<int:bill_id>", methods=["GET"])
@login_required
def print_service_bill(bill_id):
    invoice = _service_invoice(bill_id)
    if invoice is None:
        return jsonify({"error": "Service bill not found"}), 404
    return render_template("service_invoice.html", invoice=invoice)


@service_billing_bp.route("/invoice/<int:bill_id>/pdf", methods=["GET"])
@login_required
def service_invoice_pdf(bill_id):
    invoice = _service_invoice(bill_id)
    if invoice is None:
        return jsonify({"error": "Service bill not found"}), 404

    return send_file(
        render_pdf(invoice),
        mimetype="application/pdf",
        as_attachment=True,
        download_name=f"service_invoice_{invoice['invoice_no']}.pdf",
    )
