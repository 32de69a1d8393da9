from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required
from sqlalchemy.orm import joinedload

from models import db, Client, Payment, PaymentHistory
from routes.billing import billing_error, parse_date_arg, shop_timezone
from services.billing import BillingError
from services.payments import (
    client_bill_rows,
    create_payment,
    delete_payment,
    update_payment,
)

payments_bp = Blueprint("payments", __name__, url_prefix="/payments")


# ========================
# API: LIST PAYMENTS
# ========================
@payments_bp.route("/api", methods=["GET"])
@login_required
def list_payments():
    payments = (
        Payment.query
        .options(joinedload(Payment.client))
        .order_by(Payment.created_at.desc(), Payment.id.desc())
        .all()
    )
    return jsonify({"payments": [p.to_dict() for p in payments]})


@payments_bp.route("/api/advance", methods=["GET"])
@login_required
def advance_payments():
    payments = (
        Payment.query
        .options(joinedload(Payment.client))
        .filter(Payment.bill_id.is_(None))
        .order_by(Payment.created_at.desc(), Payment.id.desc())
        .all()
    )
    return jsonify({"payments": [p.to_dict() for p in payments]})


@payments_bp.route("/api/client/<int:client_id>", methods=["GET"])
@login_required
def client_payments(client_id):
    client = db.get_or_404(Client, client_id)

    on_date, error = parse_date_arg(request.args.get("date"))
    if error:
        return jsonify({"error": error}), 400

    rows = client_bill_rows(
        client.id,
        request.args.get("invoice", "").strip(),
        on_date,
        shop_timezone(),
    )
    return jsonify({"client": client.to_dict(), "rows": rows})


# ========================
# API: CREATE / UPDATE / DELETE
# ========================
@payments_bp.route("/api", methods=["POST"])
@login_required
def add_payment():
    data = request.get_json(silent=True) or {}
    try:
        payment = create_payment(data)
    except BillingError as e:
        return billing_error(e)
    except Exception:
        current_app.logger.exception("Failed to save payment")
        return jsonify({"error": "Save failed"}), 500

    return jsonify({"message": "Payment created", "payment": payment.to_dict()}), 201


@payments_bp.route("/api/<int:payment_id>", methods=["PUT"])
@login_required
def edit_payment(payment_id):
    payment = db.get_or_404(Payment, payment_id)
    data = request.get_json(silent=True) or {}
    try:
        payment = update_payment(payment, data)
    except BillingError as e:
        return billing_error(e)
    except Exception:
        current_app.logger.exception("Failed to update payment %s", payment_id)
        return jsonify({"error": "Save failed"}), 500

    return jsonify({"message": "Payment updated", "payment": payment.to_dict()})


@payments_bp.route("/api/<int:payment_id>", methods=["DELETE"])
@login_required
def remove_payment(payment_id):
    payment = db.get_or_404(Payment, payment_id)
    try:
        delete_payment(payment)
    except Exception:
        current_app.logger.exception("Failed to delete payment %s", payment_id)
        return jsonify({"error": "Delete failed"}), 500

    return jsonify({"message": "Payment deleted"})


@payments_bp.route("/api/<int:payment_id>/history", methods=["GET"])
@login_required
def payment_history(payment_id):
    entries = (
        PaymentHistory.query
        .filter_by(payment_id=payment_id)
        .order_by(PaymentHistory.id)
        .all()
    )
    if not entries:
        return jsonify({"error": "Payment not found"}), 404
    return jsonify({"history": [e.to_dict() for e in entries]})
