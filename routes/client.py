from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required

from models import db, Bill, Client, Payment, ServiceBill

client_bp = Blueprint("client", __name__, url_prefix="/clients")


def _parse_fields(data, partial=False):
    fields = {}
    if "name" in data or not partial:
        name = str(data.get("name") or "").strip()
        if not name:
            return None, "Please enter a client name"
        fields["name"] = name
    for key in ("phone", "address"):
        if key in data or not partial:
            fields[key] = str(data.get(key) or "").strip()
    return fields, None


# ========================
# API: SEARCH / LIST CLIENTS
# ========================
@client_bp.route("/api")
@login_required
def get_clients():
    q = request.args.get("q", "").strip()
    limit = request.args.get("limit", type=int)

    query = Client.query
    if q:
        q_like = f"%{q}%"
        query = query.filter(Client.name.ilike(q_like) | Client.phone.ilike(q_like))

    query = query.order_by(Client.name, Client.id)
    if limit:
        query = query.limit(limit)

    return jsonify([c.to_dict() for c in query.all()])


# ========================
# API: ADD CLIENT
# ========================
@client_bp.route("/api", methods=["POST"])
@login_required
def add_client():
    data = request.get_json(silent=True) or {}

    fields, error = _parse_fields(data)
    if error:
        return jsonify({"error": error}), 400

    client = Client(**fields)
    db.session.add(client)
    db.session.commit()
    current_app.logger.info("Client %s created", client.id)

    return jsonify({"success": True, "client": client.to_dict()}), 201


# ========================
# API: CLIENT DETAILS (JSON)
# ========================
@client_bp.route("/api/<int:client_id>")
@login_required
def client_details(client_id):
    client = db.get_or_404(Client, client_id)

    bills = (
        Bill.query
        .filter_by(client_id=client_id)
        .order_by(Bill.created_at.desc())
        .all()
    )

    return jsonify({
        "client": client.to_dict(),
        "bills": [
            {
                "id": b.id,
                "total": b.total,
                "discount": b.discount,
                "payable": b.payable,
                "date": b.created_at.isoformat()
            } for b in bills
        ]
    })


@client_bp.route("/api/<int:client_id>", methods=["PUT"])
@login_required
def update_client(client_id):
    client = db.get_or_404(Client, client_id)
    data = request.get_json(silent=True) or {}

    fields, error = _parse_fields(data, partial=True)
    if error:
        return jsonify({"error": error}), 400

    for key, value in fields.items():
        setattr(client, key, value)

    db.session.commit()
    return jsonify({"success": True, "client": client.to_dict()})


@client_bp.route("/api/<int:client_id>", methods=["DELETE"])
@login_required
def delete_client(client_id):
    client = db.get_or_404(Client, client_id)

    # billed clients stay on record
    in_use = (
        Bill.query.filter_by(client_id=client_id).first()
        or ServiceBill.query.filter_by(client_id=client_id).first()
        or Payment.query.filter_by(client_id=client_id).first()
    )
    if in_use:
        return jsonify({"error": "Client has bills or payments and cannot be deleted"}), 409

    db.session.delete(client)
    db.session.commit()
    current_app.logger.info("Client %s deleted", client_id)
    return jsonify({"success": True})
