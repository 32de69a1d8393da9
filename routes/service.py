from flask import Blueprint, jsonify, request
from flask_login import login_required

from models import db, Service, ServiceItem

service_bp = Blueprint("service", __name__, url_prefix="/services")


def _parse_fields(data, partial=False):
    fields = {}
    if "name" in data or not partial:
        name = str(data.get("name") or "").strip()
        if not name:
            return None, "Please enter a service name"
        fields["name"] = name
    if "price" in data or not partial:
        try:
            price = float(data.get("price"))
        except (TypeError, ValueError):
            return None, "Please enter a valid price"
        if price <= 0:
            return None, "Please enter a valid price"
        fields["price"] = round(price, 2)
    return fields, None


@service_bp.route("/api", methods=["GET"])
@login_required
def api_list():
    q = request.args.get("q", "").strip()

    query = Service.query
    if q:
        query = query.filter(Service.name.ilike(f"%{q}%"))

    return jsonify({
        "services": [s.to_dict() for s in query.order_by(Service.name, Service.id).all()]
    })


@service_bp.route("/api", methods=["POST"])
@login_required
def api_create():
    fields, error = _parse_fields(request.get_json(silent=True) or {})
    if error:
        return jsonify({"error": error}), 400

    s = Service(**fields)
    db.session.add(s)
    db.session.commit()
    return jsonify({"message": "Created", "service": s.to_dict()}), 201


@service_bp.route("/api/<int:service_id>", methods=["PUT"])
@login_required
def api_update(service_id):
    s = db.get_or_404(Service, service_id)

    fields, error = _parse_fields(request.get_json(silent=True) or {}, partial=True)
    if error:
        return jsonify({"error": error}), 400

    for key, value in fields.items():
        setattr(s, key, value)
    db.session.commit()
    return jsonify({"message": "Updated", "service": s.to_dict()})


@service_bp.route("/api/<int:service_id>", methods=["DELETE"])
@login_required
def api_delete(service_id):
    s = db.get_or_404(Service, service_id)

    if ServiceItem.query.filter_by(service_id=s.id).first():
        return jsonify({"error": "Service is used in bills and cannot be deleted"}), 409

    db.session.delete(s)
    db.session.commit()
    return jsonify({"message": "Deleted"})
