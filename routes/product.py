import io
import re

import openpyxl
from flask import Blueprint, current_app, jsonify, request, send_file
from flask_login import login_required

from models import db, BillItem, Product

bp = Blueprint("product", __name__, url_prefix="/products")


# ---------- Helpers ----------
def _parse_fields(data, partial=False):
    """Validate product fields; returns (fields, error)."""
    fields = {}

    if "name" in data or not partial:
        name = str(data.get("name") or "").strip()
        if not name:
            return None, "Please enter a product name"
        fields["name"] = name

    if "price" in data or not partial:
        try:
            price = float(data.get("price"))
        except (TypeError, ValueError):
            return None, "Please enter a valid price"
        if price <= 0:
            return None, "Please enter a valid price"
        fields["price"] = round(price, 2)

    if "stock" in data or not partial:
        try:
            stock = int(data.get("stock", 0))
        except (TypeError, ValueError):
            return None, "Please enter a valid stock quantity"
        if stock < 0:
            return None, "Please enter a valid stock quantity"
        fields["stock"] = stock

    return fields, None


def _parse_float(val):
    if val is None:
        return 0.0
    if isinstance(val, (int, float)):
        return float(val)
    val = re.sub(r"[^\d.]", "", str(val))
    return float(val) if val else 0.0


def _parse_int(val):
    if val is None:
        return 0
    if isinstance(val, int):
        return val
    if isinstance(val, float):
        return int(val)
    val = re.sub(r"[^\d]", "", str(val))
    return int(val) if val else 0


# ---------- APIs ----------
@bp.route("/api", methods=["GET"])
@login_required
def api_list():
    q = request.args.get("q", "").strip()
    sort = request.args.get("sort", "name")

    query = Product.query

    if q:
        q_like = f"%{q}%"
        if q.isdigit():
            query = query.filter(
                (Product.id == int(q))
                | (Product.stock == int(q))
                | Product.name.ilike(q_like)
            )
        else:
            query = query.filter(Product.name.ilike(q_like))

    desc = False
    if sort.startswith("-"):
        desc = True
        sort = sort[1:]

    order_col = Product.name
    if sort == "price":
        order_col = Product.price
    elif sort == "stock":
        order_col = Product.stock
    elif sort == "created_at":
        order_col = Product.created_at

    if desc:
        order_col = order_col.desc()

    products = query.order_by(order_col, Product.id).all()

    return jsonify({
        "products": [p.to_dict() for p in products]
    })


@bp.route("/api", methods=["POST"])
@login_required
def api_create():
    data = request.get_json(silent=True) or {}

    fields, error = _parse_fields(data)
    if error:
        return jsonify({"error": error}), 400

    p = Product(**fields)
    db.session.add(p)
    db.session.commit()
    current_app.logger.info("Product %s created", p.id)

    return jsonify({
        "message": "Created",
        "product": p.to_dict(),
    }), 201


@bp.route("/api/<int:product_id>", methods=["PUT"])
@login_required
def api_update(product_id):
    p = db.get_or_404(Product, product_id)
    data = request.get_json(silent=True) or {}

    fields, error = _parse_fields(data, partial=True)
    if error:
        return jsonify({"error": error}), 400

    for key, value in fields.items():
        setattr(p, key, value)
    db.session.commit()

    return jsonify({
        "message": "Updated",
        "product": p.to_dict(),
    })


@bp.route("/api/<int:product_id>", methods=["DELETE"])
@login_required
def api_delete(product_id):
    p = db.get_or_404(Product, product_id)

    if BillItem.query.filter_by(product_id=p.id).first():
        return jsonify({"error": "Product is used in bills and cannot be deleted"}), 409

    db.session.delete(p)
    db.session.commit()
    current_app.logger.info("Product %s deleted", product_id)

    return jsonify({"message": "Deleted"})


@bp.route("/api/import", methods=["POST"])
@login_required
def api_import_excel():
    if "file" not in request.files:
        return jsonify({"error": "No file uploaded"}), 400

    file = request.files["file"]

    if not file.filename.endswith(".xlsx"):
        return jsonify({"error": "Only .xlsx files supported"}), 400

    try:
        workbook = openpyxl.load_workbook(io.BytesIO(file.read()))
    except Exception:
        current_app.logger.exception("Failed to read product workbook")
        return jsonify({"error": "Could not read the Excel file"}), 400

    sheet = workbook.active
    rows = list(sheet.iter_rows(values_only=True))
    if not rows:
        return jsonify({"error": "Excel file is empty"}), 400

    headers = [str(h).strip().lower() for h in rows[0]]

    # Auto detect columns
    def find_col(possible_names):
        for name in possible_names:
            if name in headers:
                return headers.index(name)
        return None

    col_name = find_col(["name", "product", "product name", "item"])
    col_price = find_col(["price", "rate", "amount"])
    col_stock = find_col(["stock", "qty", "quantity"])

    if col_name is None:
        return jsonify({"error": "Product name column not found"}), 400

    added = 0
    updated = 0
    skipped = 0

    try:
        for row in rows[1:]:
            if not row[col_name]:
                continue

            name = str(row[col_name]).strip()
            price = _parse_float(row[col_price]) if col_price is not None else 0.0
            stock = _parse_int(row[col_stock]) if col_stock is not None else 0

            # prices must be positive
            if price <= 0:
                skipped += 1
                continue

            # DUPLICATE CHECK (by name)
            existing = Product.query.filter(Product.name.ilike(name)).first()

            if existing:
                existing.price = price
                existing.stock = stock
                updated += 1
            else:
                db.session.add(Product(name=name, price=price, stock=stock))
                added += 1

        db.session.commit()
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Product import failed")
        return jsonify({"error": "Failed to import products"}), 500

    current_app.logger.info(
        "Product import: %s added, %s updated, %s skipped", added, updated, skipped
    )
    return jsonify({
        "message": "Import complete",
        "added": added,
        "updated": updated,
        "skipped": skipped,
    })


@bp.route("/api/template", methods=["GET"])
@login_required
def download_template():
    workbook = openpyxl.Workbook()
    sheet = workbook.active

    sheet.append(["name", "price", "stock"])
    sheet.append(["Sample Product", 100, 50])

    buffer = io.BytesIO()
    workbook.save(buffer)
    buffer.seek(0)

    return send_file(
        buffer,
        mimetype="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        as_attachment=True,
        download_name="product_import_template.xlsx"
    )
