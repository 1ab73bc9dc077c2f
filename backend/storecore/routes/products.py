# Overview: Flask API routes for product seeding and stock views.

from flask import Blueprint, current_app, jsonify, request

from ..errors import StoreCoreError
from ..services import products_service, stock_ledger_service
from ..validation import cents_from_payload
from .common import error_response, internal_error, json_body


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.post("")
def create_product_route():
    """
    Create a product with its initial stock.

    Request body:
    {
        "sku": "P-001",
        "name": "Arroz 1kg",
        "price": "4.50",          // or "price_cents": 450
        "stock_quantity": 10,
        "stock_minimum": 5,
        "unit_of_measure": "UND"  // optional
    }
    """
    try:
        data = json_body()
        product = products_service.create_product(
            sku=data.get("sku"),
            name=data.get("name"),
            price_cents=cents_from_payload(data, "price", required=False),
            stock_quantity=data.get("stock_quantity", 0),
            stock_minimum=data.get("stock_minimum", 0),
            unit_of_measure=data.get("unit_of_measure"),
        )
        return jsonify({"data": product.to_dict(), "message": "Producto creado"}), 201
    except StoreCoreError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return internal_error()


@products_bp.get("")
def list_products_route():
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    products = products_service.list_products(include_inactive=include_inactive)
    return jsonify({"data": [p.to_dict() for p in products]}), 200


@products_bp.get("/low-stock")
def low_stock_route():
    """Products at zero or under their minimum."""
    products = products_service.list_low_stock()
    return jsonify({"data": [p.to_dict() for p in products], "total": len(products)}), 200


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    try:
        product = products_service.get_product(product_id)
        return jsonify({"data": product.to_dict()}), 200
    except StoreCoreError as e:
        return error_response(e)


@products_bp.get("/<int:product_id>/movements")
def product_movements_route(product_id: int):
    """Stock ledger movements for a product, newest first."""
    limit = request.args.get("limit", 200, type=int)
    limit = max(1, min(limit, 500))
    try:
        movements = stock_ledger_service.list_movements(product_id, limit=limit)
        return jsonify({"data": [m.to_dict() for m in movements]}), 200
    except StoreCoreError as e:
        return error_response(e)
