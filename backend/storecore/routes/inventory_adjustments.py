# Overview: Flask API routes for inventory adjustments; parses input and returns JSON responses.

"""
Inventory Adjustment Routes

- POST /adjust records a manual increase/decrease with a reason code
- History reads are newest first and return an empty list when none exist
"""

from flask import Blueprint, current_app, jsonify, request

from ..errors import StoreCoreError
from ..services import adjustment_service
from .common import error_response, internal_error, json_body, optional_id, required_id


inventory_adjustments_bp = Blueprint(
    "inventory_adjustments", __name__, url_prefix="/api/inventory-adjustments"
)


@inventory_adjustments_bp.post("/adjust")
def adjust_inventory_route():
    """
    Adjust a product's stock.

    Request body:
    {
        "product_id": 1,
        "adjustment_type": "decrease",   // increase | decrease
        "quantity": 3,
        "reason": "merma",               // merma, conteo, daño, devolucion, correccion, otro
        "reason_description": "...",     // optional
        "user_id": 7                     // optional
    }

    Returns: adjustment record and a {previous_stock, new_stock} summary.
    """
    try:
        data = json_body()
        adjustment = adjustment_service.adjust(
            required_id(data, "product_id"),
            data.get("adjustment_type"),
            data.get("quantity"),
            data.get("reason"),
            data.get("reason_description"),
            actor_user_id=optional_id(data, "user_id"),
        )
        return jsonify({
            "data": adjustment.to_dict(),
            "message": "Inventario ajustado",
            "summary": {
                "previous_stock": adjustment.previous_stock,
                "new_stock": adjustment.new_stock,
                "difference": adjustment.new_stock - adjustment.previous_stock,
            },
        }), 201
    except StoreCoreError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to adjust inventory")
        return internal_error()


@inventory_adjustments_bp.get("/product/<int:product_id>/history")
def product_history_route(product_id: int):
    adjustments = adjustment_service.history(product_id)
    return jsonify({
        "data": [a.to_dict() for a in adjustments],
        "total": len(adjustments),
    }), 200


@inventory_adjustments_bp.get("")
def list_adjustments_route():
    limit = request.args.get("limit", type=int)
    adjustments = adjustment_service.list_all(limit=limit)
    return jsonify({"data": [a.to_dict() for a in adjustments]}), 200


@inventory_adjustments_bp.get("/reasons")
def list_reasons_route():
    return jsonify({
        "data": [
            {
                "code": code,
                "label": label,
                "description": adjustment_service.REASON_DESCRIPTIONS[code],
            }
            for code, label in adjustment_service.REASON_LABELS.items()
        ]
    }), 200


@inventory_adjustments_bp.get("/<int:adjustment_id>")
def get_adjustment_route(adjustment_id: int):
    try:
        adjustment = adjustment_service.get_adjustment(adjustment_id)
        return jsonify({"data": adjustment.to_dict()}), 200
    except StoreCoreError as e:
        return error_response(e)
