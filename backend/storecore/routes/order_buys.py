# Overview: Flask API routes for purchase orders; parses input and returns JSON responses.

"""
Purchase Order Routes

LIFECYCLE: pendiente -> recibida | cancelada (both terminal)

- create-order computes subtotal/IGV/total once
- receive applies every line to stock; a failing line yields 409 with
  the partial result (applied lines with before/after stock, failed line)
  and the order stays pendiente
- cancel never touches stock
"""

from flask import Blueprint, current_app, jsonify, request

from ..errors import InvalidLineQuantity, StoreCoreError
from ..services import order_buy_service, provider_service
from ..validation import cents_from_payload
from .common import error_response, internal_error, json_body, optional_id, required_id


order_buys_bp = Blueprint("order_buys", __name__, url_prefix="/api/order-buys")
providers_bp = Blueprint("providers", __name__, url_prefix="/api/providers")


def _parse_lines(raw_lines) -> list:
    """Normalize line prices to cents; other validation is the service's job."""
    if not isinstance(raw_lines, list):
        return raw_lines
    lines = []
    for raw in raw_lines:
        if not isinstance(raw, dict):
            lines.append(raw)
            continue
        line = dict(raw)
        line["precio_unitario_cents"] = cents_from_payload(
            raw, "precio_unitario", required=False, error_cls=InvalidLineQuantity
        )
        lines.append(line)
    return lines


@order_buys_bp.post("/create-order")
def create_order_route():
    """
    Create a purchase order.

    Request body:
    {
        "provider_id": 1,
        "lines": [
            {"product_id": 3, "cantidad": 10, "precio_unitario": "2.50"}
        ],
        "igv_percent": 18,            // optional, defaults to DEFAULT_IGV_PERCENT
        "observaciones": "...",       // optional
        "fecha_entrega": "2026-11-01T00:00:00Z",  // optional estimate
        "user_id": 7                  // optional
    }
    """
    try:
        data = json_body()
        order = order_buy_service.create(
            required_id(data, "provider_id"),
            _parse_lines(data.get("lines")),
            data.get("igv_percent"),
            data.get("observaciones"),
            fecha_entrega=data.get("fecha_entrega"),
            created_by_user_id=optional_id(data, "user_id"),
        )
        return jsonify({
            "data": order.to_dict(),
            "message": "Orden de compra creada",
            "summary": {
                "subtotal_cents": order.subtotal_cents,
                "igv_cents": order.igv_cents,
                "total_cents": order.total_cents,
                "lines": len(order.lines),
            },
        }), 201
    except StoreCoreError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create purchase order")
        return internal_error()


@order_buys_bp.post("/receive")
def receive_order_route():
    """
    Receive a purchase order and increment stock per line.

    Request body: {"order_id": 1, "user_id": 7}
    """
    try:
        data = json_body()
        order_id = required_id(data, "order_id")
        result = order_buy_service.receive(order_id, received_by_user_id=optional_id(data, "user_id"))
        return jsonify({
            "data": result.order.to_dict(),
            "message": "Orden recibida y stock actualizado",
            "updatedProducts": result.updated_products,
            "receipt": result.to_dict(),
        }), 200
    except StoreCoreError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to receive purchase order")
        return internal_error()


@order_buys_bp.post("/cancel")
def cancel_order_route():
    """
    Cancel a pendiente purchase order.

    Request body: {"order_id": 1, "motivo": "...", "user_id": 7}
    """
    try:
        data = json_body()
        order_id = required_id(data, "order_id")
        order = order_buy_service.cancel(
            order_id,
            data.get("motivo"),
            cancelled_by_user_id=optional_id(data, "user_id"),
        )
        return jsonify({"data": order.to_dict(), "message": "Orden cancelada"}), 200
    except StoreCoreError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to cancel purchase order")
        return internal_error()


@order_buys_bp.get("")
def list_orders_route():
    try:
        orders = order_buy_service.list_orders(
            estado=request.args.get("estado"),
            provider_id=request.args.get("provider_id", type=int),
        )
        return jsonify({"data": [o.to_dict(include_lines=False) for o in orders]}), 200
    except StoreCoreError as e:
        return error_response(e)


@order_buys_bp.get("/<int:order_id>")
def get_order_route(order_id: int):
    try:
        order = order_buy_service.get_order(order_id)
        return jsonify({"data": order.to_dict()}), 200
    except StoreCoreError as e:
        return error_response(e)


@providers_bp.post("")
def create_provider_route():
    """
    Create a provider.

    Request body:
    {"razon_social": "...", "ruc": "20123456789", "contact_name": "...", "phone": "...", "email": "...", "address": "..."}
    """
    try:
        data = json_body()
        provider = provider_service.create_provider(
            razon_social=data.get("razon_social"),
            ruc=data.get("ruc"),
            contact_name=data.get("contact_name"),
            phone=data.get("phone"),
            email=data.get("email"),
            address=data.get("address"),
        )
        return jsonify({"data": provider.to_dict(), "message": "Proveedor creado"}), 201
    except StoreCoreError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create provider")
        return internal_error()


@providers_bp.get("")
def list_providers_route():
    providers = provider_service.list_providers()
    return jsonify({"data": [p.to_dict() for p in providers]}), 200


@providers_bp.get("/<int:provider_id>")
def get_provider_route(provider_id: int):
    try:
        provider = provider_service.get_provider(provider_id)
        return jsonify({"data": provider.to_dict()}), 200
    except StoreCoreError as e:
        return error_response(e)
