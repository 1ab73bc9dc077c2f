# Overview: Flask API route for recording point-of-sale sales.

from flask import Blueprint, current_app, jsonify

from ..errors import InvalidQuantity, StoreCoreError
from ..services import sales_service
from ..validation import cents_from_payload
from .common import error_response, internal_error, json_body, optional_id


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
def record_sale_route():
    """
    Record a sale under the open cash session.

    Request body:
    {
        "lines": [{"product_id": 1, "quantity": 2, "unit_price": "4.50"}],
        "payment_method": "cash",
        "user_id": 7
    }
    """
    try:
        data = json_body()
        lines = data.get("lines")
        if isinstance(lines, list):
            lines = [
                {**line, "unit_price_cents": cents_from_payload(
                    line, "unit_price", required=False, error_cls=InvalidQuantity
                )} if isinstance(line, dict) else line
                for line in lines
            ]
        sale = sales_service.record_sale(
            lines,
            data.get("payment_method"),
            operator_user_id=optional_id(data, "user_id"),
        )
        return jsonify({
            "data": sale.to_dict(),
            "message": "Venta registrada",
            "updatedProducts": [
                {"product_id": line.product_id, "new_stock": line.product.stock_quantity}
                for line in sale.lines
            ],
        }), 201
    except StoreCoreError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record sale")
        return internal_error()
