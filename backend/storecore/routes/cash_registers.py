# Overview: Flask API routes for cash drawer sessions (open, close, reconciliation).

"""
Cash Register Routes

- open: one session at a time; a second open is 409 and leaves the first intact
- current-open: 200 with data null when the drawer is closed
- close: reconciles expected (initial + sales) against the counted amount
"""

from flask import Blueprint, current_app, jsonify, request

from ..errors import StoreCoreError
from ..services import cash_session_service, sales_service
from ..validation import cents_from_payload, coerce_int
from .common import error_response, internal_error, json_body, optional_id


cash_registers_bp = Blueprint("cash_registers", __name__, url_prefix="/api/cash-registers")


@cash_registers_bp.post("/open")
def open_register_route():
    """
    Open the cash drawer.

    Request body: {"initial_amount": "100.00"} or {"initial_amount_cents": 10000}, optional "user_id"
    """
    try:
        data = json_body()
        session = cash_session_service.open_session(
            cents_from_payload(data, "initial_amount"),
            operator_user_id=optional_id(data, "user_id"),
        )
        return jsonify({"data": session.to_dict(), "message": "Caja abierta"}), 201
    except StoreCoreError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to open cash session")
        return internal_error()


@cash_registers_bp.get("/current-open")
def current_open_route():
    session = cash_session_service.get_current_open()
    return jsonify({"data": session.to_dict() if session else None}), 200


@cash_registers_bp.post("/close")
def close_register_route():
    """
    Close the cash drawer.

    Request body:
    {
        "cash_register_id": 1,          // or "session_id"
        "actual_amount": "345.00",      // or "actual_amount_cents": 34500
        "notes": "..."                  // optional
    }
    """
    try:
        data = json_body()
        key = "cash_register_id" if data.get("cash_register_id") is not None else "session_id"
        session_id = coerce_int(data.get(key), "cash_register_id")
        session, summary = cash_session_service.close_session(
            session_id,
            cents_from_payload(data, "actual_amount"),
            data.get("notes"),
        )
        return jsonify({
            "data": session.to_dict(),
            "message": "Caja cerrada",
            "summary": summary.to_dict(),
        }), 200
    except StoreCoreError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to close cash session")
        return internal_error()


@cash_registers_bp.get("")
def list_registers_route():
    try:
        sessions = cash_session_service.list_sessions(
            status=request.args.get("status"),
            limit=request.args.get("limit", 100, type=int),
        )
        return jsonify({"data": [s.to_dict() for s in sessions]}), 200
    except StoreCoreError as e:
        return error_response(e)


@cash_registers_bp.get("/<int:session_id>")
def get_register_route(session_id: int):
    try:
        session = cash_session_service.get_session(session_id)
        return jsonify({"data": session.to_dict()}), 200
    except StoreCoreError as e:
        return error_response(e)


@cash_registers_bp.get("/<int:session_id>/summary")
def register_summary_route(session_id: int):
    try:
        return jsonify({"data": cash_session_service.get_session_summary(session_id)}), 200
    except StoreCoreError as e:
        return error_response(e)


@cash_registers_bp.get("/<int:session_id>/sales")
def register_sales_route(session_id: int):
    try:
        sales = sales_service.list_session_sales(session_id)
        return jsonify({"data": [s.to_dict() for s in sales]}), 200
    except StoreCoreError as e:
        return error_response(e)
