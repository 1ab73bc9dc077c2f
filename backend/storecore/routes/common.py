# Overview: Shared request parsing and error rendering for the JSON blueprints.

from __future__ import annotations

from flask import jsonify, request

from ..errors import StoreCoreError, ValidationError
from ..validation import coerce_int


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    return data


def error_response(exc: StoreCoreError):
    return jsonify(exc.to_dict()), exc.http_status


def internal_error():
    return jsonify({"error": "Internal server error", "code": "InternalError", "details": {}}), 500


def required_id(data: dict, key: str) -> int:
    return coerce_int(data.get(key), key)


def optional_id(data: dict, key: str) -> int | None:
    """Integer id when present (user_id and the like); None when absent."""
    value = data.get(key)
    if value is None:
        return None
    return coerce_int(value, key)
