"""Request helpers shared by the API blueprints."""

from typing import Any, Dict

from flask import jsonify, request


def json_body() -> Dict[str, Any]:
    """The request's JSON object, or an empty dict."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def as_int(value: Any) -> Any:
    """Coerce whole numbers sent as strings or floats. Other values pass through for the service to reject."""
    if isinstance(value, bool):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().lstrip('-').isdigit():
        return int(value.strip())
    return value


def error_response(message: str, status: int = 400):
    return jsonify({"success": False, "error": message}), status
