"""Public table listing routes."""

from flask import Blueprint, jsonify
from flask_login import login_required

from ..services.table_service import TableService, TableValidationError
from .utils import error_response

tables_bp = Blueprint("tables", __name__)


@tables_bp.route("/", methods=["GET"])
@login_required
def list_tables():
    """Active tables with live stats and waiting list counts."""
    return jsonify({"success": True, "tables": TableService.get_active_tables()})


@tables_bp.route("/<int:table_id>", methods=["GET"])
@login_required
def get_table(table_id):
    try:
        table = TableService.get_table(table_id)
    except TableValidationError as e:
        return error_response(str(e), 404)
    return jsonify({"success": True, "table": TableService.serialize(table)})
