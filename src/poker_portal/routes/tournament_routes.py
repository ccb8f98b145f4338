"""Tournament schedule routes."""

from flask import Blueprint, jsonify, request
from flask_login import login_required

from ..services.tournament_service import TournamentError, TournamentService
from .utils import error_response

tournaments_bp = Blueprint("tournaments", __name__)


@tournaments_bp.route("/", methods=["GET"])
@login_required
def list_tournaments():
    upcoming = request.args.get("upcoming", "").lower() in ("1", "true", "yes")
    try:
        tournaments = TournamentService.list_tournaments(status=request.args.get("status"), upcoming_only=upcoming)
    except TournamentError as e:
        return error_response(str(e))
    return jsonify({"success": True, "tournaments": [t.to_dict() for t in tournaments]})


@tournaments_bp.route("/<int:tournament_id>", methods=["GET"])
@login_required
def get_tournament(tournament_id):
    try:
        tournament = TournamentService.get_tournament(tournament_id)
    except TournamentError as e:
        return error_response(str(e), 404)
    return jsonify({"success": True, "tournament": tournament.to_dict()})
