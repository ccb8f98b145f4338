"""Offer banner routes."""

from flask import Blueprint, jsonify
from flask_login import current_user, login_required

from ..services.offer_service import OfferError, OfferService
from .utils import error_response

offers_bp = Blueprint("offers", __name__)


@offers_bp.route("/", methods=["GET"])
@login_required
def list_offers():
    return jsonify({"success": True, "offers": [o.to_dict() for o in OfferService.get_active_offers()]})


@offers_bp.route("/<int:offer_id>/views", methods=["POST"])
@login_required
def record_view(offer_id):
    try:
        OfferService.record_view(offer_id, current_user.id)
    except OfferError as e:
        return error_response(str(e), 404)
    return jsonify({"success": True}), 201
