"""KYC routes: document upload, submission and status."""

import os

from flask import Blueprint, jsonify, request, send_file
from flask_login import current_user, login_required

from ..services.kyc_service import KycError, KycService
from .utils import error_response, json_body

kyc_bp = Blueprint("kyc", __name__)


@kyc_bp.route("/documents", methods=["POST"])
@login_required
def upload_document():
    """Upload one document as multipart form data (``document_type`` and ``file``)."""
    try:
        document = KycService.upload_document(
            current_user.id, request.form.get("document_type", ""), request.files.get("file")
        )
        return jsonify({"success": True, "document": document.to_dict()}), 201
    except KycError as e:
        return error_response(str(e))


@kyc_bp.route("/documents", methods=["GET"])
@login_required
def list_documents():
    documents = KycService.get_documents(current_user.id)
    return jsonify({"success": True, "documents": [d.to_dict() for d in documents]})


@kyc_bp.route("/documents/<int:document_id>/file", methods=["GET"])
@login_required
def download_document(document_id):
    """Stream a stored document to its owner or to staff."""
    try:
        document = KycService.get_document(document_id)
    except KycError as e:
        return error_response(str(e), 404)

    if document.player_id != current_user.id and not current_user.is_staff:
        return error_response("Document not found", 404)

    path = KycService.get_document_path(document)
    if not os.path.exists(path):
        return error_response("Document file is missing", 404)

    return send_file(path, mimetype=document.content_type, download_name=document.file_name)


@kyc_bp.route("/submit", methods=["POST"])
@login_required
def submit():
    try:
        player = KycService.submit_kyc(current_user.id, json_body())
        return jsonify({"success": True, "kyc_status": player.kyc_status})
    except KycError as e:
        return error_response(str(e))


@kyc_bp.route("/status", methods=["GET"])
@login_required
def status():
    return jsonify({"success": True, **KycService.get_status(current_user.id)})
