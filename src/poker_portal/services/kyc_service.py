"""KYC document collection and review."""

import os
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from flask import current_app
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from ..database import db
from ..models.kyc_document import KycDocument
from ..models.notification import PushNotification
from ..models.player import Player
from .notification_service import NotificationService
from .player_manager import PlayerManager, PlayerValidationError
from .websocket_manager import PortalEvent, notify_player, notify_staff


class KycError(Exception):
    """Exception raised for KYC errors."""
    pass


class KycService:
    """Service class for the KYC lifecycle.

    A player moves from ``pending`` to ``submitted`` once every required
    document is uploaded and the details form is sent. Staff review each
    document; the player's status follows the latest document of each
    required type.
    """

    @staticmethod
    def required_documents() -> List[str]:
        return list(current_app.config.get('KYC_REQUIRED_DOCUMENTS', ['id', 'address', 'photo']))

    @staticmethod
    def _get_player(player_id: int) -> Player:
        player = db.session.get(Player, player_id)
        if not player or not player.is_active:
            raise KycError("Player not found")
        return player

    @staticmethod
    def _extension(filename: str) -> str:
        return filename.rsplit('.', 1)[1].lower() if '.' in filename else ''

    @staticmethod
    def upload_document(player_id: int, document_type: str, file: FileStorage) -> KycDocument:
        """Store an uploaded document and record it as pending review.

        Raises:
            KycError: If the type or file is not accepted, or the player is already verified
        """
        player = KycService._get_player(player_id)
        if player.is_kyc_approved:
            raise KycError("KYC is already approved")

        if document_type not in KycService.required_documents():
            raise KycError(f"Unknown document type: {document_type}")

        if file is None or not file.filename:
            raise KycError("No file provided")

        original_name = secure_filename(file.filename) or 'document'
        extension = KycService._extension(original_name)
        allowed = current_app.config.get('KYC_ALLOWED_EXTENSIONS', ['png', 'jpg', 'jpeg', 'pdf'])
        if extension not in allowed:
            raise KycError(f"File type not allowed. Allowed types: {', '.join(allowed)}")

        upload_folder = current_app.config['UPLOAD_FOLDER']
        os.makedirs(upload_folder, exist_ok=True)
        stored_name = f"{player.id}_{document_type}_{uuid.uuid4().hex}.{extension}"
        path = os.path.join(upload_folder, stored_name)
        file.save(path)

        document = KycDocument(
            player_id=player.id,
            document_type=document_type,
            file_name=original_name,
            stored_name=stored_name,
            content_type=file.mimetype,
            file_size=os.path.getsize(path),
            status=KycDocument.STATUS_PENDING,
        )
        db.session.add(document)
        db.session.commit()

        current_app.logger.info(f"KYC document {document.id} ({document_type}) uploaded by player {player.id}")
        return document

    @staticmethod
    def _latest_documents(player_id: int) -> Dict[str, KycDocument]:
        latest: Dict[str, KycDocument] = {}
        documents = KycDocument.query.filter_by(player_id=player_id).order_by(
            KycDocument.created_at, KycDocument.id
        ).all()
        for document in documents:
            latest[document.document_type] = document
        return latest

    @staticmethod
    def submit_kyc(player_id: int, details: Dict[str, Any]) -> Player:
        """Send the KYC details form for review.

        Raises:
            KycError: If details are invalid or a required document is missing or rejected
        """
        player = KycService._get_player(player_id)
        if player.is_kyc_approved:
            raise KycError("KYC is already approved")

        first_name = (details.get('first_name') or '').strip()
        last_name = (details.get('last_name') or '').strip()
        phone = (details.get('phone') or '').strip()
        pan_card = (details.get('pan_card_number') or '').strip().upper()
        try:
            PlayerManager.validate_name(first_name, "First name")
            PlayerManager.validate_name(last_name, "Last name")
            PlayerManager.validate_phone(phone)
            PlayerManager.validate_pan_card(pan_card)
        except PlayerValidationError as e:
            raise KycError(str(e))

        latest = KycService._latest_documents(player.id)
        missing = [doc_type for doc_type in KycService.required_documents() if doc_type not in latest]
        if missing:
            raise KycError(f"Missing documents: {', '.join(missing)}")
        rejected = [doc_type for doc_type, document in latest.items()
                    if document.status == KycDocument.STATUS_REJECTED]
        if rejected:
            raise KycError(f"Please re-upload rejected documents: {', '.join(sorted(rejected))}")

        player.first_name = first_name
        player.last_name = last_name
        player.phone = phone
        player.pan_card_number = pan_card
        if details.get('address'):
            player.address = details['address'].strip()
        player.kyc_status = Player.KYC_SUBMITTED
        player.kyc_submitted_at = datetime.utcnow()
        db.session.commit()

        current_app.logger.info(f"Player {player.id} submitted KYC for review")
        notify_staff(PortalEvent.KYC_SUBMITTED, {
            'player_id': player.id,
            'player_name': player.full_name,
            'submitted_at': player.kyc_submitted_at.isoformat(),
        })
        return player

    @staticmethod
    def _recompute_status(player: Player) -> str:
        latest = KycService._latest_documents(player.id)
        statuses = [latest[doc_type].status if doc_type in latest else None
                    for doc_type in KycService.required_documents()]

        if KycDocument.STATUS_REJECTED in statuses:
            return Player.KYC_REJECTED
        if statuses and all(status == KycDocument.STATUS_APPROVED for status in statuses):
            return Player.KYC_APPROVED
        return Player.KYC_SUBMITTED

    @staticmethod
    def review_document(document_id: int, staff_id: int, approve: bool,
                        notes: Optional[str] = None) -> KycDocument:
        """Approve or reject a document and update the player's KYC status."""
        document = KycService.get_document(document_id)
        document.status = KycDocument.STATUS_APPROVED if approve else KycDocument.STATUS_REJECTED
        document.review_notes = notes
        document.reviewed_by = staff_id
        document.reviewed_at = datetime.utcnow()
        db.session.flush()

        player = document.player
        previous_status = player.kyc_status
        # Players who have not sent the details form yet stay pending
        if player.kyc_submitted_at is not None:
            player.kyc_status = KycService._recompute_status(player)
            if player.kyc_status == Player.KYC_APPROVED and previous_status != Player.KYC_APPROVED:
                player.kyc_verified_at = datetime.utcnow()
        db.session.commit()

        current_app.logger.info(
            f"KYC document {document.id} {document.status} by staff {staff_id}; player {player.id} is {player.kyc_status}"
        )

        notify_player(player.id, PortalEvent.KYC_STATUS_UPDATE, {
            'kyc_status': player.kyc_status,
            'document': document.to_dict(),
        })
        if player.kyc_status != previous_status:
            if player.kyc_status == Player.KYC_APPROVED:
                title, message = "KYC approved", "Your account is verified. Welcome to the club!"
            elif player.kyc_status == Player.KYC_REJECTED:
                title = "KYC documents need attention"
                message = f"Your {document.document_type} document was rejected. Please upload it again."
                if notes:
                    message += f" Reason: {notes}"
            else:
                title, message = "KYC under review", "Your documents are being reviewed."
            NotificationService.create_notification(
                title=title,
                message=message,
                player_id=player.id,
                notification_type=PushNotification.TYPE_KYC,
                data={'kyc_status': player.kyc_status},
                created_by=staff_id,
            )
        return document

    @staticmethod
    def get_status(player_id: int) -> Dict[str, Any]:
        player = KycService._get_player(player_id)
        document_status = {
            doc_type: {status: 0 for status in KycDocument.STATUSES}
            for doc_type in KycService.required_documents()
        }
        for document in KycDocument.query.filter_by(player_id=player.id).all():
            counts = document_status.setdefault(
                document.document_type, {status: 0 for status in KycDocument.STATUSES}
            )
            counts[document.status] = counts.get(document.status, 0) + 1

        return {
            'kyc_status': player.kyc_status,
            'pan_card_status': 'provided' if player.pan_card_number else 'missing',
            'required_documents': KycService.required_documents(),
            'document_status': document_status,
            'submitted_at': player.kyc_submitted_at.isoformat() if player.kyc_submitted_at else None,
            'verified_at': player.kyc_verified_at.isoformat() if player.kyc_verified_at else None,
        }

    @staticmethod
    def get_documents(player_id: int) -> List[KycDocument]:
        return KycDocument.query.filter_by(player_id=player_id).order_by(
            KycDocument.created_at.desc(), KycDocument.id.desc()
        ).all()

    @staticmethod
    def get_document(document_id: int) -> KycDocument:
        document = db.session.get(KycDocument, document_id)
        if not document:
            raise KycError("Document not found")
        return document

    @staticmethod
    def get_document_path(document: KycDocument) -> str:
        return os.path.join(current_app.config['UPLOAD_FOLDER'], document.stored_name)

    @staticmethod
    def get_pending_reviews() -> List[Dict[str, Any]]:
        """Submitted players with their documents, oldest submission first."""
        players = Player.query.filter_by(kyc_status=Player.KYC_SUBMITTED).order_by(Player.kyc_submitted_at).all()
        return [
            {
                'player': player.to_dict(),
                'pan_card_number': player.pan_card_number,
                'documents': [document.to_dict() for document in KycService.get_documents(player.id)],
            }
            for player in players
        ]
