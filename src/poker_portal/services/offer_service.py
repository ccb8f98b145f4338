"""Promotional offer banners."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from flask import current_app

from ..database import db
from ..models.notification import PushNotification
from ..models.offer import OfferBanner, OfferView
from .notification_service import NotificationService


class OfferError(Exception):
    """Exception raised for offer errors."""
    pass


def _parse_date(value: Any, label: str) -> Optional[datetime]:
    """Naive UTC datetime, the form offer dates are stored and compared in."""
    if value in (None, ''):
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
        except ValueError:
            raise OfferError(f"Invalid {label}: {value}")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


class OfferService:
    """Service class for offer banners shown on the portal home screen."""

    @staticmethod
    def get_active_offers(now: Optional[datetime] = None) -> List[OfferBanner]:
        now = now or datetime.utcnow()
        offers = OfferBanner.query.filter_by(is_active=True).order_by(
            OfferBanner.display_order, OfferBanner.id
        ).all()
        return [offer for offer in offers if offer.is_live(now)]

    @staticmethod
    def create_offer(data: Dict[str, Any], staff_id: Optional[int] = None, announce: bool = False) -> OfferBanner:
        """Create an offer, optionally announcing it to every player."""
        title = data.get('title') or ''
        if not isinstance(title, str):
            raise OfferError("Offer title must be text")
        title = title.strip()
        if not title:
            raise OfferError("Offer title is required")

        start_date = _parse_date(data.get('start_date'), 'start date')
        end_date = _parse_date(data.get('end_date'), 'end date')
        if start_date and end_date and end_date < start_date:
            raise OfferError("Offer cannot end before it starts")

        display_order = data.get('display_order', 0)
        if isinstance(display_order, bool) or not isinstance(display_order, int):
            raise OfferError("display_order must be a whole number")

        offer = OfferBanner(
            title=title,
            description=data.get('description'),
            image_url=data.get('image_url'),
            offer_type=data.get('offer_type') or 'general',
            start_date=start_date,
            end_date=end_date,
            display_order=display_order,
            is_active=True,
            created_by=staff_id,
        )
        db.session.add(offer)
        db.session.commit()
        current_app.logger.info(f"Created offer {offer.id}: {offer.title}")

        if announce:
            NotificationService.create_notification(
                title=offer.title,
                message=offer.description or "A new offer is available at the club.",
                notification_type=PushNotification.TYPE_OFFER,
                data={'offer_id': offer.id},
                created_by=staff_id,
            )
        return offer

    @staticmethod
    def record_view(offer_id: int, player_id: int) -> OfferView:
        if not db.session.get(OfferBanner, offer_id):
            raise OfferError("Offer not found")

        view = OfferView(offer_id=offer_id, player_id=player_id)
        db.session.add(view)
        db.session.commit()
        return view

    @staticmethod
    def deactivate_offer(offer_id: int) -> OfferBanner:
        offer = db.session.get(OfferBanner, offer_id)
        if not offer:
            raise OfferError("Offer not found")

        offer.is_active = False
        db.session.commit()
        current_app.logger.info(f"Deactivated offer {offer.id}")
        return offer
