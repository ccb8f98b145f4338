"""Food and beverage models: the menu, promotional ads and player orders."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..database import db


class MenuItem(db.Model):
    """An item on the club's food and beverage menu. Prices are whole currency units."""

    __tablename__ = "food_beverage_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    price: Mapped[int] = mapped_column(Integer, nullable=False)
    category: Mapped[str] = mapped_column(String(40), nullable=False, default="food")
    image_url: Mapped[Optional[str]] = mapped_column(String(500))
    is_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price": self.price,
            "category": self.category,
            "image_url": self.image_url,
            "is_available": self.is_available,
            "display_order": self.display_order,
        }

    def __repr__(self) -> str:
        return f"<MenuItem {self.id} {self.name} {self.price}>"


class FoodAd(db.Model):
    """An image or video ad shown on the food and beverage tab."""

    __tablename__ = "food_beverage_ads"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    image_url: Mapped[Optional[str]] = mapped_column(String(500))
    video_url: Mapped[Optional[str]] = mapped_column(String(500))
    target_url: Mapped[Optional[str]] = mapped_column(String(500))
    ad_type: Mapped[str] = mapped_column(String(20), nullable=False, default="image")
    start_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    def is_live(self, now: datetime) -> bool:
        if not self.is_active:
            return False
        if self.start_date and now < self.start_date:
            return False
        if self.end_date and now > self.end_date:
            return False
        return True

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "image_url": self.image_url,
            "video_url": self.video_url,
            "target_url": self.target_url,
            "ad_type": self.ad_type,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "display_order": self.display_order,
            "is_active": self.is_active,
        }


class FoodOrder(db.Model):
    """A player's order from the menu.

    ``items`` keeps a snapshot of each line (item id, name, unit price and
    quantity) so later menu changes do not rewrite past orders.
    """

    __tablename__ = "food_orders"

    STATUS_PENDING = "pending"
    STATUS_PREPARING = "preparing"
    STATUS_DELIVERED = "delivered"
    STATUS_CANCELLED = "cancelled"
    STATUSES = (STATUS_PENDING, STATUS_PREPARING, STATUS_DELIVERED, STATUS_CANCELLED)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    player_id: Mapped[int] = mapped_column(Integer, ForeignKey("players.id"), nullable=False, index=True)
    items: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, nullable=False)
    total_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    table_number: Mapped[Optional[str]] = mapped_column(String(20))
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=STATUS_PENDING)
    order_source: Mapped[str] = mapped_column(String(20), nullable=False, default="player_portal")
    handled_by: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("players.id"))

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    player: Mapped["Player"] = relationship("Player", foreign_keys=[player_id])

    @property
    def is_open(self) -> bool:
        return self.status in (self.STATUS_PENDING, self.STATUS_PREPARING)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "player_id": self.player_id,
            "player_name": self.player.full_name if self.player else None,
            "items": self.items,
            "item_count": sum(line["quantity"] for line in self.items or []),
            "total_amount": self.total_amount,
            "notes": self.notes,
            "table_number": self.table_number,
            "status": self.status,
            "order_source": self.order_source,
            "handled_by": self.handled_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<FoodOrder {self.id} player={self.player_id} {self.status}>"
