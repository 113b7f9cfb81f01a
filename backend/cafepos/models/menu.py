from __future__ import annotations

from ..extensions import db
from cafepos.time_utils import to_utc_z


class MenuItem(db.Model):
    """Menu catalogue entry. Read-only for the ordering core."""
    __tablename__ = "menu_items"
    __table_args__ = (
        db.Index("ix_menu_items_category", "category"),
        db.Index("ix_menu_items_is_available", "is_available"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    price_kobo = db.Column(db.Integer, nullable=False)
    category = db.Column(db.String(64), nullable=False)
    image_url = db.Column(db.String(512), nullable=True)
    is_available = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "price_kobo": self.price_kobo,
            "category": self.category,
            "image_url": self.image_url,
            "is_available": self.is_available,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
