# Overview: Read-only access to the menu catalogue, plus the seed import used by the CLI.

from __future__ import annotations

from ..extensions import db
from ..models import MenuItem
from ..validation import ValidationError, parse_price_kobo


ALL_CATEGORIES = "All"


def list_menu_items(category: str | None = None, available_only: bool = False) -> list[MenuItem]:
    """Menu items sorted by name; category "All" or None means no filter."""
    query = db.session.query(MenuItem)
    if category and category != ALL_CATEGORIES:
        query = query.filter(MenuItem.category == category)
    if available_only:
        query = query.filter(MenuItem.is_available.is_(True))
    return query.order_by(MenuItem.name.asc()).all()


def get_categories() -> list[str]:
    """["All", <distinct categories sorted>]"""
    rows = db.session.query(MenuItem.category).distinct().all()
    return [ALL_CATEGORIES] + sorted(row[0] for row in rows)


def import_menu_items(records: list[dict]) -> tuple[int, int]:
    """
    Upsert menu items by (name, category) from a seed file.

    Each record needs name, price_kobo and category; available defaults to true.
    Returns (created, updated). Nothing is written if any record is invalid.
    """
    parsed = []
    for index, record in enumerate(records):
        name = (record.get("name") or "").strip()
        category = (record.get("category") or "").strip()
        if not name or not category:
            raise ValidationError(f"Record {index}: name and category are required")
        price = parse_price_kobo(record.get("price_kobo"), f"Record {index}: price_kobo")
        parsed.append((name, category, price, bool(record.get("available", True)), record.get("image_url")))

    created = updated = 0
    for name, category, price, available, image_url in parsed:
        item = db.session.query(MenuItem).filter_by(name=name, category=category).first()
        if item:
            item.price_kobo = price
            item.is_available = available
            item.image_url = image_url
            item.updated_at = db.func.now()
            updated += 1
        else:
            db.session.add(MenuItem(
                name=name,
                category=category,
                price_kobo=price,
                is_available=available,
                image_url=image_url,
            ))
            created += 1

    db.session.commit()
    return created, updated
