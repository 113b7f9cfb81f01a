# Overview: In-memory cart for one cashier terminal.

"""
Cart Engine

One Cart per terminal; it is never shared or merged. Mutations apply in call
order on the terminal's thread, so the cart does no locking.

INVARIANTS:
- At most one CartItem per id (adding an existing id increments quantity)
- quantity >= 1; setting it to 0 or less removes the item
- total and item_count are computed from the items on every read
"""

from __future__ import annotations

import copy
import secrets
import time
from collections import OrderedDict
from dataclasses import dataclass, asdict

from .validation import ValidationError, parse_positive_int, parse_price_kobo, MAX_LINE_QUANTITY


CUSTOM_PREFIX = "custom-"
CUSTOM_CATEGORY = "Custom"


@dataclass
class CartItem:
    id: str
    name: str
    unit_price_kobo: int
    category: str
    quantity: int = 1
    is_custom: bool = False
    menu_item_id: int | None = None

    @property
    def line_total_kobo(self) -> int:
        return self.unit_price_kobo * self.quantity

    @classmethod
    def from_menu_item(cls, item) -> "CartItem":
        """Capture name and price from a MenuItem (model or API dict) at add time."""
        if isinstance(item, dict):
            menu_item_id, name = item["id"], item["name"]
            price, category = item["price_kobo"], item["category"]
        else:
            menu_item_id, name = item.id, item.name
            price, category = item.price_kobo, item.category
        return cls(
            id=str(menu_item_id),
            name=name,
            unit_price_kobo=price,
            category=category,
            menu_item_id=int(menu_item_id),
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["line_total_kobo"] = self.line_total_kobo
        return data


def new_custom_id() -> str:
    """Time-ordered token so two custom entries never share an id."""
    return f"{CUSTOM_PREFIX}{time.time_ns():x}{secrets.token_hex(2)}"


class Cart:
    def __init__(self):
        self._items: "OrderedDict[str, CartItem]" = OrderedDict()

    @property
    def items(self) -> list[CartItem]:
        """Copies of the current items, in insertion order."""
        return [copy.copy(item) for item in self._items.values()]

    @property
    def total(self) -> int:
        return sum(item.unit_price_kobo * item.quantity for item in self._items.values())

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self._items.values())

    @property
    def is_empty(self) -> bool:
        return not self._items

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: str) -> bool:
        return item_id in self._items

    def get(self, item_id: str) -> CartItem | None:
        item = self._items.get(item_id)
        return copy.copy(item) if item else None

    def add_item(self, item) -> CartItem:
        """
        Add one unit of item.

        item is a CartItem (e.g. from add_custom_item) or a menu item. An
        existing entry with the same id gets quantity + 1; otherwise a new
        entry is inserted at quantity 1. Adding past MAX_LINE_QUANTITY raises
        ValidationError and leaves the entry unchanged.
        """
        entry = item if isinstance(item, CartItem) else CartItem.from_menu_item(item)

        existing = self._items.get(entry.id)
        if existing:
            if existing.quantity >= MAX_LINE_QUANTITY:
                raise ValidationError(f"quantity must be at most {MAX_LINE_QUANTITY}")
            existing.quantity += 1
            return copy.copy(existing)

        is_custom = entry.is_custom or entry.id.startswith(CUSTOM_PREFIX)
        menu_item_id = None
        if not is_custom:
            menu_item_id = entry.menu_item_id
            if menu_item_id is None and entry.id.isdigit():
                menu_item_id = int(entry.id)

        added = CartItem(
            id=entry.id,
            name=entry.name,
            unit_price_kobo=parse_price_kobo(entry.unit_price_kobo),
            category=entry.category,
            quantity=1,
            is_custom=is_custom,
            menu_item_id=menu_item_id,
        )
        self._items[added.id] = added
        return copy.copy(added)

    def add_custom_item(self, name: str, unit_price_kobo: int, category: str = CUSTOM_CATEGORY) -> CartItem:
        """Add an ad hoc priced item under a freshly synthesized id."""
        name = (name or "").strip()
        if not name:
            raise ValidationError("Custom item name is required")
        item = CartItem(
            id=new_custom_id(),
            name=name,
            unit_price_kobo=parse_price_kobo(unit_price_kobo),
            category=category or CUSTOM_CATEGORY,
            is_custom=True,
        )
        return self.add_item(item)

    def update_quantity(self, item_id: str, quantity: int) -> None:
        """Set quantity to exactly quantity; 0 or less removes the item. Unknown ids are ignored."""
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise ValidationError("quantity must be an integer")
        if quantity <= 0:
            self.remove_item(item_id)
            return
        if quantity > MAX_LINE_QUANTITY:
            raise ValidationError(f"quantity must be at most {MAX_LINE_QUANTITY}")
        item = self._items.get(item_id)
        if item:
            item.quantity = quantity

    def remove_item(self, item_id: str) -> None:
        self._items.pop(item_id, None)

    def clear(self) -> None:
        self._items.clear()

    def snapshot(self) -> list[CartItem]:
        """Deep copy of the items; later cart mutations never reach it."""
        return copy.deepcopy(list(self._items.values()))

    def to_dict(self) -> dict:
        return {
            "items": [item.to_dict() for item in self._items.values()],
            "total_kobo": self.total,
            "item_count": self.item_count,
        }

    @classmethod
    def from_lines(cls, lines) -> "Cart":
        """
        Rebuild a cart from checkout payload lines.

        Each line: id, name, unit_price_kobo, category, quantity, and optionally
        is_custom / menu_item_id. Raises ValidationError on malformed lines.
        """
        if not isinstance(lines, list):
            raise ValidationError("items must be a list")

        cart = cls()
        for index, line in enumerate(lines):
            if not isinstance(line, dict):
                raise ValidationError(f"items[{index}] must be an object")

            name = (line.get("name") or "").strip() if isinstance(line.get("name"), str) else ""
            if not name:
                raise ValidationError(f"items[{index}].name is required")

            is_custom = bool(line.get("is_custom"))
            menu_item_id = None
            if not is_custom:
                menu_item_id = parse_positive_int(line.get("menu_item_id", line.get("id")), f"items[{index}].menu_item_id", allow_none=False)

            item_id = str(line.get("id") or (menu_item_id if menu_item_id is not None else new_custom_id()))
            if is_custom and not item_id.startswith(CUSTOM_PREFIX):
                item_id = CUSTOM_PREFIX + item_id
            if item_id in cart:
                raise ValidationError(f"items[{index}]: duplicate item id {item_id}")

            quantity = parse_positive_int(line.get("quantity"), f"items[{index}].quantity", allow_none=False, maximum=MAX_LINE_QUANTITY)

            entry = CartItem(
                id=item_id,
                name=name,
                unit_price_kobo=parse_price_kobo(line.get("unit_price_kobo"), f"items[{index}].unit_price_kobo"),
                category=line.get("category") or (CUSTOM_CATEGORY if is_custom else "Other"),
                is_custom=is_custom,
                menu_item_id=menu_item_id,
            )
            cart.add_item(entry)
            cart.update_quantity(item_id, quantity)
        return cart
