# Overview: Cashier terminal state: session, cart and checkout against the backend API.

"""
Cashier Terminal

Owns the one Cart for this terminal. The cart is cleared only after the
server confirms the order with 201; any failure (rejection, server error,
lost connection) leaves it intact so the cashier can retry.

Only one checkout can be in flight; a second complete_order() call while the
first is pending raises CheckoutInProgressError.
"""

from __future__ import annotations

import threading

from ..cart import Cart, CartItem
from ..permissions import get_role_permissions
from ..validation import ValidationError
from .client import APIClient, ApiError
from .session_store import SessionStore, StoredSession


class NotSignedInError(Exception):
    """Raised when an operation needs a session and the terminal has none."""
    def __init__(self, message: str = "Sign in or enter an access code first"):
        super().__init__(message)


class CheckoutInProgressError(Exception):
    """Raised when checkout is requested while another is still pending."""
    def __init__(self, message: str = "An order is already being processed"):
        super().__init__(message)


class CashierTerminal:
    def __init__(self, client: APIClient, store: SessionStore | None = None):
        self.client = client
        self.store = store
        self.cart = Cart()
        self.session: StoredSession | None = None
        self._checkout_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    @property
    def role(self) -> str | None:
        return self.session.role if self.session else None

    @property
    def permissions(self) -> set[str]:
        return get_role_permissions(self.role) if self.session else set()

    def _begin_session(self, payload: dict) -> StoredSession:
        session_info = payload.get("session") or {}
        self.session = StoredSession(
            token=payload["token"],
            role=payload["role"],
            expires_at=session_info.get("expires_at"),
            access_code=session_info.get("access_code"),
            user=payload.get("user"),
        )
        self.client.token = self.session.token
        if self.store:
            self.store.save(self.session)
        return self.session

    def redeem_code(self, code: str) -> StoredSession:
        """Redeem an access code; on success the terminal is signed in for 8 hours."""
        return self._begin_session(self.client.post("/api/access-codes/redeem", json={"code": code}))

    def sign_in(self, email: str, password: str) -> StoredSession:
        return self._begin_session(self.client.post("/api/auth/signin", json={"email": email, "password": password}))

    def restore_session(self) -> StoredSession | None:
        """
        Resume a stored session if the server still accepts it.

        A session the server rejects (expired, deleted user) is dropped from
        the store. Connection failures propagate and keep the stored session.
        """
        stored = self.store.load() if self.store else None
        if not stored:
            return None

        self.client.token = stored.token
        try:
            payload = self.client.post("/api/auth/validate")
        except ApiError as e:
            if e.status_code != 401:
                raise
            self.client.token = None
            self.store.clear()
            return None

        stored.role = payload["role"]
        stored.expires_at = payload["expires_at"]
        stored.user = payload.get("user")
        self.session = stored
        return stored

    def logout(self) -> None:
        """Delete the server session and forget it locally. The cart is kept."""
        try:
            if self.session:
                self.client.post("/api/auth/logout")
        except ApiError as e:
            if e.status_code != 401:
                raise
        finally:
            self.session = None
            self.client.token = None
            if self.store:
                self.store.clear()

    def _require_session(self) -> None:
        if not self.session:
            raise NotSignedInError()

    # ------------------------------------------------------------------
    # Menu and cart
    # ------------------------------------------------------------------

    def load_menu(self, category: str | None = None) -> list[dict]:
        self._require_session()
        params = {"available_only": "true"}
        if category:
            params["category"] = category
        return self.client.get("/api/menu", params=params)["items"]

    def load_categories(self) -> list[str]:
        self._require_session()
        return self.client.get("/api/menu/categories")["categories"]

    def add_menu_item(self, item: dict) -> CartItem:
        return self.cart.add_item(item)

    def add_custom_item(self, name: str, unit_price_kobo: int, category: str = "Custom") -> CartItem:
        return self.cart.add_custom_item(name, unit_price_kobo, category)

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    @property
    def checkout_in_progress(self) -> bool:
        return self._checkout_lock.locked()

    def complete_order(self, payment_method: str) -> dict:
        """
        Submit the cart and return the stored order.

        Raises CheckoutInProgressError if another checkout is pending,
        ApiError for server rejections, ConnectionFailedError when the
        server could not be reached. The cart is untouched in every
        failure case.
        """
        self._require_session()
        if not self._checkout_lock.acquire(blocking=False):
            raise CheckoutInProgressError()
        try:
            if self.cart.is_empty:
                raise ValidationError("Cannot complete an order with an empty cart")
            snapshot = self.cart.snapshot()
            status, payload = self.client.request("POST", "/api/orders", json={
                "payment_method": payment_method,
                "items": [item.to_dict() for item in snapshot],
            })
            if status != 201:
                raise ApiError("Order was not confirmed by the server", status, payload)
            self.cart.clear()
            return payload["order"]
        finally:
            self._checkout_lock.release()
