"""
Cashier terminal tests against a mocked backend (httpx.MockTransport).

Verifies:
- The cart is cleared only after the server confirms the order with 201
- Rejections and connection failures leave the cart intact
- A second checkout while one is pending is refused
- Sessions persist across restarts and are dropped when the server rejects them
"""

import json
import threading
from datetime import timedelta

import httpx
import pytest

from cafepos.terminal import (
    APIClient,
    ApiError,
    CashierTerminal,
    CheckoutInProgressError,
    ConnectionFailedError,
    NotSignedInError,
    SessionStore,
    StoredSession,
)
from cafepos.terminal.client import CONNECTION_ERROR
from cafepos.time_utils import utcnow, to_utc_z
from cafepos.validation import ValidationError


JOLLOF = {"id": 1, "name": "Jollof Rice", "price_kobo": 80000, "category": "Rice"}
COKE = {"id": 2, "name": "Coke", "price_kobo": 30000, "category": "Drinks"}


def _expires(hours=8):
    return to_utc_z(utcnow() + timedelta(hours=hours))


def _redeem_response():
    return httpx.Response(200, json={
        "role": "cashier",
        "code": "ABC234",
        "token": "tok-1",
        "session": {"access_code": "ABC234", "expires_at": _expires()},
        "permissions": ["CREATE_ORDER", "VIEW_MENU"],
    })


class FakeBackend:
    """Routes requests to per-path handlers and records what was sent."""

    def __init__(self):
        self.requests = []
        self.order_response = lambda body: httpx.Response(201, json={"order": {"id": 1, "total_kobo": sum(
            i["unit_price_kobo"] * i["quantity"] for i in body["items"]
        )}})

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else {}
        self.requests.append((request.method, request.url.path, body, request.headers.get("Authorization")))
        if request.url.path == "/api/access-codes/redeem":
            if body.get("code") == "ABC234":
                return _redeem_response()
            return httpx.Response(400, json={"error": "Invalid access code"})
        if request.url.path == "/api/orders":
            return self.order_response(body)
        if request.url.path == "/api/auth/logout":
            return httpx.Response(200, json={"message": "Logout successful"})
        if request.url.path == "/api/menu":
            return httpx.Response(200, json={"items": [JOLLOF, COKE], "count": 2})
        if request.url.path == "/api/menu/categories":
            return httpx.Response(200, json={"categories": ["All", "Drinks", "Rice"]})
        return httpx.Response(404, json={"error": "Not found"})


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def terminal(backend, tmp_path):
    client = APIClient("http://pos.test", transport=httpx.MockTransport(backend))
    return CashierTerminal(client, SessionStore(tmp_path / "session.json"))


def _fill(terminal):
    terminal.add_menu_item(JOLLOF)
    terminal.add_menu_item(JOLLOF)
    terminal.add_menu_item(COKE)


class TestSession:
    def test_redeem_signs_in_and_persists(self, terminal, backend, tmp_path):
        session = terminal.redeem_code("ABC234")

        assert session.role == "cashier"
        assert terminal.permissions == {"CREATE_ORDER", "VIEW_MENU"}
        stored = SessionStore(tmp_path / "session.json").load()
        assert stored.token == "tok-1"

        terminal.load_menu()
        assert backend.requests[-1][3] == "Bearer tok-1"
        assert terminal.load_categories() == ["All", "Drinks", "Rice"]

    def test_invalid_code(self, terminal):
        with pytest.raises(ApiError) as exc:
            terminal.redeem_code("WRONG2")
        assert str(exc.value) == "Invalid access code"
        assert terminal.session is None

    def test_logout_keeps_cart(self, terminal, tmp_path):
        terminal.redeem_code("ABC234")
        _fill(terminal)
        terminal.logout()

        assert terminal.session is None
        assert SessionStore(tmp_path / "session.json").load() is None
        assert terminal.cart.item_count == 3

    def test_operations_need_a_session(self, terminal):
        with pytest.raises(NotSignedInError):
            terminal.load_menu()
        _fill(terminal)
        with pytest.raises(NotSignedInError):
            terminal.complete_order("cash")
        assert terminal.cart.item_count == 3

    def test_restore_drops_rejected_session(self, tmp_path):
        store = SessionStore(tmp_path / "session.json")
        store.save(StoredSession(token="stale", role="cashier", expires_at=_expires()))
        client = APIClient("http://pos.test", transport=httpx.MockTransport(
            lambda request: httpx.Response(401, json={"error": "Invalid or expired session"})
        ))

        assert CashierTerminal(client, store).restore_session() is None
        assert store.load() is None

    def test_restore_accepted_session(self, tmp_path):
        store = SessionStore(tmp_path / "session.json")
        store.save(StoredSession(token="live", role="cashier", expires_at=_expires(), access_code="ABC234"))
        client = APIClient("http://pos.test", transport=httpx.MockTransport(
            lambda request: httpx.Response(200, json={
                "role": "cashier", "expires_at": _expires(), "access_code": "ABC234", "user": None,
            })
        ))

        terminal = CashierTerminal(client, store)
        assert terminal.restore_session().token == "live"
        assert terminal.role == "cashier"


class TestCheckout:
    def test_success_clears_cart(self, terminal, backend):
        terminal.redeem_code("ABC234")
        _fill(terminal)

        order = terminal.complete_order("cash")

        assert order["total_kobo"] == 190000
        assert terminal.cart.is_empty
        method, path, body, _ = backend.requests[-1]
        assert (method, path, body["payment_method"]) == ("POST", "/api/orders", "cash")
        assert [(i["name"], i["quantity"]) for i in body["items"]] == [("Jollof Rice", 2), ("Coke", 1)]

    def test_server_error_keeps_cart(self, terminal, backend):
        terminal.redeem_code("ABC234")
        _fill(terminal)
        backend.order_response = lambda body: httpx.Response(
            503, json={"error": "Could not save the order. Please try again."}
        )

        with pytest.raises(ApiError) as exc:
            terminal.complete_order("cash")

        assert exc.value.status_code == 503
        assert terminal.cart.item_count == 3
        assert terminal.cart.total == 190000

    def test_unconfirmed_success_keeps_cart(self, terminal, backend):
        terminal.redeem_code("ABC234")
        _fill(terminal)
        backend.order_response = lambda body: httpx.Response(200, json={"order": {"id": 1}})

        with pytest.raises(ApiError):
            terminal.complete_order("cash")
        assert terminal.cart.item_count == 3

    def test_connection_failure_keeps_cart(self, terminal, backend):
        terminal.redeem_code("ABC234")
        _fill(terminal)

        def drop(body):
            raise httpx.ConnectError("connection refused")

        backend.order_response = drop

        with pytest.raises(ConnectionFailedError) as exc:
            terminal.complete_order("cash")
        assert str(exc.value) == CONNECTION_ERROR
        assert terminal.cart.item_count == 3

    def test_empty_cart(self, terminal):
        terminal.redeem_code("ABC234")
        with pytest.raises(ValidationError):
            terminal.complete_order("cash")

    def test_second_checkout_while_pending_is_refused(self, terminal, backend):
        terminal.redeem_code("ABC234")
        _fill(terminal)
        entered, release = threading.Event(), threading.Event()
        original = backend.order_response

        def slow(body):
            entered.set()
            release.wait(timeout=5)
            return original(body)

        backend.order_response = slow
        results = []
        worker = threading.Thread(target=lambda: results.append(terminal.complete_order("cash")))
        worker.start()
        assert entered.wait(timeout=5)

        assert terminal.checkout_in_progress
        with pytest.raises(CheckoutInProgressError):
            terminal.complete_order("cash")

        release.set()
        worker.join(timeout=5)
        assert len(results) == 1
        assert terminal.cart.is_empty
        assert sum(1 for r in backend.requests if r[1] == "/api/orders") == 1


class TestSessionStore:
    def test_expired_session_not_loaded(self, tmp_path):
        store = SessionStore(tmp_path / "s.json")
        store.save(StoredSession(token="t", role="cashier", expires_at=to_utc_z(utcnow() - timedelta(seconds=1))))
        assert store.load() is None

    def test_corrupt_file_reads_as_empty(self, tmp_path):
        path = tmp_path / "s.json"
        path.write_text("{not json")
        assert SessionStore(path).load() is None

    def test_clear_missing_file(self, tmp_path):
        SessionStore(tmp_path / "missing.json").clear()
