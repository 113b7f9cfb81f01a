"""
Pytest fixtures for cafeteria POS backend tests.

Provides an in-memory database, the Flask test client, and ready-made
sessions for each role (superadmin, manager, vc, cashier code).
"""

import pytest

from cafepos import create_app
from cafepos.extensions import db
from cafepos.services import access_code_service, auth_service, menu_service, session_service


PASSWORD = "Password123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        # Minimum bcrypt cost keeps sign-in tests fast
        'BCRYPT_ROUNDS': 4,
        'CAFETERIA_UTC_OFFSET_HOURS': 1,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def superadmin(db_session):
    return auth_service.create_superadmin("owner@cafeteria.ng", PASSWORD, "Ada Owner")


def _admin_with_role(db_session, superadmin, email, name, role):
    actor = context_for_user(superadmin)
    return auth_service.create_admin_user(actor, email, PASSWORD, name, role=role)


@pytest.fixture(scope='function')
def manager(db_session, superadmin):
    return _admin_with_role(db_session, superadmin, "manager@cafeteria.ng", "Musa Manager", "manager")


@pytest.fixture(scope='function')
def vc(db_session, superadmin):
    return _admin_with_role(db_session, superadmin, "vc@cafeteria.ng", "Vera Chancellor", "vc")


@pytest.fixture(scope='function')
def superadmin_context(superadmin):
    return context_for_user(superadmin)


@pytest.fixture(scope='function')
def cashier_code(db_session):
    return access_code_service.generate_access_code("cashier")


@pytest.fixture(scope='function')
def cashier_context(cashier_code):
    redemption = access_code_service.redeem_code(cashier_code.code)
    return session_service.validate_session(redemption.token)


@pytest.fixture(scope='function')
def superadmin_headers(client, superadmin):
    return auth_headers(sign_in(client, superadmin.email))


@pytest.fixture(scope='function')
def manager_headers(client, manager):
    return auth_headers(sign_in(client, manager.email))


@pytest.fixture(scope='function')
def vc_headers(client, vc):
    return auth_headers(sign_in(client, vc.email))


@pytest.fixture(scope='function')
def cashier_headers(client, cashier_code):
    resp = client.post('/api/access-codes/redeem', json={'code': cashier_code.code})
    assert resp.status_code == 200, resp.json
    return auth_headers(resp.json['token'])


@pytest.fixture(scope='function')
def menu_items(db_session):
    """Jollof Rice (NGN 800), Coke (NGN 300), Meat Pie (NGN 500)."""
    menu_service.import_menu_items([
        {"name": "Jollof Rice", "price_kobo": 80000, "category": "Rice"},
        {"name": "Coke", "price_kobo": 30000, "category": "Drinks"},
        {"name": "Meat Pie", "price_kobo": 50000, "category": "Snacks"},
    ])
    return {item.name: item for item in menu_service.list_menu_items()}


def context_for_user(user):
    """SessionContext for an admin, via a real session row."""
    _, token = session_service.create_session(user.role, admin_user_id=user.id)
    return session_service.validate_session(token)


def sign_in(client, email: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for an admin."""
    response = client.post('/api/auth/signin', json={
        'email': email,
        'password': password
    })
    assert response.status_code == 200, response.json
    return response.json.get('token')


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
