"""
Access code tests.

Verifies:
- Generated codes use the restricted alphabet and never collide
- validate_code and redeem_code agree on every failure reason
- A single-use code admits exactly one redemption, including under a race
- Code management endpoints require MANAGE_ACCESS_CODES
"""

import threading
from datetime import timedelta

import pytest

from cafepos import create_app
from cafepos.extensions import db
from cafepos.models import AccessCode, SecurityEvent, Session
from cafepos.services import access_code_service, session_service
from cafepos.services.access_code_service import (
    AccessCodeError,
    CODE_ALPHABET,
    CODE_LENGTH,
    DEACTIVATED_CODE,
    EXHAUSTED_CODE,
    EXPIRED_CODE,
    INVALID_CODE,
)
from cafepos.time_utils import utcnow
from cafepos.validation import ValidationError


# =============================================================================
# GENERATION
# =============================================================================


class TestGenerate:
    def test_code_shape(self, db_session):
        access_code = access_code_service.generate_access_code("cashier")
        assert len(access_code.code) == CODE_LENGTH
        assert set(access_code.code) <= set(CODE_ALPHABET)
        assert access_code.used_count == 0
        assert access_code.is_active is True
        assert access_code.expires_at is None
        assert access_code.max_uses is None

    def test_alphabet_excludes_ambiguous_characters(self):
        for ch in "01ILO":
            assert ch not in CODE_ALPHABET

    def test_collision_draws_again(self, db_session, monkeypatch):
        existing = access_code_service.generate_access_code("cashier")
        draws = iter([existing.code, existing.code, "ZZZZ22"])
        monkeypatch.setattr(access_code_service, "generate_code", lambda: next(draws))

        fresh = access_code_service.generate_access_code("cashier")

        assert fresh.code == "ZZZZ22"
        assert db_session.query(AccessCode).count() == 2

    def test_constraints_are_stored(self, db_session):
        access_code = access_code_service.generate_access_code(
            "admin", expires_in_days=2, max_uses=3, shift="evening"
        )
        assert access_code.role == "admin"
        assert access_code.max_uses == 3
        assert access_code.shift == "evening"
        assert timedelta(days=1, hours=23) < access_code.expires_at - utcnow() <= timedelta(days=2)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"role": "superadmin"},
            {"role": "cashier", "max_uses": 0},
            {"role": "cashier", "expires_in_days": -1},
            {"role": "cashier", "shift": "afternoon"},
        ],
    )
    def test_rejects_bad_constraints(self, db_session, kwargs):
        role = kwargs.pop("role")
        with pytest.raises(ValidationError):
            access_code_service.generate_access_code(role, **kwargs)


# =============================================================================
# VALIDATE / REDEEM AGREEMENT
# =============================================================================


def _make_code(db_session, code="ABC234", **fields):
    access_code = AccessCode(
        code=code,
        role=fields.pop("role", "cashier"),
        created_at=utcnow() - timedelta(days=1),
        used_count=fields.pop("used_count", 0),
        is_active=fields.pop("is_active", True),
        **fields,
    )
    db_session.add(access_code)
    db_session.commit()
    return access_code


class TestValidateAndRedeem:
    def test_unknown_code(self, db_session):
        result = access_code_service.validate_code("NOPE22")
        assert result.valid is False
        assert result.reason == INVALID_CODE

        with pytest.raises(AccessCodeError, match=INVALID_CODE):
            access_code_service.redeem_code("NOPE22")

    def test_deactivated_code(self, db_session):
        _make_code(db_session, is_active=False)
        assert access_code_service.validate_code("ABC234").reason == DEACTIVATED_CODE
        with pytest.raises(AccessCodeError, match=DEACTIVATED_CODE):
            access_code_service.redeem_code("ABC234")

    def test_expired_code(self, db_session):
        _make_code(db_session, expires_at=utcnow() - timedelta(minutes=1))
        assert access_code_service.validate_code("ABC234").reason == EXPIRED_CODE
        with pytest.raises(AccessCodeError, match=EXPIRED_CODE):
            access_code_service.redeem_code("ABC234")

    def test_exhausted_code(self, db_session):
        _make_code(db_session, max_uses=2, used_count=2)
        assert access_code_service.validate_code("ABC234").reason == EXHAUSTED_CODE
        with pytest.raises(AccessCodeError, match=EXHAUSTED_CODE):
            access_code_service.redeem_code("ABC234")

    def test_deactivation_reported_before_expiry(self, db_session):
        _make_code(db_session, is_active=False, expires_at=utcnow() - timedelta(days=1))
        assert access_code_service.validate_code("ABC234").reason == DEACTIVATED_CODE

    def test_validate_does_not_consume(self, db_session):
        access_code = _make_code(db_session, max_uses=1)
        for _ in range(3):
            assert access_code_service.validate_code("ABC234").valid is True
        db_session.refresh(access_code)
        assert access_code.used_count == 0

    def test_input_is_normalized(self, db_session):
        _make_code(db_session)
        result = access_code_service.validate_code("  abc234 ")
        assert result.valid is True
        assert result.role == "cashier"

    def test_non_string_code_is_a_validation_error(self, db_session):
        with pytest.raises(ValidationError):
            access_code_service.validate_code(123456)
        with pytest.raises(ValidationError):
            access_code_service.redeem_code(["ABC234"])

    def test_redeem_opens_code_session(self, db_session):
        _make_code(db_session)
        redemption = access_code_service.redeem_code("abc234")

        assert redemption.role == "cashier"
        context = session_service.validate_session(redemption.token)
        assert context.role == "cashier"
        assert context.access_code == "ABC234"
        assert context.admin_user is None
        ttl = context.expires_at - redemption.session.created_at
        assert ttl == session_service.CODE_SESSION_TTL

    def test_single_use_code_redeems_once(self, db_session):
        access_code = _make_code(db_session, max_uses=1)

        assert access_code_service.redeem_code("ABC234").role == "cashier"
        with pytest.raises(AccessCodeError, match=EXHAUSTED_CODE):
            access_code_service.redeem_code("ABC234")

        db_session.refresh(access_code)
        assert access_code.used_count == 1
        assert access_code_service.validate_code("ABC234").valid is False
        assert db_session.query(Session).count() == 1

    def test_unlimited_code_keeps_counting(self, db_session):
        access_code = _make_code(db_session)
        for _ in range(4):
            access_code_service.redeem_code("ABC234")
        db_session.refresh(access_code)
        assert access_code.used_count == 4
        assert access_code.last_used_at is not None

    def test_failed_redemption_is_audited(self, db_session):
        with pytest.raises(AccessCodeError):
            access_code_service.redeem_code("NOPE22")
        event = db_session.query(SecurityEvent).filter_by(event_type="CODE_REDEEM_FAILED").one()
        assert event.success is False
        assert event.reason == INVALID_CODE

    def test_deactivate_keeps_existing_sessions(self, db_session):
        access_code = _make_code(db_session)
        redemption = access_code_service.redeem_code("ABC234")

        access_code_service.deactivate_code(access_code.id)

        assert session_service.validate_session(redemption.token) is not None
        with pytest.raises(AccessCodeError, match=DEACTIVATED_CODE):
            access_code_service.redeem_code("ABC234")

    def test_delete_unknown_code(self, db_session):
        with pytest.raises(AccessCodeError) as exc:
            access_code_service.delete_code(999)
        assert exc.value.status_code == 404

    def test_clear_demo_codes(self, db_session):
        _make_code(db_session, code="1234")
        _make_code(db_session, code="0000")
        _make_code(db_session, code="KEEP22")

        assert access_code_service.clear_demo_codes() == 2
        assert [c.code for c in access_code_service.list_codes()] == ["KEEP22"]


# =============================================================================
# CONCURRENT REDEMPTION
# =============================================================================


@pytest.fixture
def file_app(tmp_path):
    """Separate app on a file-backed SQLite DB so threads get real connections."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'race.sqlite3'}",
        'BCRYPT_ROUNDS': 4,
    })
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.engine.dispose()


def test_concurrent_redemptions_of_single_use_code(file_app):
    with file_app.app_context():
        db.session.add(AccessCode(code="RACE22", role="cashier", created_at=utcnow(), max_uses=1, used_count=0, is_active=True))
        db.session.commit()

    successes, failures = [], []
    barrier = threading.Barrier(8)

    def worker():
        with file_app.app_context():
            barrier.wait()
            try:
                successes.append(access_code_service.redeem_code("RACE22"))
            except AccessCodeError as e:
                failures.append(str(e))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(successes) == 1
    assert failures == [EXHAUSTED_CODE] * 7

    with file_app.app_context():
        access_code = db.session.query(AccessCode).filter_by(code="RACE22").one()
        assert access_code.used_count == 1
        assert db.session.query(Session).count() == 1


# =============================================================================
# HTTP
# =============================================================================


class TestAccessCodeRoutes:
    def test_validate_is_public_and_read_only(self, client, cashier_code):
        resp = client.post('/api/access-codes/validate', json={'code': cashier_code.code.lower()})
        assert resp.status_code == 200
        assert resp.json['valid'] is True
        assert resp.json['role'] == 'cashier'

    def test_redeem_returns_token_and_role(self, client, cashier_code):
        resp = client.post('/api/access-codes/redeem', json={'code': cashier_code.code})
        assert resp.status_code == 200
        assert resp.json['role'] == 'cashier'
        assert 'CREATE_ORDER' in resp.json['permissions']
        assert resp.json['token']

    def test_redeem_failure_reason(self, client, db_session):
        resp = client.post('/api/access-codes/redeem', json={'code': 'NOPE22'})
        assert resp.status_code == 400
        assert resp.json['error'] == INVALID_CODE

    @pytest.mark.parametrize('path', ['/api/access-codes/validate', '/api/access-codes/redeem'])
    @pytest.mark.parametrize('code', [123456, ['ABC234'], {'code': 'ABC234'}])
    def test_non_string_code_is_rejected(self, client, db_session, path, code):
        resp = client.post(path, json={'code': code})
        assert resp.status_code == 400
        assert resp.json['error'] == 'code must be a string'

    def test_manager_generates_cashier_code(self, client, manager_headers, manager):
        resp = client.post('/api/access-codes', json={'role': 'cashier', 'max_uses': 1}, headers=manager_headers)
        assert resp.status_code == 201
        assert resp.json['access_code']['max_uses'] == 1
        assert resp.json['access_code']['created_by_user_id'] == manager.id

    def test_manager_cannot_generate_admin_code(self, client, manager_headers):
        resp = client.post('/api/access-codes', json={'role': 'admin'}, headers=manager_headers)
        assert resp.status_code == 403

    def test_superadmin_generates_admin_code(self, client, superadmin_headers):
        resp = client.post('/api/access-codes', json={'role': 'admin'}, headers=superadmin_headers)
        assert resp.status_code == 201
        assert resp.json['access_code']['role'] == 'admin'

    def test_cashier_cannot_manage_codes(self, client, cashier_headers):
        assert client.get('/api/access-codes', headers=cashier_headers).status_code == 403
        assert client.post('/api/access-codes', json={'role': 'cashier'}, headers=cashier_headers).status_code == 403

    def test_list_deactivate_delete(self, client, superadmin_headers, cashier_code):
        resp = client.get('/api/access-codes', headers=superadmin_headers)
        assert resp.json['count'] == 1

        resp = client.post(f'/api/access-codes/{cashier_code.id}/deactivate', headers=superadmin_headers)
        assert resp.status_code == 200
        assert resp.json['access_code']['is_active'] is False

        resp = client.delete(f'/api/access-codes/{cashier_code.id}', headers=superadmin_headers)
        assert resp.status_code == 200
        assert client.get('/api/access-codes', headers=superadmin_headers).json['count'] == 0
