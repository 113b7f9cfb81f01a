"""
Admin authentication tests.

Verifies:
- First sign-up becomes superadmin, later sign-ups become managers
- Password policy and email validation
- One generic message for unknown email and wrong password
- Lockout after 5 consecutive failures, rejection during the lock even with
  the right password, and counter reset on success
"""

from datetime import timedelta

import pytest

from cafepos.models import AdminUser, SecurityEvent
from cafepos.services import auth_service, login_throttle_service, session_service
from cafepos.services.auth_service import (
    AccountLockedError,
    GENERIC_SIGN_IN_ERROR,
    InvalidCredentialsError,
    PasswordValidationError,
    RegistrationError,
)
from cafepos.time_utils import utcnow
from cafepos.validation import ValidationError

from conftest import PASSWORD


# =============================================================================
# SIGN-UP
# =============================================================================


class TestSignUp:
    def test_first_account_is_superadmin(self, db_session):
        first, _, _ = auth_service.sign_up("first@cafeteria.ng", PASSWORD, "First")
        second, _, _ = auth_service.sign_up("second@cafeteria.ng", PASSWORD, "Second")

        assert first.role == "superadmin"
        assert second.role == "manager"

    def test_returns_24_hour_session(self, db_session):
        user, session, token = auth_service.sign_up("first@cafeteria.ng", PASSWORD, "First")
        context = session_service.validate_session(token)

        assert context.admin_user_id == user.id
        assert session.expires_at - session.created_at == timedelta(hours=24)

    def test_email_is_normalized(self, db_session):
        user, _, _ = auth_service.sign_up("  Ada@Cafeteria.NG ", PASSWORD, "Ada")
        assert user.email == "ada@cafeteria.ng"

    def test_duplicate_email(self, db_session):
        auth_service.sign_up("ada@cafeteria.ng", PASSWORD, "Ada")
        with pytest.raises(RegistrationError):
            auth_service.sign_up("ADA@cafeteria.ng", PASSWORD, "Ada Again")

    @pytest.mark.parametrize("password", ["Short1", "alllowercase1", "ALLUPPERCASE1", "NoDigitsHere"])
    def test_weak_passwords(self, db_session, password):
        with pytest.raises(PasswordValidationError):
            auth_service.sign_up("ada@cafeteria.ng", password, "Ada")
        assert db_session.query(AdminUser).count() == 0

    def test_invalid_email(self, db_session):
        with pytest.raises(ValidationError):
            auth_service.sign_up("not-an-email", PASSWORD, "Ada")

    def test_password_is_hashed(self, db_session):
        user, _, _ = auth_service.sign_up("ada@cafeteria.ng", PASSWORD, "Ada")
        assert user.password_hash != PASSWORD
        assert user.password_hash.startswith("$2")
        assert auth_service.verify_password(PASSWORD, user.password_hash)


# =============================================================================
# SIGN-IN AND LOCKOUT
# =============================================================================


class TestSignIn:
    def _fail(self, email, times):
        for _ in range(times):
            with pytest.raises((InvalidCredentialsError, AccountLockedError)):
                auth_service.sign_in(email, "WrongPass1")

    def _expire_lock(self, db_session, email):
        lock = db_session.query(SecurityEvent).filter_by(event_type="ACCOUNT_LOCKED", action=email).one()
        lock.occurred_at = utcnow() - login_throttle_service.LOCKOUT_DURATION - timedelta(seconds=1)
        db_session.commit()

    def test_success_resets_counter(self, db_session, superadmin):
        self._fail(superadmin.email, 3)
        assert superadmin.failed_login_attempts == 3
        assert login_throttle_service.get_consecutive_failures(superadmin.email) == 3

        user, _, token = auth_service.sign_in(superadmin.email, PASSWORD)

        assert user.failed_login_attempts == 0
        assert user.last_login_at is not None
        assert login_throttle_service.get_consecutive_failures(superadmin.email) == 0
        assert session_service.validate_session(token).role == "superadmin"

    def test_unknown_email_and_wrong_password_read_the_same(self, db_session, superadmin):
        with pytest.raises(InvalidCredentialsError) as unknown:
            auth_service.sign_in("nobody@cafeteria.ng", PASSWORD)
        with pytest.raises(InvalidCredentialsError) as wrong:
            auth_service.sign_in(superadmin.email, "WrongPass1")

        assert str(unknown.value) == str(wrong.value) == GENERIC_SIGN_IN_ERROR

    def test_fifth_failure_locks_the_account(self, db_session, superadmin):
        self._fail(superadmin.email, 4)

        with pytest.raises(AccountLockedError) as exc:
            auth_service.sign_in(superadmin.email, "WrongPass1")

        assert 14 * 60 < exc.value.seconds_remaining <= 15 * 60
        assert "15 minutes" in str(exc.value)
        assert db_session.query(SecurityEvent).filter_by(event_type="ACCOUNT_LOCKED").count() == 1
        assert superadmin.locked_until is not None

    def test_correct_password_rejected_while_locked(self, db_session, superadmin):
        self._fail(superadmin.email, 5)

        with pytest.raises(AccountLockedError):
            auth_service.sign_in(superadmin.email, PASSWORD)

    def test_failures_are_tracked_per_normalized_email(self, db_session, superadmin):
        self._fail("  OWNER@Cafeteria.ng ", 5)

        with pytest.raises(AccountLockedError):
            auth_service.sign_in(superadmin.email, PASSWORD)

    def test_lock_expires(self, db_session, superadmin):
        self._fail(superadmin.email, 5)
        self._expire_lock(db_session, superadmin.email)

        user, _, _ = auth_service.sign_in(superadmin.email, PASSWORD)
        assert user.locked_until is None

    def test_failures_restart_after_expired_lock(self, db_session, superadmin):
        self._fail(superadmin.email, 5)
        self._expire_lock(db_session, superadmin.email)

        assert login_throttle_service.record_failed_attempt(superadmin.email) == 1
        assert login_throttle_service.is_account_locked(superadmin.email) == (False, None)

    def test_unknown_email_locks_like_a_registered_one(self, db_session, superadmin):
        outcomes = {}
        for email in (superadmin.email, "nobody@cafeteria.ng"):
            seen = []
            for _ in range(6):
                try:
                    auth_service.sign_in(email, "WrongPass1")
                except (InvalidCredentialsError, AccountLockedError) as e:
                    seen.append(type(e).__name__)
            outcomes[email] = seen

        assert outcomes[superadmin.email] == outcomes["nobody@cafeteria.ng"]
        assert outcomes[superadmin.email][-2:] == ["AccountLockedError", "AccountLockedError"]

    def test_unknown_email_still_checks_a_bcrypt_hash(self, db_session, monkeypatch):
        calls = []
        real_checkpw = auth_service.bcrypt.checkpw

        def counting_checkpw(password, hashed):
            calls.append(hashed)
            return real_checkpw(password, hashed)

        monkeypatch.setattr(auth_service.bcrypt, "checkpw", counting_checkpw)
        with pytest.raises(InvalidCredentialsError):
            auth_service.sign_in("nobody@cafeteria.ng", PASSWORD)

        assert len(calls) == 1

    def test_non_string_email_is_a_validation_error(self, db_session):
        with pytest.raises(ValidationError):
            auth_service.sign_in(12345, PASSWORD)

    def test_lockout_status_for_unknown_email(self, db_session):
        status = login_throttle_service.get_lockout_status("nobody@cafeteria.ng")
        assert status["locked"] is False
        assert status["failed_attempts"] == 0
        assert status["max_attempts"] == 5
        assert status["lockout_duration_minutes"] == 15


# =============================================================================
# HTTP
# =============================================================================


class TestAuthRoutes:
    def test_signup_then_validate(self, client, db_session):
        resp = client.post('/api/auth/signup', json={
            'email': 'ada@cafeteria.ng', 'password': PASSWORD, 'name': 'Ada',
        })
        assert resp.status_code == 201
        assert resp.json['role'] == 'superadmin'
        assert 'MANAGE_ADMINS' in resp.json['permissions']

        token = resp.json['token']
        resp = client.post('/api/auth/validate', headers={'Authorization': f'Bearer {token}'})
        assert resp.status_code == 200
        assert resp.json['user']['email'] == 'ada@cafeteria.ng'

    def test_signup_missing_fields(self, client, db_session):
        resp = client.post('/api/auth/signup', json={'email': 'ada@cafeteria.ng'})
        assert resp.status_code == 400

    def test_signup_weak_password(self, client, db_session):
        resp = client.post('/api/auth/signup', json={
            'email': 'ada@cafeteria.ng', 'password': 'weak', 'name': 'Ada',
        })
        assert resp.status_code == 400
        assert 'at least 8 characters' in resp.json['error']

    def test_signup_disabled_after_first_account(self, app, client, superadmin):
        app.config['ALLOW_SELF_SIGNUP'] = False
        try:
            resp = client.post('/api/auth/signup', json={
                'email': 'late@cafeteria.ng', 'password': PASSWORD, 'name': 'Late',
            })
        finally:
            app.config['ALLOW_SELF_SIGNUP'] = True
        assert resp.status_code == 403

    def test_signin_wrong_password(self, client, superadmin):
        resp = client.post('/api/auth/signin', json={'email': superadmin.email, 'password': 'WrongPass1'})
        assert resp.status_code == 401
        assert resp.json['error'] == GENERIC_SIGN_IN_ERROR

    def test_signin_lockout_returns_429(self, client, superadmin):
        for _ in range(4):
            client.post('/api/auth/signin', json={'email': superadmin.email, 'password': 'WrongPass1'})
        resp = client.post('/api/auth/signin', json={'email': superadmin.email, 'password': 'WrongPass1'})

        assert resp.status_code == 429
        assert resp.json['locked'] is True
        assert resp.json['retry_after_minutes'] == 15

        resp = client.get(f'/api/auth/lockout-status/{superadmin.email}')
        assert resp.json['locked'] is True
        assert resp.json['failed_attempts'] == 5

    def test_logout_deletes_session(self, client, superadmin_headers):
        assert client.post('/api/auth/logout', headers=superadmin_headers).status_code == 200
        assert client.post('/api/auth/validate', headers=superadmin_headers).status_code == 401
        assert client.post('/api/auth/logout', headers=superadmin_headers).status_code == 401

    def test_known_and_unknown_emails_get_the_same_responses(self, client, superadmin):
        results = {}
        for email in (superadmin.email, 'nobody@cafeteria.ng'):
            statuses = [
                client.post('/api/auth/signin', json={'email': email, 'password': 'WrongPass1'}).status_code
                for _ in range(6)
            ]
            status = client.get(f'/api/auth/lockout-status/{email}').json
            results[email] = (statuses, status)

        known_statuses, known_status = results[superadmin.email]
        unknown_statuses, unknown_status = results['nobody@cafeteria.ng']

        assert known_statuses == unknown_statuses == [401, 401, 401, 401, 429, 429]
        assert known_status.pop('seconds_until_unlock') > 14 * 60
        assert unknown_status.pop('seconds_until_unlock') > 14 * 60
        assert known_status == unknown_status
        assert known_status['locked'] is True
        assert known_status['failed_attempts'] == 5

    def test_lockout_status_after_one_failure_is_the_same(self, client, superadmin):
        for email in (superadmin.email, 'nobody@cafeteria.ng'):
            client.post('/api/auth/signin', json={'email': email, 'password': 'WrongPass1'})

        known = client.get(f'/api/auth/lockout-status/{superadmin.email}').json
        unknown = client.get('/api/auth/lockout-status/nobody@cafeteria.ng').json

        assert known == unknown
        assert known['failed_attempts'] == 1

    @pytest.mark.parametrize('payload', [
        {'email': 12345, 'password': PASSWORD},
        {'email': ['owner@cafeteria.ng'], 'password': PASSWORD},
        {'email': 'owner@cafeteria.ng', 'password': 12345678},
    ])
    def test_signin_non_string_fields(self, client, superadmin, payload):
        resp = client.post('/api/auth/signin', json=payload)
        assert resp.status_code == 400
        assert 'must be a string' in resp.json['error']

    def test_signup_non_string_name(self, client, db_session):
        resp = client.post('/api/auth/signup', json={
            'email': 'ada@cafeteria.ng', 'password': PASSWORD, 'name': 42,
        })
        assert resp.status_code == 400
