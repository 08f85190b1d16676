# Overview: Pytest coverage for one-time QR code login of customers.

"""
QR Login Tests

SECURITY TESTS: a QR code logs a customer in exactly once.

- Unknown, expired and used codes produce the same error
- The redeem is a conditional write: a stale read that still sees the code
  as valid cannot redeem it a second time
- A failure before commit leaves the code valid
"""

from datetime import timedelta
from unittest.mock import patch

import jwt
import pytest
from sqlalchemy import update

from wellpos.errors import UnauthorizedError
from wellpos.models import AuditRecord, Customer, LoginSession, QRCode
from wellpos.services import auth_service, qr_service, session_service
from wellpos.time_utils import utcnow

from conftest import auth_headers, login


@pytest.fixture
def qr(db_session, customer):
    code = qr_service.add_qr_code(customer)
    db_session.commit()
    return code


class TestQrLogin:
    """POST /api/auth/login-qr"""

    def test_code_logs_in_once(self, client, db_session, customer, qr):
        first = client.post('/api/auth/login-qr', json={'qr_code': qr.code})
        assert first.status_code == 200
        body = first.get_json()
        assert body["customer"]["id"] == customer.id
        assert body["access_token"] and body["refresh_token"]

        second = client.post('/api/auth/login-qr', json={'qr_code': qr.code})
        assert second.status_code == 401
        assert second.get_json()["message"] == "Invalid or expired QR code"

        stored = db_session.query(QRCode).filter_by(code=qr.code).one()
        assert stored.is_valid is False
        assert stored.used_at is not None

    def test_unknown_expired_and_used_codes_look_alike(self, client, db_session, customer, qr):
        expired = qr_service.add_qr_code(customer)
        expired.expires_at = utcnow() - timedelta(minutes=1)
        db_session.commit()
        client.post('/api/auth/login-qr', json={'qr_code': qr.code})

        messages = set()
        for code in ("no-such-code", expired.code, qr.code):
            response = client.post('/api/auth/login-qr', json={'qr_code': code})
            assert response.status_code == 401
            messages.add(response.get_json()["message"])
        assert messages == {"Invalid or expired QR code"}

    def test_disabled_customer_rejected(self, client, db_session, customer, qr):
        customer.enabled = False
        db_session.commit()

        response = client.post('/api/auth/login-qr', json={'qr_code': qr.code})
        assert response.status_code == 401

    def test_missing_code_rejected(self, client, db_session):
        response = client.post('/api/auth/login-qr', json={})
        assert response.status_code == 400

    def test_customer_session_lifetime_is_one_day(self, client, qr):
        body = client.post('/api/auth/login-qr', json={'code': qr.code}).get_json()
        claims = jwt.decode(body["refresh_token"], options={"verify_signature": False})
        assert claims["exp"] - claims["iat"] == 24 * 60 * 60
        assert claims["kind"] == "customer"
        assert "role" not in claims

    def test_login_is_audited(self, client, db_session, customer, qr):
        client.post('/api/auth/login-qr', json={'qr_code': qr.code})

        record = db_session.query(AuditRecord).filter_by(action="LOGIN_QR").one()
        assert record.entity_type == "Customer"
        assert record.customer_id == customer.id
        assert record.new_values["qr_code_id"] == qr.id


class TestQrRedeemAtomicity:
    """Redeem and session creation succeed or fail together."""

    def test_stale_read_cannot_redeem(self, db_session, customer, qr):
        # Load the row, then let "another request" redeem it behind our back
        db_session.query(QRCode).filter_by(code=qr.code).first()
        db_session.execute(
            update(QRCode)
            .where(QRCode.id == qr.id)
            .values(is_valid=False, used_at=utcnow())
            .execution_options(synchronize_session=False)
        )

        with pytest.raises(UnauthorizedError):
            auth_service.login_with_qr(qr.code)

        assert db_session.query(LoginSession).count() == 0

    def test_failure_before_commit_keeps_code_valid(self, db_session, qr):
        with patch.object(session_service, "add_session", side_effect=RuntimeError("db went away")):
            with pytest.raises(RuntimeError):
                auth_service.login_with_qr(qr.code)

        assert qr_service.validate_qr_code(qr.code) is True
        assert db_session.query(LoginSession).count() == 0

        # The code still works afterwards
        result = auth_service.login_with_qr(qr.code)
        assert result["customer"]["id"] == qr.customer_id


class TestCustomerAccess:
    """A customer principal sees only their own record."""

    def test_customer_reads_own_record_only(self, client, db_session, branch, customer, qr):
        other = Customer(branch_id=branch.id, firstname="Otto", lastname="Andere", email="otto@example.com")
        db_session.add(other)
        db_session.commit()

        tokens = client.post('/api/auth/login-qr', json={'qr_code': qr.code}).get_json()
        headers = auth_headers(tokens["access_token"])

        assert client.get(f'/api/customers/{customer.id}', headers=headers).status_code == 200
        assert client.get(f'/api/customers/{other.id}', headers=headers).status_code == 404
        assert client.get(f'/api/customers/{other.id}/orders', headers=headers).status_code == 404

    def test_me_returns_customer_profile(self, client, customer, qr):
        tokens = client.post('/api/auth/login-qr', json={'qr_code': qr.code}).get_json()
        response = client.get('/api/auth/me', headers=auth_headers(tokens["access_token"]))
        assert response.status_code == 200
        assert response.get_json()["customer"]["email"] == customer.email


class TestQrIssuance:
    """Staff-issued codes."""

    def test_staff_generates_code(self, client, db_session, admin, customer):
        tokens = login(client, admin.email)
        response = client.post(f'/api/customers/{customer.id}/qr-code', headers=auth_headers(tokens["access_token"]))
        assert response.status_code == 201
        code = response.get_json()["code"]

        assert client.get(f'/api/medical-form/validate/{code}').get_json() == {"valid": True}

        record = db_session.query(AuditRecord).filter_by(action="QR_GENERATE").one()
        assert record.new_values["qr_code"] == "[HIDDEN]"

    def test_validate_reports_used_code_invalid(self, client, qr):
        client.post('/api/auth/login-qr', json={'qr_code': qr.code})
        assert client.get(f'/api/medical-form/validate/{qr.code}').get_json() == {"valid": False}

    def test_cannot_issue_for_other_tenant(self, client, db_session, other_admin, customer):
        tokens = login(client, other_admin.email)
        response = client.post(f'/api/customers/{customer.id}/qr-code', headers=auth_headers(tokens["access_token"]))
        assert response.status_code == 404
