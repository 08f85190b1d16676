# Overview: Pytest coverage for tenant-scoped resource stores and their HTTP routes.

"""
Multi-Tenant Resource Tests

SECURITY TESTS: every store filters by the caller's scope, and rows in
another tenant are reported as not found rather than forbidden.

Test Coverage:
- Companies: super-admin only create/delete; admins see their own company
- Branches: scoped create, unique email, offered services, public listing
- Employees: role/branch rules, super-admin grant, password change
- Customers: per-branch email uniqueness, search
- Services / Products: per-branch names, bundle rules
- Subscriptions: date range and overlap
"""

import pytest

from wellpos.errors import ConflictError, ForbiddenError, NotFoundError
from wellpos.models import Branch, Employee
from wellpos.services import bundle_service, catalog_service, qr_service, tenant_service

from conftest import auth_headers, login, staff_context


def _headers(client, employee):
    return auth_headers(login(client, employee.email)["access_token"])


BRANCH_PAYLOAD = {
    "name": "Vital West",
    "contact_person": "West Lead",
    "email": "west@vital.example",
    "phone": "+49 30 555",
    "street": "West Street",
    "postcode": "10585",
    "city": "Berlin",
    "country": "Germany",
}


class TestTenantScopeHelpers:
    """tenant_service helpers."""

    def test_scoped_staff_sees_own_branch(self, db_session, admin, branch):
        assert tenant_service.visible_branch_ids(staff_context(admin)) == [branch.id]

    def test_super_admin_unrestricted(self, db_session, super_admin):
        assert tenant_service.visible_branch_ids(staff_context(super_admin)) is None

    def test_default_company_pins_super_admin(self, app, db_session, super_admin, branch, other_branch):
        app.config["DEFAULT_COMPANY_ID"] = branch.company_id
        try:
            assert tenant_service.visible_branch_ids(staff_context(super_admin)) == [branch.id]
        finally:
            app.config["DEFAULT_COMPANY_ID"] = None

    def test_foreign_branch_is_not_found(self, db_session, admin, other_branch):
        with pytest.raises(NotFoundError):
            tenant_service.require_branch_in_scope(staff_context(admin), other_branch.id)

    def test_role_guard(self, db_session, operator):
        with pytest.raises(ForbiddenError):
            tenant_service.require_roles(staff_context(operator), "admin")


class TestCompanies:
    """/api/companies"""

    def test_super_admin_creates_company(self, client, db_session, super_admin):
        response = client.post('/api/companies', json={
            "name": "New Co",
            "contact_person": "Founder",
            "email": "HELLO@newco.example",
            "phone": "+49 1",
            "address": "Somewhere 1",
        }, headers=_headers(client, super_admin))
        assert response.status_code == 201
        assert response.get_json()["email"] == "hello@newco.example"

    def test_admin_cannot_create_company(self, client, admin):
        response = client.post('/api/companies', json={
            "name": "Rogue Co", "contact_person": "X", "email": "x@rogue.example",
            "phone": "1", "address": "A",
        }, headers=_headers(client, admin))
        assert response.status_code == 403

    def test_admin_sees_own_company_only(self, client, admin, company, other_company):
        headers = _headers(client, admin)
        listing = client.get('/api/companies', headers=headers).get_json()
        assert [c["id"] for c in listing] == [company.id]
        assert client.get(f'/api/companies/{other_company.id}', headers=headers).status_code == 404

    def test_company_with_branches_not_deleted(self, client, super_admin, branch):
        response = client.delete(f'/api/companies/{branch.company_id}', headers=_headers(client, super_admin))
        assert response.status_code == 409


class TestBranches:
    """/api/branches"""

    def test_admin_creates_branch_in_own_company(self, client, admin, company):
        response = client.post('/api/branches', json=BRANCH_PAYLOAD, headers=_headers(client, admin))
        assert response.status_code == 201
        assert response.get_json()["company_id"] == company.id

    def test_duplicate_branch_email(self, client, admin, branch):
        payload = dict(BRANCH_PAYLOAD, email=branch.email)
        response = client.post('/api/branches', json=payload, headers=_headers(client, admin))
        assert response.status_code == 409

    def test_admin_cannot_target_other_company(self, client, admin, other_company):
        payload = dict(BRANCH_PAYLOAD, company_id=other_company.id)
        response = client.post('/api/branches', json=payload, headers=_headers(client, admin))
        assert response.status_code == 404

    def test_operator_cannot_create_branch(self, client, operator):
        response = client.post('/api/branches', json=BRANCH_PAYLOAD, headers=_headers(client, operator))
        assert response.status_code == 403

    def test_offered_services_update(self, client, db_session, admin, branch, service):
        headers = _headers(client, admin)
        response = client.put(f'/api/branches/{branch.id}', json={"service_ids": []}, headers=headers)
        assert response.status_code == 200
        assert response.get_json()["service_ids"] == []

        response = client.put(f'/api/branches/{branch.id}', json={"service_ids": [service.id]}, headers=headers)
        assert response.get_json()["service_ids"] == [service.id]

    def test_public_listing_needs_no_auth(self, client, db_session, branch, other_branch):
        other_branch.enabled = False
        db_session.commit()

        response = client.get('/api/branches/public')
        assert response.status_code == 200
        assert [b["id"] for b in response.get_json()] == [branch.id]

    def test_branch_with_employees_not_deleted(self, client, admin, branch):
        response = client.delete(f'/api/branches/{branch.id}', headers=_headers(client, admin))
        assert response.status_code == 409


class TestEmployees:
    """/api/employees"""

    def _payload(self, **overrides):
        payload = {
            "username": "nina",
            "email": "nina@vital.example",
            "firstname": "Nina",
            "lastname": "Neu",
            "personal_pin": "4321",
            "role": "operator",
            "password": "Str0ngPass",
        }
        payload.update(overrides)
        return payload

    def test_admin_hires_into_own_branch(self, client, admin):
        response = client.post('/api/employees', json=self._payload(), headers=_headers(client, admin))
        assert response.status_code == 201
        assert response.get_json()["branch_id"] == admin.branch_id

    def test_duplicate_username(self, client, admin, operator):
        response = client.post('/api/employees', json=self._payload(username=operator.username),
                               headers=_headers(client, admin))
        assert response.status_code == 409

    def test_weak_password_rejected(self, client, admin):
        response = client.post('/api/employees', json=self._payload(password="short"),
                               headers=_headers(client, admin))
        assert response.status_code == 400

    def test_invalid_pin_rejected(self, client, admin):
        response = client.post('/api/employees', json=self._payload(personal_pin="12a4"),
                               headers=_headers(client, admin))
        assert response.status_code == 400

    def test_only_super_admin_grants_super_admin(self, client, admin, super_admin):
        denied = client.post('/api/employees', json=self._payload(role="super-admin"),
                             headers=_headers(client, admin))
        assert denied.status_code == 403

        allowed = client.post('/api/employees', json=self._payload(role="super-admin"),
                              headers=_headers(client, super_admin))
        assert allowed.status_code == 201
        assert allowed.get_json()["branch_id"] is None

    def test_super_admin_must_name_branch_for_staff(self, client, super_admin):
        response = client.post('/api/employees', json=self._payload(), headers=_headers(client, super_admin))
        assert response.status_code == 400

    def test_admin_cannot_see_other_branch_staff(self, client, admin, other_admin):
        headers = _headers(client, admin)
        assert client.get(f'/api/employees/{other_admin.id}', headers=headers).status_code == 404
        ids = [e["id"] for e in client.get('/api/employees', headers=headers).get_json()]
        assert other_admin.id not in ids

    def test_change_own_password(self, client, operator):
        headers = _headers(client, operator)
        wrong = client.post(f'/api/employees/{operator.id}/change-password',
                            json={"current_password": "Nope1234", "new_password": "N3wPassword"},
                            headers=headers)
        assert wrong.status_code == 401

        ok = client.post(f'/api/employees/{operator.id}/change-password',
                         json={"current_password": "Passw0rd!", "new_password": "N3wPassword"},
                         headers=headers)
        assert ok.status_code == 200
        assert login(client, operator.email, "N3wPassword")["user"]["id"] == operator.id

    def test_cannot_delete_self(self, client, admin):
        response = client.delete(f'/api/employees/{admin.id}', headers=_headers(client, admin))
        assert response.status_code == 409

    def test_delete_removes_employee(self, client, db_session, admin, operator):
        operator_id = operator.id
        response = client.delete(f'/api/employees/{operator_id}', headers=_headers(client, admin))
        assert response.status_code == 200
        assert db_session.get(Employee, operator_id) is None

    def test_toggle_status_route(self, client, admin, operator):
        response = client.patch(f'/api/employees/{operator.id}/toggle-status', headers=_headers(client, admin))
        assert response.status_code == 200
        assert response.get_json()["enabled"] is False


class TestCustomers:
    """/api/customers"""

    def test_email_unique_per_branch(self, client, admin, customer):
        response = client.post('/api/customers', json={
            "firstname": "Clara", "lastname": "Zwei", "email": customer.email,
        }, headers=_headers(client, admin))
        assert response.status_code == 409

    def test_same_email_allowed_in_other_branch(self, client, super_admin, customer, other_branch):
        response = client.post('/api/customers', json={
            "firstname": "Clara", "lastname": "Zwei", "email": customer.email, "branch_id": other_branch.id,
        }, headers=_headers(client, super_admin))
        assert response.status_code == 201

    def test_search(self, client, admin, customer):
        headers = _headers(client, admin)
        assert [c["id"] for c in client.get('/api/customers?search=kun', headers=headers).get_json()] == [customer.id]
        assert client.get('/api/customers?search=zzz', headers=headers).get_json() == []

    def test_unknown_field_rejected(self, client, admin):
        response = client.post('/api/customers', json={
            "firstname": "A", "lastname": "B", "email": "ab@example.com", "vip": True,
        }, headers=_headers(client, admin))
        assert response.status_code == 400

    def test_disabling_customer_revokes_sessions(self, client, db_session, admin, customer):
        qr = qr_service.add_qr_code(customer)
        db_session.commit()
        tokens = client.post('/api/auth/login-qr', json={'qr_code': qr.code}).get_json()
        customer_headers = auth_headers(tokens["access_token"])
        assert client.get('/api/auth/me', headers=customer_headers).status_code == 200

        response = client.put(f'/api/customers/{customer.id}', json={"enabled": False}, headers=_headers(client, admin))
        assert response.status_code == 200
        assert client.get('/api/auth/me', headers=customer_headers).status_code == 401

    def test_other_tenant_not_found(self, client, other_admin, customer):
        response = client.get(f'/api/customers/{customer.id}', headers=_headers(client, other_admin))
        assert response.status_code == 404


class TestCatalog:
    """/api/services and /api/products"""

    def test_new_service_is_offered_by_branch(self, client, db_session, admin, branch):
        response = client.post('/api/services', json={
            "name": "Massage", "description": "Relaxing", "type": "wellness",
            "price": "60.00", "duration_minutes": 60,
        }, headers=_headers(client, admin))
        assert response.status_code == 201
        service_id = response.get_json()["id"]
        assert db_session.get(Branch, branch.id).offers_service(service_id)

    def test_duplicate_service_name(self, client, admin, service):
        response = client.post('/api/services', json={
            "name": service.name, "description": "Again", "type": "treatment",
            "price": 10, "duration_minutes": 10,
        }, headers=_headers(client, admin))
        assert response.status_code == 409

    def test_toggle_service(self, client, admin, service):
        response = client.patch(f'/api/services/{service.id}/toggle-status', headers=_headers(client, admin))
        assert response.get_json()["active"] is False

    def test_bundle_requires_offered_service(self, client, db_session, admin, branch, service):
        branch.services = []
        db_session.commit()

        response = client.post('/api/products', json={
            "name": "Cryo 5-Pack", "type": "bundle", "price": 200,
            "service_id": service.id, "quantity": 5,
        }, headers=_headers(client, admin))
        assert response.status_code == 409

    def test_bundle_created(self, client, admin, service):
        response = client.post('/api/products', json={
            "name": "Cryo 5-Pack", "type": "bundle", "price": 200,
            "service_id": service.id, "quantity": 5,
        }, headers=_headers(client, admin))
        assert response.status_code == 201
        body = response.get_json()
        assert body["used_quantity"] == 0
        assert body["remaining_quantity"] == 5

    def test_used_quantity_not_writable(self, client, admin, service):
        response = client.post('/api/products', json={
            "name": "Cryo 5-Pack", "type": "bundle", "price": 200,
            "service_id": service.id, "quantity": 5, "used_quantity": 5,
        }, headers=_headers(client, admin))
        assert response.status_code == 400

    def test_quantity_not_below_used(self, db_session, admin, bundle, service):
        context = staff_context(admin)
        bundle_service.use_service(bundle.id, service.id, 2, context=context)
        with pytest.raises(ConflictError):
            catalog_service.update_product(bundle.id, {"quantity": 1}, context)

    def test_product_with_usage_not_deleted(self, client, db_session, admin, bundle, service):
        bundle_service.use_service(bundle.id, service.id, 1, context=staff_context(admin))
        response = client.delete(f'/api/products/{bundle.id}', headers=_headers(client, admin))
        assert response.status_code == 409


class TestSubscriptions:
    """/api/subscriptions"""

    def _payload(self, company, bundle, start="2026-01-01", end="2026-12-31"):
        return {"company_id": company.id, "product_ids": [bundle.id], "start_date": start, "end_date": end}

    def test_create_and_overlap(self, client, super_admin, company, bundle):
        headers = _headers(client, super_admin)
        first = client.post('/api/subscriptions', json=self._payload(company, bundle), headers=headers)
        assert first.status_code == 201
        assert first.get_json()["product_ids"] == [bundle.id]

        overlapping = client.post('/api/subscriptions',
                                  json=self._payload(company, bundle, "2026-06-01", "2027-05-31"),
                                  headers=headers)
        assert overlapping.status_code == 400

        later = client.post('/api/subscriptions',
                            json=self._payload(company, bundle, "2027-01-01", "2027-12-31"),
                            headers=headers)
        assert later.status_code == 201

    def test_start_must_precede_end(self, client, super_admin, company, bundle):
        response = client.post('/api/subscriptions',
                               json=self._payload(company, bundle, "2026-12-31", "2026-01-01"),
                               headers=_headers(client, super_admin))
        assert response.status_code == 400

    def test_unknown_product_rejected(self, client, super_admin, company):
        response = client.post('/api/subscriptions', json={
            "company_id": company.id, "product_ids": [424242],
            "start_date": "2026-01-01", "end_date": "2026-12-31",
        }, headers=_headers(client, super_admin))
        assert response.status_code == 400

    def test_admin_of_other_company_cannot_see(self, client, super_admin, other_admin, company, bundle):
        created = client.post('/api/subscriptions', json=self._payload(company, bundle),
                              headers=_headers(client, super_admin)).get_json()
        response = client.get(f'/api/subscriptions/{created["id"]}', headers=_headers(client, other_admin))
        assert response.status_code == 404
