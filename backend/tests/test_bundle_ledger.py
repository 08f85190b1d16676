# Overview: Pytest coverage for bundle redemption and the usage counter.

"""
Bundle / Usage Ledger Tests

INVARIANT: 0 <= used_quantity <= quantity for every bundle, whatever the
interleaving of redemptions.

Covers:
- Redeeming until exhausted, then refusal with Conflict
- A redemption computed from a stale read is refused by the conditional write
- Non-bundles and foreign services are refused
- Redeeming through an order checks the services it grants
- The database check constraint backs the counter up
"""

from decimal import Decimal

import pytest
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from wellpos.errors import ConflictError, NotFoundError, ValidationError
from wellpos.models import AuditRecord, Customer, Product, Service, ServiceUsage
from wellpos.services import bundle_service, order_service

from conftest import auth_headers, login, staff_context


@pytest.fixture
def bundle_order(db_session, admin, customer, bundle):
    return order_service.create_order({
        "customer_id": customer.id,
        "item_type": "product",
        "product_id": bundle.id,
        "price": "129.00",
        "payment_method": "card",
    }, staff_context(admin))


class TestUseService:
    """bundle_service.use_service"""

    def test_single_use_updates_counter_and_ledger(self, db_session, admin, customer, bundle, service):
        result = bundle_service.use_service(
            bundle.id, service.id, 1,
            customer_id=customer.id, employee_id=admin.id, context=staff_context(admin),
        )

        assert result["remaining_quantity"] == 2
        assert result["product"]["used_quantity"] == 1
        assert result["usage"]["service_name"] == "Cryotherapy"

        usage = db_session.query(ServiceUsage).one()
        assert usage.quantity_used == 1
        assert usage.customer_id == customer.id
        assert usage.branch_id == bundle.branch_id

        record = db_session.query(AuditRecord).filter_by(action="USE_SERVICE").one()
        assert record.entity_id == bundle.id
        assert record.old_values == {"used_quantity": 0}
        assert record.new_values["used_quantity"] == 1

    def test_exhausted_bundle_refuses(self, db_session, admin, bundle, service):
        context = staff_context(admin)
        bundle_service.use_service(bundle.id, service.id, 3, context=context)

        with pytest.raises(ConflictError, match="Not enough remaining quantity"):
            bundle_service.use_service(bundle.id, service.id, 1, context=context)

        product = db_session.get(Product, bundle.id)
        assert product.used_quantity == 3
        assert db_session.query(ServiceUsage).count() == 1

    def test_oversized_request_changes_nothing(self, db_session, admin, bundle, service):
        with pytest.raises(ConflictError):
            bundle_service.use_service(bundle.id, service.id, 4, context=staff_context(admin))

        assert db_session.get(Product, bundle.id).used_quantity == 0
        assert db_session.query(ServiceUsage).count() == 0
        assert db_session.query(AuditRecord).filter_by(action="USE_SERVICE").count() == 0

    @pytest.mark.parametrize("quantity", [0, -1, True, "2", 1.5])
    def test_quantity_must_be_positive_integer(self, db_session, admin, bundle, service, quantity):
        with pytest.raises(ValidationError):
            bundle_service.use_service(bundle.id, service.id, quantity, context=staff_context(admin))

    def test_non_bundle_is_conflict(self, db_session, admin, branch, service):
        product = Product(
            branch_id=branch.id, company_id=branch.company_id, name="Single Cryo",
            type="service", price=Decimal("49.00"),
        )
        db_session.add(product)
        db_session.commit()

        with pytest.raises(ConflictError, match="not a bundle"):
            bundle_service.use_service(product.id, service.id, 1, context=staff_context(admin))

    def test_service_outside_bundle_is_not_found(self, db_session, admin, branch, bundle):
        massage = Service(
            branch_id=branch.id, name="Massage", description="Relaxing massage",
            type="wellness", price=Decimal("60.00"), duration_minutes=60,
        )
        db_session.add(massage)
        db_session.commit()

        with pytest.raises(NotFoundError):
            bundle_service.use_service(bundle.id, massage.id, 1, context=staff_context(admin))

    def test_other_tenant_cannot_redeem(self, db_session, other_admin, bundle, service):
        with pytest.raises(NotFoundError):
            bundle_service.use_service(bundle.id, service.id, 1, context=staff_context(other_admin))
        assert db_session.get(Product, bundle.id).used_quantity == 0


class TestCounterAtomicity:
    """Check and increment happen in one statement."""

    def test_stale_read_cannot_overdraw(self, db_session, admin, bundle, service):
        # Our copy still says 0 used; another cashier has consumed everything
        db_session.get(Product, bundle.id)
        db_session.execute(
            update(Product)
            .where(Product.id == bundle.id)
            .values(used_quantity=3)
            .execution_options(synchronize_session=False)
        )

        with pytest.raises(ConflictError):
            bundle_service.use_service(bundle.id, service.id, 1, context=staff_context(admin))

        assert db_session.query(ServiceUsage).count() == 0

    def test_database_refuses_counter_beyond_quantity(self, db_session, bundle):
        with pytest.raises(IntegrityError):
            db_session.execute(
                update(Product)
                .where(Product.id == bundle.id)
                .values(used_quantity=Product.quantity + 1)
                .execution_options(synchronize_session=False)
            )
        db_session.rollback()

        assert db_session.get(Product, bundle.id).used_quantity == 0


class TestUseServiceFromOrder:
    """bundle_service.use_service_from_order"""

    def test_order_records_granted_service(self, bundle_order, service):
        assert bundle_order.included_service_ids == [service.id]

    def test_redeem_through_order(self, db_session, admin, customer, bundle_order, service):
        result = bundle_service.use_service_from_order(
            bundle_order.id, service.id, 1, employee_id=admin.id, context=staff_context(admin),
        )

        assert result["remaining_quantity"] == 2
        usage = db_session.query(ServiceUsage).one()
        assert usage.order_id == bundle_order.id
        assert usage.customer_id == customer.id

    def test_service_not_granted_by_order(self, db_session, admin, branch, bundle_order):
        massage = Service(
            branch_id=branch.id, name="Massage", description="Relaxing massage",
            type="wellness", price=Decimal("60.00"), duration_minutes=60,
        )
        db_session.add(massage)
        db_session.commit()

        with pytest.raises(NotFoundError):
            bundle_service.use_service_from_order(bundle_order.id, massage.id, 1, context=staff_context(admin))

    def test_unknown_order(self, db_session, admin, service):
        with pytest.raises(NotFoundError):
            bundle_service.use_service_from_order(99999, service.id, 1, context=staff_context(admin))


class TestRedemptionScope:
    """Branch, customer and order on a redemption are resolved against the caller's scope."""

    def test_branch_defaults_to_caller(self, db_session, admin, bundle, service):
        bundle_service.use_service(bundle.id, service.id, 1, context=staff_context(admin))

        assert db_session.query(ServiceUsage).one().branch_id == admin.branch_id
        assert db_session.query(AuditRecord).filter_by(action="USE_SERVICE").one().branch_id == admin.branch_id

    def test_super_admin_books_to_bundle_branch(self, db_session, super_admin, bundle, service):
        bundle_service.use_service(bundle.id, service.id, 1, context=staff_context(super_admin))
        assert db_session.query(ServiceUsage).one().branch_id == bundle.branch_id

    def test_foreign_branch_refused(self, db_session, admin, bundle, service, other_branch):
        with pytest.raises(NotFoundError):
            bundle_service.use_service(bundle.id, service.id, 1, branch_id=other_branch.id,
                                       context=staff_context(admin))

        assert db_session.get(Product, bundle.id).used_quantity == 0
        assert db_session.query(ServiceUsage).count() == 0

    def test_unknown_customer_refused(self, db_session, admin, bundle, service):
        with pytest.raises(NotFoundError, match="Customer not found"):
            bundle_service.use_service(bundle.id, service.id, 1, customer_id=99999, context=staff_context(admin))
        assert db_session.get(Product, bundle.id).used_quantity == 0

    def test_customer_of_other_tenant_refused(self, db_session, admin, bundle, service, other_branch):
        stranger = Customer(
            branch_id=other_branch.id, firstname="Nora", lastname="Nord",
            email="nora@example.com", enabled=True,
        )
        db_session.add(stranger)
        db_session.commit()

        with pytest.raises(NotFoundError):
            bundle_service.use_service(bundle.id, service.id, 1, customer_id=stranger.id,
                                       context=staff_context(admin))
        assert db_session.query(ServiceUsage).count() == 0

    def test_unknown_order_refused(self, db_session, admin, bundle, service):
        with pytest.raises(NotFoundError, match="Order not found"):
            bundle_service.use_service(bundle.id, service.id, 1, order_id=88888, context=staff_context(admin))
        assert db_session.get(Product, bundle.id).used_quantity == 0

    def test_order_for_other_product_refused(self, db_session, admin, customer, bundle, service):
        context = staff_context(admin)
        treatment = order_service.create_order({
            "customer_id": customer.id,
            "item_type": "service",
            "service_id": service.id,
            "price": 49,
            "payment_method": "cash",
        }, context)

        with pytest.raises(NotFoundError, match="Order not found"):
            bundle_service.use_service(bundle.id, service.id, 1, order_id=treatment.id, context=context)

    def test_customer_must_match_order(self, db_session, admin, branch, bundle_order, service):
        other = Customer(
            branch_id=branch.id, firstname="Otto", lastname="Anders",
            email="otto@example.com", enabled=True,
        )
        db_session.add(other)
        db_session.commit()

        with pytest.raises(NotFoundError):
            bundle_service.use_service_from_order(bundle_order.id, service.id, 1, customer_id=other.id,
                                                  context=staff_context(admin))
        assert db_session.query(ServiceUsage).count() == 0

    def test_order_fills_in_customer(self, db_session, admin, customer, bundle, bundle_order, service):
        bundle_service.use_service(bundle.id, service.id, 1, order_id=bundle_order.id, context=staff_context(admin))

        usage = db_session.query(ServiceUsage).one()
        assert usage.order_id == bundle_order.id
        assert usage.customer_id == customer.id

    def test_route_ignores_body_branch(self, client, db_session, operator, bundle, service, other_branch):
        headers = auth_headers(login(client, operator.email)["access_token"])

        response = client.post(f'/api/products/{bundle.id}/use-service',
                               json={'service_id': service.id, 'branch_id': other_branch.id}, headers=headers)
        assert response.status_code == 200
        assert response.get_json()["usage"]["branch_id"] == operator.branch_id

    def test_route_rejects_non_integer_ids(self, client, operator, bundle, service):
        headers = auth_headers(login(client, operator.email)["access_token"])

        for field in ('customer_id', 'order_id'):
            response = client.post(f'/api/products/{bundle.id}/use-service',
                                   json={'service_id': service.id, field: 'x'}, headers=headers)
            assert response.status_code == 400


class TestRemainingServices:
    """Pure read of the allowance."""

    def test_bundle_allowance(self, db_session, admin, bundle, service):
        context = staff_context(admin)
        bundle_service.use_service(bundle.id, service.id, 2, context=context)

        result = bundle_service.get_remaining_services(bundle.id, context)
        assert result == {
            "product_id": bundle.id,
            "is_bundle": True,
            "service_id": service.id,
            "service_name": "Cryotherapy",
            "service_type": "treatment",
            "total_quantity": 3,
            "used_quantity": 2,
            "remaining_quantity": 1,
        }

    def test_read_does_not_write(self, db_session, admin, bundle):
        bundle_service.get_remaining_services(bundle.id, staff_context(admin))
        assert db_session.query(AuditRecord).count() == 0
        assert db_session.get(Product, bundle.id).used_quantity == 0


class TestBundleRoutes:
    """HTTP surface for redemption."""

    def test_use_service_route(self, client, db_session, operator, bundle, service):
        headers = auth_headers(login(client, operator.email)["access_token"])

        ok = client.post(f'/api/products/{bundle.id}/use-service', json={'service_id': service.id, 'quantity': 3},
                         headers=headers)
        assert ok.status_code == 200
        assert ok.get_json()["remaining_quantity"] == 0

        refused = client.post(f'/api/products/{bundle.id}/use-service', json={'service_id': service.id},
                              headers=headers)
        assert refused.status_code == 409
        assert refused.get_json()["error"] == "Conflict"

        remaining = client.get(f'/api/products/{bundle.id}/remaining-services', headers=headers)
        assert remaining.get_json()["remaining_quantity"] == 0

        usages = client.get(f'/api/products/{bundle.id}/usages', headers=headers)
        assert len(usages.get_json()) == 1

    def test_service_id_must_be_integer(self, client, operator, bundle):
        headers = auth_headers(login(client, operator.email)["access_token"])
        response = client.post(f'/api/products/{bundle.id}/use-service', json={'service_id': 'x'}, headers=headers)
        assert response.status_code == 400

    def test_order_use_service_route(self, client, operator, bundle_order, service):
        headers = auth_headers(login(client, operator.email)["access_token"])
        response = client.post(f'/api/orders/{bundle_order.id}/use-service', json={'service_id': service.id},
                               headers=headers)
        assert response.status_code == 200
        assert response.get_json()["usage"]["order_id"] == bundle_order.id
