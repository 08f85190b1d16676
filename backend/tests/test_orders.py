# Overview: Pytest coverage for order creation, edits, deletion and status changes.

from decimal import Decimal

import pytest

from wellpos.errors import ConflictError, NotFoundError, ValidationError
from wellpos.models import AuditRecord, Customer, Order
from wellpos.services import bundle_service, order_service

from conftest import auth_headers, login, staff_context


@pytest.fixture
def service_order(db_session, admin, customer, service):
    return order_service.create_order({
        "customer_id": customer.id,
        "item_type": "service",
        "service_id": service.id,
        "price": 49,
        "quantity": 2,
        "payment_method": "cash",
    }, staff_context(admin))


class TestCreateOrder:
    """order_service.create_order"""

    def test_service_order_defaults(self, db_session, admin, customer, service_order):
        assert service_order.status == "pending"
        assert service_order.total_price == Decimal("98.00")
        assert service_order.item_name == "Cryotherapy"
        assert service_order.customer_name == "Clara Kunde"
        assert service_order.employee_id == admin.id
        assert service_order.branch_id == admin.branch_id
        assert service_order.included_service_ids == []

        assert db_session.get(Customer, customer.id).last_visit_at is not None
        assert db_session.query(AuditRecord).filter_by(action="CREATE", entity_type="Order").count() == 1

    def test_service_order_requires_service(self, db_session, admin, customer):
        with pytest.raises(ValidationError, match="service_id is required"):
            order_service.create_order({
                "customer_id": customer.id,
                "item_type": "service",
                "price": 49,
                "payment_method": "cash",
            }, staff_context(admin))

    def test_invalid_payment_method(self, db_session, admin, customer, service):
        with pytest.raises(ValidationError):
            order_service.create_order({
                "customer_id": customer.id,
                "item_type": "service",
                "service_id": service.id,
                "price": 49,
                "payment_method": "barter",
            }, staff_context(admin))

    def test_inactive_service_refused(self, db_session, admin, customer, service):
        service.active = False
        db_session.commit()
        with pytest.raises(NotFoundError):
            order_service.create_order({
                "customer_id": customer.id,
                "item_type": "service",
                "service_id": service.id,
                "price": 49,
                "payment_method": "cash",
            }, staff_context(admin))

    def test_customer_of_other_tenant_refused(self, db_session, other_admin, customer, service):
        with pytest.raises(NotFoundError):
            order_service.create_order({
                "customer_id": customer.id,
                "item_type": "service",
                "service_id": service.id,
                "price": 49,
                "payment_method": "cash",
            }, staff_context(other_admin))

    def test_customer_must_belong_to_order_branch(self, db_session, super_admin, customer, service, other_branch):
        with pytest.raises(NotFoundError, match="Customer not found"):
            order_service.create_order({
                "customer_id": customer.id,
                "branch_id": other_branch.id,
                "item_type": "service",
                "service_id": service.id,
                "price": 49,
                "payment_method": "cash",
            }, staff_context(super_admin))
        assert db_session.query(Order).count() == 0

    def test_product_must_belong_to_order_branch(self, db_session, super_admin, bundle, other_branch):
        walk_in = Customer(
            branch_id=other_branch.id, firstname="Nora", lastname="Nord",
            email="nora@example.com", enabled=True,
        )
        db_session.add(walk_in)
        db_session.commit()

        with pytest.raises(NotFoundError, match="Product not found"):
            order_service.create_order({
                "customer_id": walk_in.id,
                "branch_id": other_branch.id,
                "item_type": "product",
                "product_id": bundle.id,
                "price": "129.00",
                "payment_method": "card",
            }, staff_context(super_admin))
        assert db_session.query(Order).count() == 0


class TestOrderEdits:
    """Field edits are refused once an order is terminal."""

    def test_pending_order_editable(self, db_session, admin, service_order):
        updated = order_service.update_order(service_order.id, {"quantity": 3, "notes": "Late slot"}, staff_context(admin))
        assert updated.total_price == Decimal("147.00")
        assert updated.notes == "Late slot"

    @pytest.mark.parametrize("status", ["paid", "canceled"])
    def test_terminal_order_not_editable(self, db_session, admin, service_order, status):
        context = staff_context(admin)
        order_service.update_status(service_order.id, status, context)

        with pytest.raises(ConflictError, match="Cannot update paid or canceled order"):
            order_service.update_order(service_order.id, {"notes": "too late"}, context)

    def test_status_is_not_editable_through_update(self, db_session, admin, service_order):
        with pytest.raises(ValidationError, match="Field not allowed: status"):
            order_service.update_order(service_order.id, {"status": "paid"}, staff_context(admin))


class TestOrderStatus:
    """update_status applies any valid status from any status."""

    def test_any_status_from_any_status(self, db_session, admin, service_order):
        context = staff_context(admin)
        assert order_service.update_status(service_order.id, "paid", context).status == "paid"
        assert order_service.update_status(service_order.id, "pending", context).status == "pending"
        assert order_service.update_status(service_order.id, "canceled", context).status == "canceled"

        records = db_session.query(AuditRecord).filter_by(action="UPDATE_STATUS").all()
        assert len(records) == 3

    def test_unknown_status_rejected(self, db_session, admin, service_order):
        with pytest.raises(ValidationError):
            order_service.update_status(service_order.id, "shipped", staff_context(admin))

    def test_status_route(self, client, operator, service_order):
        headers = auth_headers(login(client, operator.email)["access_token"])

        response = client.patch(f'/api/orders/{service_order.id}/status', json={'status': 'paid'}, headers=headers)
        assert response.status_code == 200
        assert response.get_json()["status"] == "paid"

        missing = client.patch(f'/api/orders/{service_order.id}/status', json={}, headers=headers)
        assert missing.status_code == 400


class TestDeleteOrder:
    """Deletion rules."""

    def test_pending_order_deleted(self, db_session, admin, service_order):
        order_id = service_order.id
        order_service.delete_order(order_id, staff_context(admin))

        assert db_session.get(Order, order_id) is None
        record = db_session.query(AuditRecord).filter_by(action="DELETE", entity_type="Order").one()
        assert record.entity_id == order_id
        assert record.old_values["status"] == "pending"

    def test_paid_order_not_deleted(self, db_session, admin, service_order):
        context = staff_context(admin)
        order_service.update_status(service_order.id, "paid", context)

        with pytest.raises(ConflictError, match="Cannot delete paid order"):
            order_service.delete_order(service_order.id, context)

    def test_order_with_usage_not_deleted(self, db_session, admin, customer, bundle, service):
        context = staff_context(admin)
        order = order_service.create_order({
            "customer_id": customer.id,
            "item_type": "product",
            "product_id": bundle.id,
            "price": "129.00",
            "payment_method": "card",
        }, context)
        bundle_service.use_service_from_order(order.id, service.id, 1, context=context)

        with pytest.raises(ConflictError):
            order_service.delete_order(order.id, context)


class TestOrderScope:
    """Orders outside the caller's branch do not exist for them."""

    def test_other_tenant_gets_not_found(self, client, other_admin, service_order):
        headers = auth_headers(login(client, other_admin.email)["access_token"])
        assert client.get(f'/api/orders/{service_order.id}', headers=headers).status_code == 404

        listing = client.get('/api/orders', headers=headers)
        assert listing.status_code == 200
        assert listing.get_json() == []

    def test_same_branch_lists_order(self, client, operator, service_order):
        headers = auth_headers(login(client, operator.email)["access_token"])
        listing = client.get('/api/orders?status=pending', headers=headers).get_json()
        assert [o["id"] for o in listing] == [service_order.id]

    def test_super_admin_sees_all(self, db_session, super_admin, service_order):
        orders = order_service.list_orders(staff_context(super_admin))
        assert [o.id for o in orders] == [service_order.id]
