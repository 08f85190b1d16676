"""
Pytest fixtures for WellPOS backend tests.

Provides the app against in-memory SQLite, a fakeredis session cache,
tenant fixtures (two companies, one branch each) and staff/customer
principals.
"""

from decimal import Decimal

import fakeredis
import pytest

from wellpos import create_app
from wellpos.extensions import db, session_cache
from wellpos.models import Company, Branch, Employee, Customer, Service, Product
from wellpos.services import auth_service
from wellpos.services.auth_service import hash_password
from wellpos.services.principals import PrincipalContext, staff_role, CustomerPrincipal


PASSWORD = "Passw0rd!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'JWT_SECRET_KEY': 'test-jwt-secret',
        'LOG_LEVEL': 'WARNING',
    })

    with app.app_context():
        session_cache.client = fakeredis.FakeRedis(decode_responses=True)
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(autouse=True)
def fast_hashing(monkeypatch):
    """Cheap bcrypt rounds; the cost factor is not under test here."""
    monkeypatch.setattr(auth_service, "BCRYPT_ROUNDS", 4)


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database and cache for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        session_cache.client.flushall()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def _make_company(session, name, email):
    company = Company(
        name=name,
        contact_person="Owner",
        email=email,
        phone="+49 30 1234567",
        address="Main Street 1, Berlin",
    )
    session.add(company)
    session.commit()
    return company


def _make_branch(session, company, name, email):
    branch = Branch(
        company_id=company.id,
        name=name,
        contact_person="Branch Lead",
        email=email,
        phone="+49 30 7654321",
        street="Studio Street",
        house_number="5",
        postcode="10115",
        city="Berlin",
        country="Germany",
    )
    session.add(branch)
    session.commit()
    return branch


def _make_employee(session, username, email, role, branch_id=None):
    employee = Employee(
        branch_id=branch_id,
        username=username,
        email=email,
        firstname=username.capitalize(),
        lastname="Tester",
        password_hash=hash_password(PASSWORD),
        personal_pin="1234",
        role=role,
        enabled=True,
    )
    session.add(employee)
    session.commit()
    return employee


@pytest.fixture(scope='function')
def company(db_session):
    """Company A (first tenant)."""
    return _make_company(db_session, "Company A - Vital Studios", "info@vital.example")


@pytest.fixture(scope='function')
def other_company(db_session):
    """Company B (second tenant)."""
    return _make_company(db_session, "Company B - Calm Spa", "info@calm.example")


@pytest.fixture(scope='function')
def branch(db_session, company):
    return _make_branch(db_session, company, "Vital Mitte", "mitte@vital.example")


@pytest.fixture(scope='function')
def other_branch(db_session, other_company):
    return _make_branch(db_session, other_company, "Calm Nord", "nord@calm.example")


@pytest.fixture(scope='function')
def service(db_session, branch):
    """Service offered at branch A."""
    svc = Service(
        branch_id=branch.id,
        name="Cryotherapy",
        description="Whole body cold chamber session",
        type="treatment",
        price=Decimal("49.00"),
        duration_minutes=30,
    )
    db_session.add(svc)
    branch.services.append(svc)
    db_session.commit()
    return svc


@pytest.fixture(scope='function')
def bundle(db_session, branch, service):
    """Bundle of 3 cryotherapy sessions at branch A."""
    product = Product(
        branch_id=branch.id,
        company_id=branch.company_id,
        name="Cryo 3-Pack",
        type="bundle",
        price=Decimal("129.00"),
        service_id=service.id,
        quantity=3,
        used_quantity=0,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def super_admin(db_session):
    return _make_employee(db_session, "root", "root@wellpos.example", "super-admin")


@pytest.fixture(scope='function')
def admin(db_session, branch):
    return _make_employee(db_session, "alice", "alice@vital.example", "admin", branch.id)


@pytest.fixture(scope='function')
def operator(db_session, branch):
    return _make_employee(db_session, "oscar", "oscar@vital.example", "operator", branch.id)


@pytest.fixture(scope='function')
def other_admin(db_session, other_branch):
    return _make_employee(db_session, "bob", "bob@calm.example", "admin", other_branch.id)


@pytest.fixture(scope='function')
def customer(db_session, branch):
    person = Customer(
        branch_id=branch.id,
        firstname="Clara",
        lastname="Kunde",
        email="clara@example.com",
        enabled=True,
    )
    db_session.add(person)
    db_session.commit()
    return person


def staff_context(employee, session_id="test-session") -> PrincipalContext:
    """PrincipalContext for service-level calls without going through a token."""
    return PrincipalContext(
        principal_id=employee.id,
        principal_kind="employee",
        principal=staff_role(employee.role, employee.branch_id),
        session_id=session_id,
        email=employee.email,
    )


def customer_context(person, session_id="test-session") -> PrincipalContext:
    return PrincipalContext(
        principal_id=person.id,
        principal_kind="customer",
        principal=CustomerPrincipal(branch_id=person.branch_id),
        session_id=session_id,
        email=person.email,
    )


def login(client, email: str, password: str = PASSWORD) -> dict:
    """Helper to log an employee in over HTTP; returns the token body."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password,
    })
    assert response.status_code == 200, response.get_json()
    return response.get_json()


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
