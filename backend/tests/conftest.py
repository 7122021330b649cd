"""
Pytest fixtures for ImportDocs backend tests.

Provides the test app (in-memory SQLite, temporary upload folder), a fresh
database per test, one profile per role and bearer-token helpers.
"""

from decimal import Decimal

import pytest
from importdocs import create_app
from importdocs.extensions import db
from importdocs.models import Product, ProductCategory, Warehouse
from importdocs.services import auth_service, session_service


PASSWORD = "secret123"


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'UPLOAD_FOLDER': str(tmp_path_factory.mktemp("uploads")),
        'BCRYPT_ROUNDS': 4,
        'ALLOW_NEGATIVE_STOCK': True,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


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
def client(app, db_session):
    """Create test client."""
    return app.test_client()


def make_profile(email: str, full_name: str, role: str, department: str = "General"):
    """Helper to register a user and return its profile."""
    return auth_service.sign_up(
        email=email,
        password=PASSWORD,
        confirm_password=PASSWORD,
        full_name=full_name,
        department=department,
        role=role,
    )


@pytest.fixture(scope='function')
def requester(db_session):
    return make_profile("rita@example.com", "Rita Requester", "Requester", "Procurement")


@pytest.fixture(scope='function')
def other_requester(db_session):
    return make_profile("oscar@example.com", "Oscar Other", "Requester", "Procurement")


@pytest.fixture(scope='function')
def approver(db_session):
    return make_profile("alex@example.com", "Alex Approver", "Approver", "Management")


@pytest.fixture(scope='function')
def other_approver(db_session):
    return make_profile("bea@example.com", "Bea Approver", "Approver", "Management")


@pytest.fixture(scope='function')
def finance(db_session):
    return make_profile("fin@example.com", "Fay Finance", "Finance", "Finance")


@pytest.fixture(scope='function')
def admin(db_session):
    return make_profile("root@example.com", "Ada Admin", "Admin", "Management")


def auth_headers(profile) -> dict:
    """Helper to create Authorization headers for a profile."""
    _, token = session_service.create_session(user_id=profile.id)
    return {'Authorization': f'Bearer {token}'}


def document_payload(**overrides) -> dict:
    payload = {
        "document_type": "Purchase Order",
        "document_number": "PO-2024-001",
        "supplier_name": "ABC Suppliers",
        "document_date": "2024-01-15",
        "document_value": "15000.00",
        "currency": "USD",
        "priority": "High",
    }
    payload.update(overrides)
    return payload


@pytest.fixture(scope='function')
def warehouse(db_session):
    wh = Warehouse(code="WH-MAIN", name="Main Warehouse", location="Building A, Floor 1", is_active=True)
    db_session.add(wh)
    db_session.commit()
    return wh


@pytest.fixture(scope='function')
def second_warehouse(db_session):
    wh = Warehouse(code="WH-SEC", name="Secondary Warehouse", location="Building B, Floor 2", is_active=True)
    db_session.add(wh)
    db_session.commit()
    return wh


@pytest.fixture(scope='function')
def category(db_session):
    cat = ProductCategory(code="FIN", name="Finished Goods")
    db_session.add(cat)
    db_session.commit()
    return cat


@pytest.fixture(scope='function')
def product(db_session, category):
    prod = Product(
        sku="SKU-001",
        name="Laptop Computer",
        category_id=category.id,
        unit_of_measure="PCS",
        cost_price=Decimal("1200.00"),
        reorder_point=5,
        is_active=True,
    )
    db_session.add(prod)
    db_session.commit()
    return prod
