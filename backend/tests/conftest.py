"""
Pytest fixtures for PartsDesk backend tests.

Provides test database setup, an authenticated operator, and test client.
"""

import pytest
from partsdesk import create_app
from partsdesk.extensions import db
from partsdesk.models import User
from partsdesk.services.auth_service import hash_password
from partsdesk.services.products_service import create_product

OPERATOR_EMAIL = "owner@shop.local"
OPERATOR_PASSWORD = "Password123!"

_password_hash_cache = {}


def operator_password_hash() -> str:
    # bcrypt at cost 12 is slow; hash once per run.
    if OPERATOR_PASSWORD not in _password_hash_cache:
        _password_hash_cache[OPERATOR_PASSWORD] = hash_password(OPERATOR_PASSWORD)
    return _password_hash_cache[OPERATOR_PASSWORD]


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'UPLOAD_FOLDER': str(tmp_path_factory.mktemp("uploads")),
        'PLACEHOLDER_IMAGE_URL': 'https://placehold.co/400x300',
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
def operator(db_session):
    """The shop operator account."""
    user = User(
        email=OPERATOR_EMAIL,
        display_name="Owner",
        password_hash=operator_password_hash(),
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def auth_headers(client, operator):
    """Authorization headers for a freshly signed-in operator."""
    token = get_auth_token(client, OPERATOR_EMAIL, OPERATOR_PASSWORD)
    assert token, "operator login failed"
    return bearer(token)


def product_fields(**overrides) -> dict:
    fields = {
        "name": "Brake Pad Set",
        "stock": 10,
        "purchase_price": "100.00",
        "selling_price": "150.00",
        "compatibility": "Renault Clio IV",
        "last_purchase_date": "2026-01-15T09:30:00Z",
    }
    fields.update(overrides)
    return fields


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory creating products through the service layer."""
    def _make(**overrides):
        return create_product(product_fields(**overrides))
    return _make


def get_auth_token(client, email: str, password: str) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def bearer(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
