"""
Pytest fixtures for ShopMate backend tests.

Each test gets its own SQLite file, so threads in the concurrency tests can
open real connections to the same database.
"""

import pytest

from shopmate import create_app
from shopmate.extensions import db
from shopmate.models import ROLE_ADMIN
from shopmate.services import get_services


@pytest.fixture(scope='function')
def app(tmp_path):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'shopmate-test.sqlite3'}",
        'ACCESS_TOKEN_SECRET': 'test-access-secret',
        'REFRESH_TOKEN_SECRET': 'test-refresh-secret',
        # Lowest cost bcrypt accepts; keeps the suite fast
        'BCRYPT_ROUNDS': 4,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def runner(app):
    """Create CLI runner."""
    return app.test_cli_runner()


@pytest.fixture(scope='function')
def services(app):
    """Components wired to the test database."""
    return get_services()


@pytest.fixture(scope='function')
def customer(services):
    """Create a role=user account (alice / pw1)."""
    return services.credentials.create_user("alice", "pw1")


@pytest.fixture(scope='function')
def admin(services):
    """Create an admin account. Admins only come from provisioning."""
    return services.credentials.create_user("admin", "admin@123", role=ROLE_ADMIN)


@pytest.fixture(scope='function')
def widget(services):
    """Create item 1: Widget, 10 in stock."""
    return services.ledger.create_item(1, "Widget", 10, 2.5)


@pytest.fixture(scope='function')
def customer_headers(client, customer):
    return auth_headers(get_auth_token(client, "alice", "pw1"))


@pytest.fixture(scope='function')
def admin_headers(client, admin):
    return auth_headers(get_auth_token(client, "admin", "admin@123"))


def login(client, username: str, password: str):
    """POST /login and return the response."""
    return client.post('/login', json={
        'username': username,
        'password': password
    })


def get_auth_token(client, username: str, password: str) -> str:
    """Helper to get an access token for a user."""
    response = login(client, username, password)
    if response.status_code == 200:
        return response.json.get('accessToken')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
