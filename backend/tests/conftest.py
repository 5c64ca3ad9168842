"""
Pytest fixtures for backoffice tests.

Provides the app (in-memory SQLite), a clean database per test, user
factories, bearer-token headers and log-record helpers.
"""

import itertools

import pytest

from backoffice import create_app
from backoffice.extensions import db
from backoffice.services import auth_service, session_service

PASSWORD = "Password123!"

VALID_CUSTOMER = {
    "company_name": "Acme Widgets",
    "email": "billing@acme.test",
    "phone": "+15550100",
    "status": "prospect",
    "priority": "medium",
}

VALID_VENDOR = {
    "company_name": "Bolt Supply",
    "email": "orders@bolt.test",
    "service_type": "Fasteners",
    "vendor_type": "supplier",
    "status": "pending",
    "priority": "medium",
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test-secret',
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOG_DIR': None,
        'BCRYPT_ROUNDS': 4,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def db_session(app):
    """Fresh database for each test."""
    with app.app_context():
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        db.session.rollback()


@pytest.fixture(scope='function')
def client(app, db_session):
    """Test client bound to a clean database."""
    return app.test_client()


@pytest.fixture(scope='function')
def make_user(db_session):
    """Factory: make_user(role="manager", status="suspended", ...)."""
    counter = itertools.count(1)

    def _make(role="employee", status="active", email=None, password=PASSWORD, name=None, external_ids=None):
        n = next(counter)
        return auth_service.create_user(
            name=name or f"{role.title()} {n}",
            email=email or f"{role}{n}@example.com",
            password=password,
            role=role,
            status=status,
            external_ids=external_ids,
        )

    return _make


@pytest.fixture(scope='function')
def admin(make_user):
    return make_user(role="admin")


@pytest.fixture(scope='function')
def manager(make_user):
    return make_user(role="manager")


@pytest.fixture(scope='function')
def employee(make_user):
    return make_user(role="employee")


@pytest.fixture(scope='function')
def auth_headers(db_session):
    """Factory: auth_headers(user) -> Authorization header for a fresh session."""

    def _headers(user):
        _, token = session_service.create_session(user, user_agent="pytest", ip_address="127.0.0.1")
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture(scope='function')
def log_records(caplog):
    """Factory: log_records("security", "Unauthorized access attempt") -> matching records."""
    caplog.set_level("DEBUG", logger="backoffice")

    def _records(channel, message=None):
        return [
            r for r in caplog.records
            if r.name == f"backoffice.{channel}" and (message is None or r.getMessage() == message)
        ]

    return _records


@pytest.fixture(scope='function')
def customer_payload():
    """A valid customer body; tests merge their own fields over it."""
    return dict(VALID_CUSTOMER)


@pytest.fixture(scope='function')
def vendor_payload():
    return dict(VALID_VENDOR)
