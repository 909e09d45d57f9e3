"""
Pytest fixtures for Perla backend tests.

Provides test database setup, users with sessions, and test client.
"""

import pytest
from perla import create_app
from perla.extensions import db
from perla.models.auth import ROLE_ADMIN, ROLE_USER
from perla.services.auth_service import create_user
from perla.services import session_service


TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'BUSINESS_TZ': 'America/Guatemala',
        'AUTO_CLOSE_ENABLED': False,
        'AUTO_CLOSE_BACKFILL_DAYS': 3,
        'AUTO_CLOSE_ACTOR': 'system@auto-close',
        'PAYROLL_DAILY_RATE': '100.00',
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
def admin_user(db_session):
    """ADMIN account."""
    return create_user("admin@perla.test", TEST_PASSWORD, name="Admin", role=ROLE_ADMIN)


@pytest.fixture(scope='function')
def worker(db_session):
    """Field worker on the flat daily rate."""
    return create_user("worker@perla.test", TEST_PASSWORD, name="Worker W", role=ROLE_USER)


@pytest.fixture(scope='function')
def other_worker(db_session):
    """Second worker with a personal daily salary."""
    return create_user(
        "other@perla.test", TEST_PASSWORD, name="Worker O", role=ROLE_USER, daily_salary="150.00"
    )


def _headers_for(user) -> dict:
    _, token = session_service.create_session(user_id=user.id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope='function')
def admin_headers(admin_user):
    return _headers_for(admin_user)


@pytest.fixture(scope='function')
def worker_headers(worker):
    return _headers_for(worker)


@pytest.fixture(scope='function')
def other_headers(other_worker):
    return _headers_for(other_worker)
