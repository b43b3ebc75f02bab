"""
Pytest fixtures for retailcore backend tests.

Provides an in-memory database, a pinned clock, acting users and a test client.
"""

from datetime import datetime

import pytest

from retailcore import create_app
from retailcore.decorators import Actor
from retailcore.extensions import db
from retailcore.time_utils import FixedClock, set_clock


NOW = datetime(2026, 10, 17, 9, 0, 0)
BRANCH_ID = 1


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'CONCURRENCY_RETRY_ATTEMPTS': 1,
        'DEFAULT_TAX_RATE': '11',
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
        db.session.expunge_all()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(autouse=True)
def fixed_clock():
    """Pin 'now' so invoice numbers and overdue checks are deterministic."""
    clock = FixedClock(NOW)
    set_clock(clock)
    yield clock
    set_clock(None)


@pytest.fixture
def cashier():
    return Actor(id="cashier-1", name="Sari")


@pytest.fixture
def other_cashier():
    return Actor(id="cashier-2", name="Budi")


@pytest.fixture
def cashier_headers(cashier):
    return actor_headers(cashier)


def actor_headers(actor: Actor) -> dict:
    """Helper to create identity headers."""
    return {'X-User-Id': actor.id, 'X-User-Name': actor.name}
