"""
Pytest fixtures for smartpack backend tests.

Provides test database setup, asset/draft factories, and test client.
"""

import pytest

from smartpack import create_app
from smartpack.extensions import db
from smartpack.models import AssetRecord
from smartpack.services import booking_service


ACTOR = "tester"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOG_JSON': False,
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
def make_asset(db_session):
    """Factory: register an asset directly in the registry."""
    def _make(code, status="FREE", destination=None, origin=None, name=None):
        asset = AssetRecord(
            asset_code=code,
            name=name or f"Asset {code}",
            current_status=status,
            origin=origin,
            destination=destination,
        )
        db_session.add(asset)
        db_session.commit()
        return asset
    return _make


@pytest.fixture(scope='function')
def make_draft(db_session):
    """Factory: create a booking draft."""
    def _make(draft_id, booking_type="OUTBOUND", objective=None, actor=ACTOR):
        return booking_service.create_draft(draft_id, actor, booking_type, objective)
    return _make


@pytest.fixture(scope='function')
def reload_asset(db_session):
    """Fresh read of an asset row, bypassing the identity map."""
    def _reload(code):
        db_session.expire_all()
        return db_session.query(AssetRecord).filter_by(asset_code=code).one()
    return _reload


@pytest.fixture(scope='function')
def headers():
    """Actor header for mutating API calls."""
    return {'X-Actor-Id': ACTOR}
