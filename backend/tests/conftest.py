"""
Pytest fixtures for the stockbook storage tests.

Provides the Flask app (in-memory SQLite plus a fake document database),
an httpx client wired straight into it, and one opened instance of each
backend. `any_backend` runs a test once per backend kind.
"""

import httpx
import pytest

from fake_mongo import FakeDatabase
from helpers import ADMIN, BASE_URL
from stockbook import create_app
from stockbook.extensions import db, mongo
from stockbook.storage import (
    EmbeddedBackend,
    FileSnapshotStore,
    RemoteDocumentBackend,
    RemoteRelationalBackend,
)


@pytest.fixture(scope='function')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'ADMIN_USERNAME': ADMIN.username,
        'ADMIN_PASSWORD': ADMIN.password,
        'MONGODB_URI': None,
    })
    mongo.set_database(app, FakeDatabase())

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def fake_mongo_db(app):
    with app.app_context():
        return mongo.db


@pytest.fixture(scope='function')
def client(app):
    """Flask test client (raw handler tests)."""
    return app.test_client()


@pytest.fixture(scope='function')
def http_client(app):
    """httpx client whose requests are served in-process by the app."""
    with httpx.Client(transport=httpx.WSGITransport(app=app), base_url=BASE_URL) as client:
        yield client


@pytest.fixture(scope='function')
def auth_headers():
    return {"Authorization": ADMIN.basic_auth_header()}


@pytest.fixture(scope='function')
def snapshot_path(tmp_path):
    return tmp_path / "stockbook.db"


@pytest.fixture(scope='function')
def embedded_backend(snapshot_path):
    backend = EmbeddedBackend(FileSnapshotStore(snapshot_path), autosave_interval=None)
    backend.open()
    yield backend
    backend.close()


@pytest.fixture(scope='function')
def relational_backend(http_client):
    backend = RemoteRelationalBackend.for_base_url(BASE_URL, ADMIN, client=http_client)
    backend.open()
    yield backend
    backend.close()


@pytest.fixture(scope='function')
def document_backend(http_client):
    backend = RemoteDocumentBackend.for_base_url(BASE_URL, ADMIN, client=http_client)
    backend.open()
    yield backend
    backend.close()


@pytest.fixture(params=["local", "relational", "document"])
def any_backend(request):
    """The same test against every backend kind."""
    return request.getfixturevalue(f"{'embedded' if request.param == 'local' else request.param}_backend")
