"""
Shared fixtures for the Sprintboard test suite.

Provides:
- An app on a throwaway SQLite file with CSRF disabled
- The SQL data service inside an app context
- Builders for task and sprint records
"""

import itertools

import pytest

from app import create_app
from data import Sprint, Task
from models import db


@pytest.fixture
def app(tmp_path):
    app = create_app({
        'TESTING': True,
        'WTF_CSRF_ENABLED': False,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'sprintboard_test.db'}",
        'DATA_BACKEND': 'sql',
        'SEED_DEMO_DATA': False,
        'LOG_LEVEL': 'DEBUG',
    })
    yield app
    with app.app_context():
        db.session.remove()
        db.engine.dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def service(app):
    """The SQL data service with an app context pushed."""
    with app.app_context():
        yield app.extensions['data_service']


@pytest.fixture
def project(service):
    return service.insert('projects', {'name': 'Website', 'status': 'active'})


# =============================================================================
# Record builders
# =============================================================================


@pytest.fixture
def make_task():
    counter = itertools.count(1)

    def build(**overrides):
        values = {'id': f'task-{next(counter)}', 'project_id': 'p1', 'title': 'Task'}
        values.update(overrides)
        return Task(**values)

    return build


@pytest.fixture
def make_sprint():
    counter = itertools.count(1)

    def build(**overrides):
        values = {'id': f'sprint-{next(counter)}', 'project_id': 'p1', 'name': 'Sprint'}
        values.update(overrides)
        return Sprint(**values)

    return build
