"""
Pytest configuration and fixtures for gamehub tests.

Fixtures open short-lived app contexts and hand back ids rather than ORM
objects, so test-client requests always run in a fresh context (and resolve
``current_user`` from their own Authorization header).
"""
import itertools
import os
import sys
import pytest

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

# Set testing environment before importing app
os.environ['FLASK_ENV'] = 'testing'

from gamehub.app import create_app
from gamehub.models import db, User
from gamehub.plan_catalog import seed_plans


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app('testing')
    yield app
    with app.app_context():
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Empty every table and re-seed the plan catalog before each test."""
    with app.app_context():
        db.session.remove()

        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        seed_plans()

    yield db

    with app.app_context():
        db.session.remove()


@pytest.fixture
def make_user(app, db_session):
    """Factory creating local users; returns the new user's id."""
    counter = itertools.count(1)

    def _make_user(name=None, email=None, password='secret123', role='user', plan='free'):
        n = next(counter)
        with app.app_context():
            user = app.users.create_user(
                name=name or f'Player {n}',
                email=email or f'player{n}@example.com',
                password=password,
                role=role,
                plan=plan
            )
            return user.id

    return _make_user


@pytest.fixture
def make_match(app, db_session):
    """Factory creating a match waiting for teams; returns the match id."""

    def _make_match(created_by_id, player_ids, team_count=2, mode='manual', game_id='game-1'):
        with app.app_context():
            match = app.registry.create_match(
                created_by_id=created_by_id,
                game_id=game_id,
                team_formation_mode=mode,
                team_count=team_count,
                player_ids=player_ids
            )
            return match.id

    return _make_match


@pytest.fixture
def auth_headers(app):
    """Factory returning an Authorization header carrying a fresh access token."""

    def _auth_headers(user_id):
        with app.app_context():
            user = db.session.get(User, user_id)
            token = app.auth_service.generate_tokens(user)['access_token']
        return {'Authorization': f'Bearer {token}'}

    return _auth_headers


@pytest.fixture
def players(make_user):
    """Four local users."""
    return [make_user() for _ in range(4)]
