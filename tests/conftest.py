"""Shared fixtures: an app wired to an in-memory MongoDB."""
from __future__ import annotations

import mongomock
import pytest

from app import create_app
from config import TestingConfig
from database import disconnect_db

PASSWORD = "Secret123"


class MongomockConfig(TestingConfig):
    MONGODB_SETTINGS = dict(TestingConfig.MONGODB_SETTINGS, mongo_client_class=mongomock.MongoClient)


@pytest.fixture
def app():
    app = create_app(MongomockConfig)
    with app.app_context():
        yield app
    disconnect_db()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def register(app):
    """Register a user on a fresh test client; the client keeps the session cookie."""

    def _register(username="reader", email=None, display_name="Avid Reader", password=PASSWORD):
        client = app.test_client()
        resp = client.post(
            "/auth/register",
            json={
                "email": email or f"{username}@example.com",
                "username": username,
                "displayName": display_name,
                "password": password,
            },
        )
        assert resp.status_code == 201, resp.get_json()
        return client, resp.get_json()["user"]

    return _register
