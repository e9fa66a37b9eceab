"""
Test configuration and fixtures.

The local preference database is pointed at in-memory SQLite before the
application module is imported, and the booking API is replaced by an
``httpx.MockTransport`` routed through ``FakeBackend``.
"""

import json
import os

os.environ.setdefault('FLEETDESK_DATABASE_URI', 'sqlite://')
os.environ.setdefault('FLEETDESK_API_URL', 'http://api.test')

import httpx
import pytest

from app import app as flask_app
from app import db


class FakeBackend:
    """Canned booking API responses keyed by (method, path)."""

    def __init__(self):
        self.routes = {}
        self.requests = []

    def add(self, method, path, payload=None, status=200):
        self.routes[(method.upper(), path)] = (status, payload)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        if key not in self.routes:
            return httpx.Response(404, json={'message': f"No route for {request.method} {request.url.path}"})
        status, payload = self.routes[key]
        if callable(payload):
            payload = payload(request)
        if payload is None:
            return httpx.Response(status)
        return httpx.Response(status, json=payload)

    def last(self, method, path):
        for request in reversed(self.requests):
            if request.method == method and request.url.path == path:
                return request
        return None

    def last_json(self, method, path):
        request = self.last(method, path)
        return json.loads(request.content) if request is not None else None


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def app(backend):
    flask_app.config.update(TESTING=True, API_TRANSPORT=httpx.MockTransport(backend.handle))
    with flask_app.app_context():
        db.create_all()
        yield flask_app
        db.session.remove()
        db.drop_all()
    flask_app.config['API_TRANSPORT'] = None


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def signed_in(client):
    with client.session_transaction() as sess:
        sess['token'] = 'test-token-123456'
        sess['username'] = 'ravi'
        sess['company'] = {'name': 'Heritage Travels', 'address': '', 'phone': '', 'email': ''}
    return client
