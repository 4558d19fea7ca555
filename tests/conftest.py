import mongomock
import pytest
from fastapi.testclient import TestClient

import database
from auth import create_access_token, hash_password
from main import app

PASSWORD = "secret123"


@pytest.fixture
def mongo(monkeypatch):
    mock_db = mongomock.MongoClient().db
    monkeypatch.setattr(database, "db", mock_db)
    database.ensure_indexes()
    return mock_db


@pytest.fixture
def client(mongo):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_admin(mongo):
    def _make(email="admin@example.com", role="admin", is_active=True, name="Admin"):
        return database.create_document("admin", {
            "name": name,
            "email": email,
            "password_hash": hash_password(PASSWORD),
            "role": role,
            "is_active": is_active,
            "last_login": None,
        })
    return _make


@pytest.fixture
def login_as(client):
    def _login(admin):
        client.cookies.set("token", create_access_token(admin))
        return client
    return _login


@pytest.fixture
def super_admin(make_admin):
    return make_admin(email="root@example.com", role="super_admin", name="Root")


@pytest.fixture
def admin_client(login_as, super_admin):
    return login_as(super_admin)
