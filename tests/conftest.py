"""
Pytest fixtures for the billing backend.

Every test gets its own application on a fresh in-memory database.
"""

import pytest

from app import create_app
from config import TestingConfig
from models import db, Client, Product, Service, User
from services.session_guard import hash_password

USERNAME = "admin"
PASSWORD = "secret123"


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        db.session.add(User(username=USERNAME, password=hash_password(PASSWORD)))
        db.session.commit()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ctx(app):
    """App context for service-level tests (no test client requests)."""
    with app.app_context():
        yield
        db.session.rollback()


@pytest.fixture
def client(app):
    return app.test_client()


def login(client, username=USERNAME, password=PASSWORD):
    return client.post("/auth/login", json={"username": username, "password": password})


@pytest.fixture
def auth_client(client):
    resp = login(client)
    assert resp.status_code == 200, resp.get_json()
    return client


@pytest.fixture
def shop(app):
    """The sample shop: client Asad, product LED Bulb and one service."""
    with app.app_context():
        asad = Client(name="Asad", phone="03001234567", address="Jutial, Gilgit")
        bulb = Product(name="LED Bulb", price=150, stock=10)
        wiring = Service(name="House Wiring", price=2500)
        db.session.add_all([asad, bulb, wiring])
        db.session.commit()
        return {"client_id": asad.id, "product_id": bulb.id, "service_id": wiring.id}
