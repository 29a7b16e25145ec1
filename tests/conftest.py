import asyncio

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from config import Settings
from database import get_db
from main import create_app
from manage import provision_admin
from oauth import OAuthError

FRONTEND = "http://frontend.test"
PASSWORD = "password123"


class FakeMailer:
    def __init__(self):
        self.sent = []
        self.fail = False

    async def send_password_reset(self, to, reset_url):
        if self.fail:
            raise ConnectionError("SMTP unavailable")
        self.sent.append((to, reset_url))


class FakeOAuth:
    def __init__(self):
        self.profile = {
            "id": "google-123",
            "email": "gmail.user@gmail.com",
            "name": "Gmail User",
            "picture": "https://img.test/avatar.png",
        }

    def authorization_url(self):
        return "https://accounts.google.test/o/oauth2/v2/auth?client_id=test"

    async def fetch_profile(self, code):
        if code == "bad-code":
            raise OAuthError("Google authentication failed")
        return dict(self.profile)


@pytest.fixture
def settings():
    return Settings(
        secret_key="test-secret",
        frontend_url=FRONTEND,
        environment="test",
        rate_limit_max=0,
    )


@pytest.fixture
def db():
    return AsyncMongoMockClient()["eduspace_test"]


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def oauth():
    return FakeOAuth()


@pytest.fixture
def app(settings, db, mailer, oauth):
    app = create_app(settings, mailer=mailer, oauth=oauth, use_lifespan=False)

    async def override_db():
        return db

    app.dependency_overrides[get_db] = override_db
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


def run(coro):
    return asyncio.run(coro)


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


def register(client, email, role="teacher", password=PASSWORD, **extra):
    payload = {"name": email.split("@")[0].title(), "email": email, "password": password, "role": role, "phone": "9876543210"}
    payload.update(extra)
    return client.post("/api/auth/register", json=payload)


def signup(client, email, role="teacher", **extra):
    """Register and return ``(auth headers, user projection)``."""
    res = register(client, email, role=role, **extra)
    assert res.status_code == 201, res.text
    body = res.json()
    return bearer(body["token"]), body["user"]


LISTING = {
    "name": "Physics Lab",
    "description": "Fully equipped physics laboratory",
    "space_type": "Laboratory",
    "capacity": 10,
    "price": 1000,
    "location": "Andheri West, Mumbai",
    "coordinates": {"lat": 19.13, "lng": 72.84},
    "amenities": ["Projector", "Wi-Fi"],
}


def make_listing(client, headers, **overrides):
    res = client.post("/api/listings", json={**LISTING, **overrides}, headers=headers)
    assert res.status_code == 201, res.text
    return res.json()["listing"]


def make_booking(client, headers, listing_id, **overrides):
    payload = {
        "listing_id": listing_id,
        "booking_date": "2026-11-20",
        "time_slot": "Full Day",
        "purpose": "Practical exam",
        "number_of_students": 8,
    }
    payload.update(overrides)
    return client.post("/api/bookings", json=payload, headers=headers)


@pytest.fixture
def school(client):
    return signup(client, "s@x.com", role="school", school_name="ABC", address="Andheri West")


@pytest.fixture
def teacher(client):
    return signup(client, "t@x.com", subject="Physics", experience=5)


@pytest.fixture
def admin(client, db):
    run(provision_admin(db, "Super Admin", "admin@eduspace.in", "Admin@1234"))
    res = client.post("/api/auth/login", json={"email": "admin@eduspace.in", "password": "Admin@1234"})
    assert res.status_code == 200, res.text
    return bearer(res.json()["token"]), res.json()["user"]
