# tests/conftest.py
"""Shared fixtures: in-memory SQLite store, fake messaging senders, API client."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Must be set before app.config is imported anywhere
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["API_KEY"] = ""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from app import database
from app.database import create_tables
from app.services.messaging import DeliveryResult
from app.services.notification_service import NotificationDispatcher


class FakeSender:
    """Stands in for TwilioSmsSender / ResendEmailSender and records every send."""

    def __init__(self, channel, delivered=True, error=None, raises=None):
        self.channel = channel
        self.delivered = delivered
        self.error = error
        self.raises = raises
        self.sent = []

    async def send(self, recipient, body, subject=None):
        self.sent.append({"recipient": recipient, "body": body, "subject": subject})
        if self.raises:
            raise self.raises
        if self.delivered:
            return DeliveryResult(True, provider_message_id=f"{self.channel}-{len(self.sent)}")
        return DeliveryResult(False, self.error or "provider rejected")


@pytest.fixture
def engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    create_tables(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine, monkeypatch):
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    # Background notification tasks open their own session through this
    monkeypatch.setattr(database, "SessionLocal", factory)
    return factory


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def sms_sender():
    return FakeSender("sms")


@pytest.fixture
def email_sender():
    return FakeSender("email")


@pytest.fixture
def dispatcher(sms_sender, email_sender):
    return NotificationDispatcher(sms_sender=sms_sender, email_sender=email_sender)


@pytest.fixture
def make_registration(db):
    from app.services.registration_service import create_registration

    def _make(**overrides):
        draft = {
            "customer_name": "Maria Lopez",
            "customer_phone": "+18325550101",
            "customer_email": "maria@example.com",
            "vin": "1hgcm82633a004352",
            "vehicle_year": 2021,
            "vehicle_make": "Honda",
            "vehicle_model": "Accord",
        }
        draft.update(overrides)
        return create_registration(db, draft, actor="admin@dealer")
    return _make


@pytest.fixture
def client(session_factory, dispatcher):
    from fastapi.testclient import TestClient
    from app.main import app
    from app.database import get_db
    from app.services.notification_service import get_dispatcher

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    yield TestClient(app)
    app.dependency_overrides.clear()
