"""
Shared fixtures: an in-memory SQLite database per test and a FastAPI
TestClient wired to it.
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import models  # noqa: F401
from database import Base, get_db, get_settings
from models import BettingRoom, PayoutType
from services import wallet_service

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
ADMIN_TOKEN = "test-admin-token"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_room():
    """Transient (unsaved) room for the pure services."""
    def _make_room(
        closed=False,
        settled=False,
        settlement_time=NOW + timedelta(hours=1),
        min_stake="1",
        max_stake="100",
        payout_type=PayoutType.SPLIT
    ):
        return BettingRoom(
            id="room-1",
            name="Test Room",
            min_stake=Decimal(min_stake),
            max_stake=Decimal(max_stake),
            settlement_time=settlement_time,
            closed=closed,
            settled=settled,
            payout_type=payout_type,
            created_by="admin"
        )
    return _make_room


@pytest.fixture
def fund(db):
    """Deposit an amount into a player's wallet and commit."""
    def _fund(user_id, amount="1000"):
        wallet_service.credit(user_id, Decimal(amount), db)
        db.commit()
    return _fund


@pytest.fixture
def admin_token(monkeypatch):
    monkeypatch.setattr(get_settings(), "admin_token", ADMIN_TOKEN)
    return ADMIN_TOKEN


@pytest.fixture
def client(engine, admin_token):
    from main import app

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
