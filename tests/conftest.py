# tests/conftest.py

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DB_LOG_SLOW_QUERIES", "false")

from datetime import date, timedelta
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from spacebroker import (  # noqa: F401
    models,
    models_appointment,
    models_contract,
    models_invoice,
    models_reservation,
)
from spacebroker.auth import get_current_user
from spacebroker.database import Base, enable_sqlite_foreign_keys, get_db
from spacebroker.domain.contracts.signing import SignatureService
from spacebroker.domain.legal.repository import CONTRACT_CLAUSE_TYPES
from spacebroker.domain.payments.service import EscrowPaymentService
from spacebroker.domain.reservations.pricing import RatePeriod
from spacebroker.domain.reservations.schemas import ReservationCreate
from spacebroker.domain.reservations.service import ReservationService
from spacebroker.main import app
from spacebroker.models import LegalText, Listing, ListingAvailability, User
from spacebroker.shared.client_info import ClientInfo


# --- In-memory database with the same DDL (triggers included) as production ---
@pytest.fixture(scope="function")
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture
def notifier():
    """Notification dispatcher that records calls and delivers nothing."""
    return MagicMock()


@pytest.fixture
def client_info():
    return ClientInfo(ip="203.0.113.7", user_agent="pytest-agent/1.0")


# --- Model factories ---
@pytest.fixture
def make_user(db_session):
    counter = {"n": 0}

    def _make_user(role="requester", consent=True, **overrides):
        counter["n"] += 1
        data = {
            "email": f"{role}{counter['n']}@example.com",
            "full_name": f"{role.title()} {counter['n']}",
            "role": role,
            "is_active": True,
            "anti_circumvention_accepted": consent,
            "person_type": "natural",
            "national_id": f"ID-{counter['n']:05d}",
        }
        data.update(overrides)
        user = User(**data)
        db_session.add(user)
        db_session.commit()
        return user

    return _make_user


@pytest.fixture
def make_listing(db_session):
    def _make_listing(owner, **overrides):
        data = {
            "owner_id": owner.id,
            "title": "Covered warehouse bay",
            "listing_type": "warehouse",
            "description": "Dry storage with loading dock",
            "total_capacity": Decimal("200"),
            "available_capacity": Decimal("50"),
            "address": "12 Dock Road",
            "city": "Portsmouth",
            "region": "Hampshire",
            "has_roof": True,
            "access_type": "private",
            "price_per_unit_day": Decimal("100.00"),
            "price_per_unit_month": Decimal("1500.00"),
            "status": "published",
            "is_calendar_active": True,
        }
        data.update(overrides)
        listing = Listing(**data)
        db_session.add(listing)
        db_session.commit()
        return listing

    return _make_listing


@pytest.fixture
def legal_texts(db_session):
    texts = [
        LegalText(
            text_type=text_type,
            title=text_type.replace("_", " ").title(),
            content=f"Clause text for {text_type}",
            version="1.2",
            is_active=True,
        )
        for text_type in CONTRACT_CLAUSE_TYPES
    ]
    db_session.add_all(texts)
    db_session.commit()
    return texts


@pytest.fixture
def weekly_availability(db_session):
    """Open 09:00-17:00 every day of the week"""

    def _weekly_availability(listing):
        for day in range(7):
            db_session.add(
                ListingAvailability(
                    listing_id=listing.id, day_of_week=day, start_time="09:00", end_time="17:00"
                )
            )
        db_session.commit()

    return _weekly_availability


@pytest.fixture
def parties(make_user, make_listing):
    """A requester, an owner and a published listing owned by the latter"""
    requester = make_user("requester")
    owner = make_user("owner")
    listing = make_listing(owner)
    return requester, owner, listing


# --- Lifecycle helpers ---
@pytest.fixture
def reserve(db_session, notifier, client_info):
    def _reserve(requester, listing, quantity="10", period=RatePeriod.DAY, count=5):
        service = ReservationService(db_session, notifier)
        return service.create_reservation(
            requester,
            ReservationCreate(
                listing_id=listing.id,
                requested_quantity=Decimal(quantity),
                period_type=period,
                period_count=count,
                payment_method="card",
            ),
            client_info,
        )

    return _reserve


@pytest.fixture
def pay_balance(db_session, notifier):
    def _pay_balance(requester, reservation):
        payments = EscrowPaymentService(db_session, notifier)
        return payments.record_remaining(requester, reservation.id, "card")

    return _pay_balance


@pytest.fixture
def sign_as(db_session, notifier, client_info):
    def _sign_as(user, contract):
        service = SignatureService(db_session, notifier)
        issued = service.request_code(contract.id, user)
        return service.sign(contract.id, user, issued.code, client_info)

    return _sign_as


@pytest.fixture
def future_day():
    return date.today() + timedelta(days=7)


# --- Test Client Fixtures ---
@pytest.fixture
def api_client(db_session):
    """
    TestClient bound to the in-memory session. Set ``api_client.user`` to
    choose the authenticated caller.
    """

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    client = TestClient(app)
    client.user = None
    app.dependency_overrides[get_current_user] = lambda: client.user

    yield client

    app.dependency_overrides.clear()
