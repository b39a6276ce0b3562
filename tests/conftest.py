import hashlib
import hmac
import json
import time
from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from stay_easy.main import create_app
from stay_easy.reservations.actors import CLERK, CUSTOMER, MANAGER, TRAVEL_COMPANY, Actor
from stay_easy.reservations.database import get_db, init_db
from stay_easy.reservations.errors import PaymentGatewayError
from stay_easy.reservations.models import Room
from stay_easy.reservations.payment import PaymentIntent, StripeGateway
from stay_easy.reservations.reservations import ReservationEngine
from stay_easy.reservations.schemas import CreateReservationRequest
from stay_easy.reservations.webhook import get_gateway, get_webhook_secret
from stay_easy.seed_rooms import seed

WEBHOOK_SECRET = "whsec_test_secret"
ARRIVAL = date(2026, 11, 1)
DEPARTURE = date(2026, 11, 3)


class FakeGateway(StripeGateway):
    """Stripe stand-in for intent calls; signature verification stays the real SDK code."""

    def __init__(self, fail=False):
        super().__init__(api_key="sk_test_fake", currency="usd")
        self.fail = fail
        self.created = []
        self.cancelled = []

    def create_intent(self, amount_minor_units, currency=None, metadata=None):
        if self.fail:
            raise PaymentGatewayError("Payment gateway error: card network down")
        intent_id = f"pi_test_{len(self.created) + 1}"
        self.created.append({"id": intent_id, "amount": amount_minor_units, "currency": currency or self.currency})
        return PaymentIntent(intent_id=intent_id, client_secret=f"{intent_id}_secret_abc")

    def cancel_intent(self, intent_id):
        self.cancelled.append(intent_id)


def sign(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int = None) -> str:
    timestamp = timestamp or int(time.time())
    signature = hmac.new(secret.encode("utf-8"), f"{timestamp}.{payload}".encode("utf-8"), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def stripe_event(event_id: str, event_type: str, intent_id: str) -> str:
    if event_type.startswith("charge."):
        obj = {"id": "ch_test_1", "object": "charge", "payment_intent": intent_id}
    else:
        obj = {"id": intent_id, "object": "payment_intent"}
    return json.dumps({"id": event_id, "object": "event", "type": event_type, "data": {"object": obj}})


@pytest.fixture
def db_session():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    init_db(bind=engine)
    TestingSession = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def hotel(db_session):
    return seed(db_session)


@pytest.fixture
def rooms(db_session, hotel):
    return {r.number: r for r in db_session.query(Room).filter(Room.hotel_id == hotel.id)}


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def engine(gateway):
    return ReservationEngine(gateway)


@pytest.fixture
def customer():
    return Actor(role=CUSTOMER, actor_id=7)


@pytest.fixture
def clerk(hotel):
    return Actor(role=CLERK, hotel_id=hotel.id)


@pytest.fixture
def manager(hotel):
    return Actor(role=MANAGER, hotel_id=hotel.id)


@pytest.fixture
def travel_company():
    return Actor(role=TRAVEL_COMPANY, actor_id=31)


@pytest.fixture
def booking_request(hotel, rooms):
    def build(*numbers, **overrides):
        numbers = numbers or ("101",)
        data = dict(
            hotel_id=hotel.id,
            room_type="standard",
            room_ids=[rooms[n].id for n in numbers],
            arrival_date=ARRIVAL,
            departure_date=DEPARTURE,
            guests=2,
            total_amount=240.0,
        )
        data.update(overrides)
        return CreateReservationRequest(**data)
    return build


@pytest.fixture
def client(db_session, gateway):
    app = create_app(init_tables=False)

    def override_db():
        yield db_session

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_webhook_secret] = lambda: WEBHOOK_SECRET
    return TestClient(app)


def headers_for(actor: Actor) -> dict:
    h = {"X-Actor-Role": actor.role}
    if actor.actor_id is not None:
        h["X-Actor-Id"] = str(actor.actor_id)
    if actor.hotel_id is not None:
        h["X-Hotel-Id"] = str(actor.hotel_id)
    return h
