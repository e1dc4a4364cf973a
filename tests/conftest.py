"""Shared fixtures: temporary SQLite database, fake Razorpay gateway, test client."""
import pytest
from fastapi.testclient import TestClient

from slotpay.config import Settings
from slotpay.database import init_db, make_engine, make_session_factory
from slotpay.errors import UpstreamGatewayError
from slotpay.schemas import BookingRequest

SECRET = "s3cret"


class FakeGateway:
    """Stands in for RazorpayGateway; records every outbound call."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.orders = []
        self.fetched = []

    def create_order(self, options: dict) -> dict:
        self.orders.append(options)
        if self.fail:
            raise UpstreamGatewayError("Failed to create order: 429 Too many requests")
        return {
            "id": f"order_{len(self.orders)}",
            "entity": "order",
            "amount": options["amount"],
            "currency": options["currency"],
            "receipt": options["receipt"],
            "status": "created",
        }

    def fetch_payment(self, payment_id: str) -> dict:
        self.fetched.append(payment_id)
        if self.fail:
            raise UpstreamGatewayError("Failed to fetch payment details: timeout")
        return {"id": payment_id, "entity": "payment", "status": "captured", "amount": 50000}


def make_settings(tmp_path, **overrides) -> Settings:
    values = dict(
        DATABASE_URL=f"sqlite:///{tmp_path / 'slotpay-test.db'}",
        RAZORPAY_KEY_ID="rzp_test_abc123",
        RAZORPAY_KEY_SECRET=SECRET,
        TIMEZONE="Asia/Kolkata",
        DRY_RUN=True,
        ENV="dev",
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


def booking_request(**overrides) -> BookingRequest:
    data = {
        "name": "Asha Rao",
        "email": "asha@example.com",
        "phone": "+919800000001",
        "reason": "Consulta general",
        "appointmentDate": "2024-06-01",
        "appointmentTime": "14:30",
        "paymentId": "pay_1",
        "amount": 50000,
    }
    data.update(overrides)
    return BookingRequest.model_validate(data)


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture
def session_factory(settings):
    engine = make_engine(settings)
    init_db(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def client(settings, gateway, session_factory):
    from slotpay.main import create_app

    app = create_app(settings=settings, gateway=gateway, session_factory=session_factory)
    return TestClient(app)
