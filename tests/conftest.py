import hashlib
import hmac
import itertools
import os
from datetime import datetime, timedelta, timezone

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("BASE_URL", "http://testserver")
os.environ.setdefault("FRONTEND_URL", "http://shop.test")

import pytest
import razorpay
import stripe
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from pdfstore import models  # noqa: F401  registers tables
from pdfstore.database import get_session
from pdfstore.main import app
from pdfstore.models.item import Item
from pdfstore.models.payment_settings import PaymentSettings
from pdfstore.models.user import User
from pdfstore.routes import payments as payments_routes
from pdfstore.services import r2_client
from pdfstore.services.gateways import RazorpayGateway, build_gateway
from pdfstore.utils.token import create_access_token

RAZORPAY_KEY_ID = "rzp_test_key"
RAZORPAY_KEY_SECRET = "rzp_test_secret"
STRIPE_PUBLISHABLE_KEY = "pk_test_123"
STRIPE_SECRET_KEY = "sk_test_123"


class FakeClock:
    """Wall clock the test moves by hand."""

    def __init__(self, now=datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


def razorpay_signature(order_id: str, payment_id: str, secret: str = RAZORPAY_KEY_SECRET) -> str:
    return hmac.new(
        secret.encode(), f"{order_id}|{payment_id}".encode(), hashlib.sha256
    ).hexdigest()


class FakeRazorpayOrders:
    def __init__(self):
        self.created = {}
        self.fail = False
        self._ids = itertools.count(1)

    def create(self, data):
        if self.fail:
            raise razorpay.errors.ServerError("razorpay is down")
        order_id = f"order_rzp_{next(self._ids)}"
        self.created[order_id] = {**data, "id": order_id, "status": "created"}
        return self.created[order_id]


class FakeRazorpayPayments:
    def __init__(self):
        self.payments = {}
        self.fetch_calls = 0
        self.fail = False

    def fetch(self, payment_id):
        self.fetch_calls += 1
        if self.fail:
            raise razorpay.errors.ServerError("razorpay is down")
        if payment_id not in self.payments:
            raise razorpay.errors.BadRequestError("The id provided does not exist")
        return self.payments[payment_id]


class FakeStripeIntents:
    def __init__(self):
        self.intents = {}
        self.retrieve_calls = 0
        self.fail = False
        self._ids = itertools.count(1)

    def create(self, amount, currency, description, metadata, api_key):
        assert api_key == STRIPE_SECRET_KEY
        if self.fail:
            raise stripe.APIConnectionError("stripe is down")
        intent_id = f"pi_{next(self._ids)}"
        self.intents[intent_id] = {
            "id": intent_id,
            "client_secret": f"{intent_id}_secret_abc",
            "amount": amount,
            "currency": currency,
            "metadata": dict(metadata),
            "status": "requires_payment_method",
        }
        return self.intents[intent_id]

    def retrieve(self, intent_id, api_key):
        assert api_key == STRIPE_SECRET_KEY
        self.retrieve_calls += 1
        if self.fail:
            raise stripe.APIConnectionError("stripe is down")
        if intent_id not in self.intents:
            raise stripe.InvalidRequestError(f"No such payment_intent: {intent_id}", "intent")
        return self.intents[intent_id]


class FakeGatewayBackend:
    """Both gateways' servers, as seen through their SDKs."""

    def __init__(self):
        self.razorpay_orders = FakeRazorpayOrders()
        self.razorpay_payments = FakeRazorpayPayments()
        self.stripe_intents = FakeStripeIntents()
        self._payment_ids = itertools.count(1)

    def pay_razorpay(self, razorpay_order_id, status="captured"):
        payment_id = f"pay_{next(self._payment_ids)}"
        order = self.razorpay_orders.created[razorpay_order_id]
        self.razorpay_payments.payments[payment_id] = {
            "id": payment_id,
            "order_id": razorpay_order_id,
            "amount": order["amount"],
            "currency": order["currency"],
            "status": status,
        }
        return payment_id, razorpay_signature(razorpay_order_id, payment_id)

    def pay_stripe(self, intent_id, status="succeeded"):
        intent = self.stripe_intents.intents[intent_id]
        intent["status"] = status
        return dict(intent)

    def builder(self, payment_settings, gateway, require_enabled=True):
        built = build_gateway(payment_settings, gateway, require_enabled)
        if isinstance(built, RazorpayGateway):
            built.client.order = self.razorpay_orders
            built.client.payment = self.razorpay_payments
        else:
            built.intents = self.stripe_intents
        return built


@pytest.fixture(name="engine")
def engine_fixture():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="session")
def session_fixture(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture(name="backend")
def backend_fixture():
    return FakeGatewayBackend()


@pytest.fixture(name="sent_emails")
def sent_emails_fixture(monkeypatch):
    sent = []

    def fake_send(order, item, user=None):
        sent.append({"order_id": order.id, "item_id": item.id, "user": user})
        return True

    monkeypatch.setattr(payments_routes, "send_purchase_success_email", fake_send)
    return sent


@pytest.fixture(autouse=True)
def fake_storage(monkeypatch):
    def presign(key, expires, filename=None):
        return f"https://r2.test/{key}?X-Amz-Expires={expires}"

    monkeypatch.setattr(r2_client, "to_presigned_url", presign)


@pytest.fixture(name="client")
def client_fixture(engine, backend, sent_emails):
    def get_session_override():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = get_session_override
    app.dependency_overrides[payments_routes.get_gateway_builder] = lambda: backend.builder

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture(name="item")
def item_fixture(session):
    item = Item(title="Organic Chemistry Notes", price=199.0, file_key="pdfs/organic.pdf")
    session.add(item)
    session.commit()
    session.refresh(item)
    return item


@pytest.fixture(name="user")
def user_fixture(session):
    user = User(name="Asha Rao", email="asha@example.com")
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture(name="admin")
def admin_fixture(session):
    admin = User(name="Admin", email="admin@example.com", role="admin")
    session.add(admin)
    session.commit()
    session.refresh(admin)
    return admin


def token_for(user: User) -> str:
    return create_access_token({"sub": str(user.id)})


def auth(user: User) -> dict:
    return {"Authorization": f"Bearer {token_for(user)}"}


def save_settings(session, **overrides) -> PaymentSettings:
    values = dict(
        id=1,
        payments_enabled=True,
        razorpay_enabled=True,
        razorpay_key_id=RAZORPAY_KEY_ID,
        razorpay_key_secret=RAZORPAY_KEY_SECRET,
        stripe_enabled=True,
        stripe_publishable_key=STRIPE_PUBLISHABLE_KEY,
        stripe_secret_key=STRIPE_SECRET_KEY,
    )
    values.update(overrides)
    existing = session.get(PaymentSettings, 1)
    if existing:
        session.delete(existing)
        session.commit()
    payment_settings = PaymentSettings(**values)
    session.add(payment_settings)
    session.commit()
    session.refresh(payment_settings)
    return payment_settings
