import pytest

from pdfstore.models.order import Order
from pdfstore.models.user import User
from pdfstore.services import verification_service
from pdfstore.services.gateways import REJECTED, VERIFIED
from pdfstore.services.verification_service import verify_order_payment

from conftest import auth, razorpay_signature, save_settings


@pytest.fixture
def configured(session):
    return save_settings(session)


def create_guest_order(client, item, gateway):
    response = client.post("/payments/create-order", json={
        "item_id": item.id,
        "amount": item.price,
        "purchase_type": "guest",
        "guest_email": "guest@example.com",
        "payment_gateway": gateway,
    })
    assert response.status_code == 200
    return response.json()


def verify(client, order_id, gateway, payment_id, signature=None, headers=None):
    return client.post("/payments/verify-payment", json={
        "order_id": order_id,
        "payment_gateway": gateway,
        "payment_id": payment_id,
        "signature": signature,
    }, headers=headers or {})


def load(session, order_id) -> Order:
    session.expire_all()
    return session.get(Order, order_id)


def test_razorpay_valid_signature_verifies(client, session, item, backend, configured, sent_emails):
    created = create_guest_order(client, item, "razorpay")
    payment_id, signature = backend.pay_razorpay(created["razorpay_order_id"])

    response = verify(client, created["order_id"], "razorpay", payment_id, signature)

    assert response.status_code == 200
    assert response.json() == {"success": True, "order_id": created["order_id"], "status": "success"}

    order = load(session, created["order_id"])
    assert order.status == "success"
    assert order.gateway_payment_id == payment_id
    assert order.gateway_signature == signature
    assert order.verified_at is not None
    assert [e["order_id"] for e in sent_emails] == [order.id]


def test_razorpay_bad_signature_rejected_before_backend(client, session, item, backend, configured, sent_emails):
    created = create_guest_order(client, item, "razorpay")
    payment_id, _ = backend.pay_razorpay(created["razorpay_order_id"])
    forged = razorpay_signature(created["razorpay_order_id"], payment_id, secret="wrong")

    response = verify(client, created["order_id"], "razorpay", payment_id, forged)

    assert response.status_code == 200
    assert response.json()["success"] is False
    assert backend.razorpay_payments.fetch_calls == 0
    assert load(session, created["order_id"]).status == "failed"
    assert sent_emails == []


def test_razorpay_failed_payment_rejected(client, session, item, backend, configured):
    created = create_guest_order(client, item, "razorpay")
    payment_id, signature = backend.pay_razorpay(created["razorpay_order_id"], status="failed")

    response = verify(client, created["order_id"], "razorpay", payment_id, signature)

    assert response.json()["success"] is False
    assert load(session, created["order_id"]).status == "failed"


def test_razorpay_payment_for_other_order_rejected(client, session, item, backend, configured):
    first = create_guest_order(client, item, "razorpay")
    second = create_guest_order(client, item, "razorpay")
    payment_id, _ = backend.pay_razorpay(second["razorpay_order_id"])
    # signature is valid for the first order's id, payment belongs to the second
    signature = razorpay_signature(first["razorpay_order_id"], payment_id)

    response = verify(client, first["order_id"], "razorpay", payment_id, signature)

    assert response.json()["success"] is False


def test_stripe_status_rechecked_on_server(client, session, item, backend, configured):
    created = create_guest_order(client, item, "stripe")
    intent_id = created["stripe_payment_intent_id"]

    # the client claims success, the gateway says the card was declined
    backend.pay_stripe(intent_id, status="requires_payment_method")
    response = verify(client, created["order_id"], "stripe", intent_id)

    assert response.json()["success"] is False
    assert backend.stripe_intents.retrieve_calls == 1
    assert load(session, created["order_id"]).status == "failed"


def test_stripe_succeeded_verifies(client, session, item, backend, configured):
    created = create_guest_order(client, item, "stripe")
    intent_id = created["stripe_payment_intent_id"]
    backend.pay_stripe(intent_id)

    response = verify(client, created["order_id"], "stripe", intent_id)

    assert response.json()["success"] is True
    assert load(session, created["order_id"]).gateway_payment_id == intent_id


def test_stripe_foreign_intent_rejected(client, session, item, backend, configured):
    mine = create_guest_order(client, item, "stripe")
    other = create_guest_order(client, item, "stripe")
    backend.pay_stripe(other["stripe_payment_intent_id"])

    response = verify(client, mine["order_id"], "stripe", other["stripe_payment_intent_id"])

    assert response.json()["success"] is False
    assert backend.stripe_intents.retrieve_calls == 0


def test_duplicate_verification_is_idempotent(client, session, item, backend, configured, sent_emails):
    created = create_guest_order(client, item, "razorpay")
    payment_id, signature = backend.pay_razorpay(created["razorpay_order_id"])

    first = verify(client, created["order_id"], "razorpay", payment_id, signature)
    verified_at = load(session, created["order_id"]).verified_at
    second = verify(client, created["order_id"], "razorpay", payment_id, signature)

    assert first.json() == second.json() == {
        "success": True, "order_id": created["order_id"], "status": "success",
    }
    assert backend.razorpay_payments.fetch_calls == 1
    assert load(session, created["order_id"]).verified_at == verified_at
    assert len(sent_emails) == 1


def test_failed_order_stays_failed(client, session, item, backend, configured):
    created = create_guest_order(client, item, "razorpay")
    payment_id, _ = backend.pay_razorpay(created["razorpay_order_id"])

    verify(client, created["order_id"], "razorpay", payment_id, "0" * 64)
    # a later, genuinely valid callback cannot resurrect the order
    signature = razorpay_signature(created["razorpay_order_id"], payment_id)
    response = verify(client, created["order_id"], "razorpay", payment_id, signature)

    assert response.json() == {"success": False, "order_id": created["order_id"], "status": "failed"}
    assert load(session, created["order_id"]).verified_at is None


def test_gateway_outage_keeps_order_pending(client, session, item, backend, configured):
    created = create_guest_order(client, item, "razorpay")
    payment_id, signature = backend.pay_razorpay(created["razorpay_order_id"])
    backend.razorpay_payments.fail = True

    response = verify(client, created["order_id"], "razorpay", payment_id, signature)
    assert response.status_code == 502
    assert load(session, created["order_id"]).status == "pending"

    backend.razorpay_payments.fail = False
    response = verify(client, created["order_id"], "razorpay", payment_id, signature)
    assert response.json()["success"] is True


def test_processing_payment_is_409_and_pending(client, session, item, backend, configured):
    created = create_guest_order(client, item, "stripe")
    intent_id = created["stripe_payment_intent_id"]
    backend.pay_stripe(intent_id, status="processing")

    response = verify(client, created["order_id"], "stripe", intent_id)

    assert response.status_code == 409
    assert load(session, created["order_id"]).status == "pending"


def test_verification_survives_gateway_being_disabled(client, session, item, backend, configured):
    created = create_guest_order(client, item, "razorpay")
    payment_id, signature = backend.pay_razorpay(created["razorpay_order_id"])
    save_settings(session, razorpay_enabled=False)

    response = verify(client, created["order_id"], "razorpay", payment_id, signature)

    assert response.json()["success"] is True


def test_gateway_mismatch_and_unknown_order(client, item, backend, configured):
    created = create_guest_order(client, item, "razorpay")

    assert verify(client, created["order_id"], "stripe", "pi_1").status_code == 400
    assert verify(client, "nope", "razorpay", "pay_1", "sig").status_code == 404


def test_account_order_email_goes_to_user(client, session, item, user, backend, configured, sent_emails):
    created = client.post(
        "/payments/create-order",
        json={
            "item_id": item.id, "amount": item.price, "purchase_type": "user",
            "user_id": user.id, "payment_gateway": "razorpay",
        },
        headers=auth(user),
    ).json()
    payment_id, signature = backend.pay_razorpay(created["razorpay_order_id"])

    verify(client, created["order_id"], "razorpay", payment_id, signature, headers=auth(user))

    assert sent_emails[0]["user"].id == user.id


def test_account_order_verifies_only_for_its_owner(client, session, item, user, backend, configured):
    created = client.post(
        "/payments/create-order",
        json={
            "item_id": item.id, "amount": item.price, "purchase_type": "user",
            "user_id": user.id, "payment_gateway": "razorpay",
        },
        headers=auth(user),
    ).json()
    payment_id, _ = backend.pay_razorpay(created["razorpay_order_id"])
    stranger = User(name="Other", email="other@example.com")
    session.add(stranger)
    session.commit()
    session.refresh(stranger)

    # a bogus signature from someone else must not fail the owner's order
    anonymous = verify(client, created["order_id"], "razorpay", payment_id, "0" * 64)
    someone_else = verify(
        client, created["order_id"], "razorpay", payment_id, "0" * 64, headers=auth(stranger)
    )

    assert anonymous.status_code == 401
    assert someone_else.status_code == 403
    assert load(session, created["order_id"]).status == "pending"
    assert backend.razorpay_payments.fetch_calls == 0


class _CountingGateway:
    def __init__(self, outcome):
        self.outcome = outcome
        self.calls = 0

    def confirm(self, order, payment_id, signature):
        self.calls += 1
        return self.outcome


def _pending_order(session, item):
    order = Order(
        guest_email="guest@example.com", item_id=item.id, amount=item.price,
        gateway="razorpay", gateway_order_id="order_rzp_x",
    )
    session.add(order)
    session.commit()
    session.refresh(order)
    return order


def test_racing_verification_only_transitions_once(engine, session, item, monkeypatch):
    order = _pending_order(session, item)

    real_settle = verification_service._settle
    calls = []

    def settle_after_rival(session_, order_, status, payment_id, signature):
        # a duplicate callback settles the order between our check and our write
        if not calls:
            calls.append("rival")
            real_settle(session_, order_, status, payment_id, signature)
        return real_settle(session_, order_, status, payment_id, signature)

    monkeypatch.setattr(verification_service, "_settle", settle_after_rival)

    result = verify_order_payment(
        session=session, order=order, gateway=_CountingGateway(VERIFIED),
        payment_id="pay_1", signature="sig",
    )

    assert result.verified is True
    assert result.transitioned is False
    assert order.status == "success"


def test_terminal_orders_never_reach_the_gateway(session, item):
    order = _pending_order(session, item)
    gateway = _CountingGateway(REJECTED)

    first = verify_order_payment(session=session, order=order, gateway=gateway, payment_id="pay_1")
    second = verify_order_payment(session=session, order=order, gateway=gateway, payment_id="pay_1")

    assert first.verified is second.verified is False
    assert first.transitioned is True
    assert second.transitioned is False
    assert gateway.calls == 1
