"""Integration tests for the M-Pesa purchase flow."""
from __future__ import annotations

import os
from typing import Callable, Iterator

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_lenscape.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from lenscape.clients import mpesa  # noqa: E402
from lenscape.database import Base, SessionLocal, engine  # noqa: E402
from lenscape.main import app  # noqa: E402
from lenscape.models import MarketplaceImage, PaymentTransaction, Purchase, User  # noqa: E402
from lenscape.services import get_current_user  # noqa: E402


@pytest.fixture(scope="module", autouse=True)
def _create_schema() -> Iterator[None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _clean_database() -> Iterator[None]:
    with SessionLocal() as session:
        for table in reversed(Base.metadata.sorted_tables):
            session.execute(table.delete())
        session.commit()
    yield


@pytest.fixture
def user_factory() -> Callable[..., User]:
    def _factory(username: str, **fields) -> User:
        with SessionLocal() as session:
            user = User(username=username, hashed_password="test-hash", **fields)
            session.add(user)
            session.commit()
            session.refresh(user)
            return user
    return _factory


@pytest.fixture
def image_factory() -> Callable[..., MarketplaceImage]:
    def _factory(owner: User, *, title: str | None = None, status: str = "unpaid") -> MarketplaceImage:
        with SessionLocal() as session:
            image = MarketplaceImage(
                user_id=owner.id,
                image_url=f"https://cdn.example.test/marketplace/{title or 'image'}.jpg",
                collection_title=title,
                file_name=f"{title or 'image'}.jpg",
                status=status,
            )
            session.add(image)
            session.commit()
            session.refresh(image)
            return image
    return _factory


@pytest.fixture
def authed_client() -> Iterator[Callable[[User], TestClient]]:
    with TestClient(app) as client:
        def _with_user(user: User) -> TestClient:
            def _override() -> User:
                return user
            app.dependency_overrides[get_current_user] = _override
            return client
        yield _with_user
    app.dependency_overrides.clear()


@pytest.fixture
def gateway(monkeypatch) -> list[dict]:
    requests: list[dict] = []
    config = mpesa.MpesaConfig(
        base_url="https://sandbox.example.test",
        shortcode="174379",
        callback_url="https://api.example.test/marketplace/payments/callback",
        consumer_key="key",
        consumer_secret="secret",
        passkey="passkey",
        timeout=5.0,
    )

    async def _fake_push(**kwargs) -> mpesa.StkPushResult:
        requests.append(kwargs)
        return mpesa.StkPushResult(
            checkout_request_id=f"ws_CO_{len(requests)}",
            merchant_request_id="29115-34620561-1",
            customer_message="Success. Request accepted for processing",
        )

    monkeypatch.setattr(mpesa, "load_mpesa_config", lambda: config)
    monkeypatch.setattr(mpesa, "request_stk_push", _fake_push)
    monkeypatch.delenv("MPESA_CALLBACK_TOKEN", raising=False)
    return requests


def _daraja_callback(checkout_id: str, code: int, receipt: str | None = None) -> dict:
    callback: dict = {
        "MerchantRequestID": "29115-34620561-1",
        "CheckoutRequestID": checkout_id,
        "ResultCode": code,
        "ResultDesc": "The service request is processed successfully." if code == 0 else "Request cancelled by user",
    }
    if receipt:
        callback["CallbackMetadata"] = {
            "Item": [
                {"Name": "Amount", "Value": 200},
                {"Name": "MpesaReceiptNumber", "Value": receipt},
                {"Name": "PhoneNumber", "Value": 254712345678},
            ]
        }
    return {"Body": {"stkCallback": callback}}


def test_successful_purchase_marks_images_paid(authed_client, user_factory, image_factory, gateway):
    buyer = user_factory("buyer_one")
    first = image_factory(buyer, title="Sunset")
    second = image_factory(buyer, title="Sunrise")
    client = authed_client(buyer)

    started = client.post(
        "/marketplace/payments",
        json={"phone_number": "0712345678", "image_ids": [str(first.id), str(second.id)]},
    )
    assert started.status_code == 201
    body = started.json()
    assert body["status"] == "pending"
    assert body["is_pending"] is True
    assert body["amount"] == 200
    assert body["description"] == "Purchase 2 image(s)"
    assert gateway[0]["phone_number"] == "0712345678"
    assert gateway[0]["amount"] == 200

    callback = client.post("/marketplace/payments/callback", json=_daraja_callback("ws_CO_1", 0, "QKX12ABC"))
    assert callback.status_code == 200
    assert callback.json() == {"ResultCode": 0, "ResultDesc": "Accepted"}

    status_body = client.get(f"/marketplace/payments/{body['transaction_id']}").json()
    assert status_body["status"] == "completed"
    assert status_body["is_completed"] is True
    assert status_body["mpesa_receipt_number"] == "QKX12ABC"

    with SessionLocal() as session:
        assert {image.status for image in session.query(MarketplaceImage).all()} == {"paid"}
        assert {purchase.status for purchase in session.query(Purchase).all()} == {"completed"}

    purchases = client.get("/marketplace/purchases").json()["items"]
    assert len(purchases) == 2
    assert all(item["amount"] == 100 for item in purchases)

    download = client.get(f"/marketplace/images/{first.id}/download", follow_redirects=False)
    assert download.status_code == 307

    repeat = client.post("/marketplace/payments/callback", json=_daraja_callback("ws_CO_1", 1032))
    assert repeat.status_code == 200
    assert client.get(f"/marketplace/payments/{body['transaction_id']}").json()["status"] == "completed"


def test_single_image_description_and_result_codes(authed_client, user_factory, image_factory, gateway):
    buyer = user_factory("buyer_two")
    image = image_factory(buyer, title="Maasai Mara")
    client = authed_client(buyer)

    started = client.post("/marketplace/payments", json={"phone_number": "0112345678", "image_ids": [str(image.id)]})
    assert started.json()["description"] == "Purchase 1 image: Maasai Mara"

    cancelled = client.post("/marketplace/payments/callback", json=_daraja_callback("ws_CO_1", 1032))
    assert cancelled.status_code == 200
    status_body = client.get(f"/marketplace/payments/{started.json()['transaction_id']}").json()
    assert status_body["status"] == "cancelled"
    assert status_body["is_failed"] is True

    retry = client.post("/marketplace/payments", json={"phone_number": "0112345678", "image_ids": [str(image.id)]})
    assert retry.status_code == 201
    timed_out = client.post(
        "/marketplace/payments/callback",
        json={"checkout_request_id": "ws_CO_2", "result_code": 1037, "result_desc": "Timeout"},
    )
    assert timed_out.status_code == 200
    assert client.get(f"/marketplace/payments/{retry.json()['transaction_id']}").json()["status"] == "timeout"

    with SessionLocal() as session:
        assert session.get(MarketplaceImage, image.id).status == "unpaid"


def test_payment_validation(authed_client, user_factory, image_factory, gateway):
    buyer = user_factory("buyer_three")
    other = user_factory("not_the_buyer")
    mine = image_factory(buyer, title="Mine")
    paid = image_factory(buyer, title="Owned", status="paid")
    theirs = image_factory(other, title="Theirs")
    client = authed_client(buyer)

    bad_phone = client.post("/marketplace/payments", json={"phone_number": "0812345678", "image_ids": [str(mine.id)]})
    assert bad_phone.status_code == 400

    foreign = client.post("/marketplace/payments", json={"phone_number": "0712345678", "image_ids": [str(theirs.id)]})
    assert foreign.status_code == 404

    already = client.post("/marketplace/payments", json={"phone_number": "0712345678", "image_ids": [str(paid.id)]})
    assert already.status_code == 409

    assert client.post("/marketplace/payments", json={"phone_number": "0712345678", "image_ids": []}).status_code == 422
    assert gateway == []


def test_gateway_failure_marks_transaction_failed(authed_client, user_factory, image_factory, gateway, monkeypatch):
    async def _rejecting_push(**kwargs):
        raise mpesa.PaymentGatewayError("Payment request was rejected by M-Pesa")

    monkeypatch.setattr(mpesa, "request_stk_push", _rejecting_push)
    buyer = user_factory("unlucky_buyer")
    image = image_factory(buyer, title="Retry")
    client = authed_client(buyer)

    response = client.post("/marketplace/payments", json={"phone_number": "0712345678", "image_ids": [str(image.id)]})
    assert response.status_code == 502

    with SessionLocal() as session:
        transaction = session.query(PaymentTransaction).one()
        assert transaction.status == "failed"
        assert {purchase.status for purchase in session.query(Purchase).all()} == {"failed"}


def test_payments_unavailable_without_configuration(authed_client, user_factory, image_factory, monkeypatch):
    def _missing():
        raise mpesa.PaymentConfigurationError("Missing M-Pesa configuration")

    monkeypatch.setattr(mpesa, "load_mpesa_config", _missing)
    buyer = user_factory("early_buyer")
    image = image_factory(buyer)
    client = authed_client(buyer)

    response = client.post("/marketplace/payments", json={"phone_number": "0712345678", "image_ids": [str(image.id)]})
    assert response.status_code == 503
    with SessionLocal() as session:
        assert session.query(PaymentTransaction).count() == 0


def test_cancel_only_pending(authed_client, user_factory, image_factory, gateway):
    buyer = user_factory("indecisive_buyer")
    image = image_factory(buyer)
    client = authed_client(buyer)
    transaction_id = client.post(
        "/marketplace/payments",
        json={"phone_number": "0712345678", "image_ids": [str(image.id)]},
    ).json()["transaction_id"]

    cancelled = client.post(f"/marketplace/payments/{transaction_id}/cancel")
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"
    assert client.post(f"/marketplace/payments/{transaction_id}/cancel").status_code == 409

    client = authed_client(user_factory("someone_else"))
    assert client.get(f"/marketplace/payments/{transaction_id}").status_code == 404


def test_gateway_success_after_local_cancel_completes_purchase(authed_client, user_factory, image_factory, gateway):
    buyer = user_factory("second_thoughts")
    image = image_factory(buyer, title="Diani")
    client = authed_client(buyer)
    transaction_id = client.post(
        "/marketplace/payments",
        json={"phone_number": "0712345678", "image_ids": [str(image.id)]},
    ).json()["transaction_id"]

    assert client.post(f"/marketplace/payments/{transaction_id}/cancel").json()["status"] == "cancelled"

    late = client.post("/marketplace/payments/callback", json=_daraja_callback("ws_CO_1", 0, "RCPTLATE1"))
    assert late.status_code == 200

    status_body = client.get(f"/marketplace/payments/{transaction_id}").json()
    assert status_body["status"] == "completed"
    assert status_body["mpesa_receipt_number"] == "RCPTLATE1"
    with SessionLocal() as session:
        assert session.get(MarketplaceImage, image.id).status == "paid"
        assert {purchase.status for purchase in session.query(Purchase).all()} == {"completed"}
    assert client.get(f"/marketplace/images/{image.id}/download", follow_redirects=False).status_code == 307


def test_gateway_failure_after_local_cancel_is_ignored(authed_client, user_factory, image_factory, gateway):
    buyer = user_factory("firm_cancel")
    image = image_factory(buyer, title="Lamu")
    client = authed_client(buyer)
    transaction_id = client.post(
        "/marketplace/payments",
        json={"phone_number": "0712345678", "image_ids": [str(image.id)]},
    ).json()["transaction_id"]
    client.post(f"/marketplace/payments/{transaction_id}/cancel")

    assert client.post("/marketplace/payments/callback", json=_daraja_callback("ws_CO_1", 1037)).status_code == 200
    assert client.get(f"/marketplace/payments/{transaction_id}").json()["status"] == "cancelled"


def test_untitled_single_image_description(authed_client, user_factory, image_factory, gateway):
    buyer = user_factory("no_titles")
    image = image_factory(buyer)
    client = authed_client(buyer)

    started = client.post("/marketplace/payments", json={"phone_number": "0712345678", "image_ids": [str(image.id)]})
    assert started.json()["description"] == "Purchase 1 image: Untitled"


def test_callback_rejects_bad_payloads_and_tokens(authed_client, user_factory, gateway, monkeypatch):
    client = authed_client(user_factory("callback_watcher"))

    assert client.post("/marketplace/payments/callback", json={"Body": {}}).status_code == 400
    assert client.post("/marketplace/payments/callback", json=_daraja_callback("unknown", 0)).status_code == 404

    monkeypatch.setenv("MPESA_CALLBACK_TOKEN", "s3cret-callback")
    forbidden = client.post("/marketplace/payments/callback", json=_daraja_callback("unknown", 0))
    assert forbidden.status_code == 403
    allowed = client.post(
        "/marketplace/payments/callback",
        params={"token": "s3cret-callback"},
        json=_daraja_callback("unknown", 0),
    )
    assert allowed.status_code == 404


def test_parse_stk_callback_reads_both_shapes():
    parsed = mpesa.parse_stk_callback(_daraja_callback("ws_CO_9", 0, "RCPT1"))
    assert parsed.checkout_request_id == "ws_CO_9"
    assert parsed.result_code == 0
    assert parsed.mpesa_receipt_number == "RCPT1"

    flat = mpesa.parse_stk_callback({"checkout_request_id": "abc", "result_code": "1032"})
    assert flat.result_code == 1032
    assert flat.mpesa_receipt_number is None

    with pytest.raises(ValueError):
        mpesa.parse_stk_callback({"result_code": 0})


def test_msisdn_conversion():
    assert mpesa.to_msisdn("0712345678") == "254712345678"
    assert mpesa.to_msisdn("0112 345 678") == "254112345678"
    assert mpesa.to_msisdn("254712345678") == "254712345678"
