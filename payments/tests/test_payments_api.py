import httpx
import pytest
from common.choices import PaymentMethod
from inventory.models import StockItem
from orders.models import IdempotencyKey, Order
from orders.services import place_order
from orders.tests.factories import checkout_payload, stocked_product
from payments.client import GatewayClient
from payments.models import GatewayNotification
from rest_framework.test import APIClient

from .factories import errors_xml, mock_gateway, transaction_xml


@pytest.fixture
def gateway(monkeypatch):
    """Route every GatewayClient built from settings to a programmable fake processor."""

    state = {"handler": None, "calls": []}

    def _from_settings(**kwargs):
        return mock_gateway(lambda request: state["handler"](request), state["calls"])

    monkeypatch.setattr(GatewayClient, "from_settings", _from_settings)
    return state


@pytest.fixture
def order():
    product = stocked_product(quantity=5)
    return place_order(**checkout_payload((product, 2))).order


def _charge_url(order):
    return f"/api/v1/payments/orders/{order.id}/charge/"


@pytest.mark.django_db
def test_guest_charges_own_order_by_email(gateway, order):
    gateway["handler"] = lambda r: httpx.Response(
        200, content=transaction_xml("TX-1", 1, order.number, qrCode="<![CDATA[QR]]>")
    )

    r = APIClient().post(_charge_url(order), {"email": "ANA@example.com"}, format="json")

    assert r.status_code == 200
    body = r.json()
    assert body["transaction"]["code"] == "TX-1"
    assert body["transaction"]["qr_code"] == "QR"
    assert body["order"] == {
        "id": order.id,
        "number": order.number,
        "status": "pending",
        "payment_status": "pending",
    }


@pytest.mark.django_db
def test_charge_of_someone_elses_order_is_404(gateway, order):
    gateway["handler"] = lambda r: httpx.Response(200, content=transaction_xml("TX-1", 3, order.number))

    r = APIClient().post(_charge_url(order), {"email": "other@example.com"}, format="json")

    assert r.status_code == 404
    assert gateway["calls"] == []


@pytest.mark.django_db
def test_gateway_failure_is_502_and_releases_stock(gateway, order):
    gateway["handler"] = lambda r: httpx.Response(400, content=errors_xml(("53044", "sender name invalid")))

    r = APIClient().post(
        _charge_url(order),
        {"email": order.email},
        format="json",
        HTTP_IDEMPOTENCY_KEY="pay-1",
    )

    assert r.status_code == 502
    assert r.json() == {"detail": "We could not process your payment. Please try again."}
    assert "53044" not in r.content.decode()
    order.refresh_from_db()
    assert order.payment_status == Order.PAYMENT_FAILED
    assert StockItem.objects.get(product_id=order.items.get().product_id).reserved == 0
    assert not IdempotencyKey.objects.filter(key="pay-1").exists()


@pytest.mark.django_db
def test_charge_replay_with_same_key_calls_gateway_once(gateway, order):
    gateway["handler"] = lambda r: httpx.Response(200, content=transaction_xml("TX-1", 3, order.number))
    client = APIClient()

    first = client.post(_charge_url(order), {"email": order.email}, format="json", HTTP_IDEMPOTENCY_KEY="pay-2")
    second = client.post(_charge_url(order), {"email": order.email}, format="json", HTTP_IDEMPOTENCY_KEY="pay-2")

    assert first.status_code == second.status_code == 200
    assert first.json() == second.json()
    assert first.json()["order"]["payment_status"] == "paid"
    assert len(gateway["calls"]) == 1


@pytest.mark.django_db
def test_second_charge_with_new_key_is_refused_while_first_awaits_payment(gateway, order):
    gateway["handler"] = lambda r: httpx.Response(200, content=transaction_xml("TX-1", 1, order.number))
    client = APIClient()

    first = client.post(_charge_url(order), {"email": order.email}, format="json", HTTP_IDEMPOTENCY_KEY="pay-3")
    second = client.post(_charge_url(order), {"email": order.email}, format="json", HTTP_IDEMPOTENCY_KEY="pay-4")

    assert first.status_code == 200
    assert second.status_code == 400
    assert second.json() == {"detail": "A payment for this order is already in progress."}
    assert len(gateway["calls"]) == 1


@pytest.mark.django_db
def test_card_charge_without_token_is_400(gateway):
    product = stocked_product(quantity=5)
    order = place_order(**checkout_payload((product, 1), payment_method=PaymentMethod.CREDIT_CARD)).order

    r = APIClient().post(_charge_url(order), {"email": order.email}, format="json")

    assert r.status_code == 400
    assert r.json() == {"detail": "Card details are missing."}


@pytest.mark.django_db
def test_session_endpoint(gateway):
    gateway["handler"] = lambda r: httpx.Response(200, content=b"<session><id>abc123</id></session>")

    r = APIClient().post("/api/v1/payments/session/")

    assert r.status_code == 200
    assert r.json() == {"session_id": "abc123"}


@pytest.mark.django_db
def test_session_endpoint_gateway_down(gateway):
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    gateway["handler"] = handler

    r = APIClient().post("/api/v1/payments/session/")

    assert r.status_code == 502


@pytest.mark.django_db
def test_notification_webhook_pays_order_and_tolerates_replays(gateway, order):
    gateway["handler"] = lambda r: httpx.Response(200, content=transaction_xml("TX-1", 3, order.number))
    client = APIClient()

    url = "/api/v1/payments/notifications/"
    first = client.post(url, {"notificationCode": "N-1", "notificationType": "transaction"})
    replay = client.post(url, {"notificationCode": "N-1"})

    assert first.status_code == replay.status_code == 200
    assert replay.json() == {"status": "ok"}
    assert len(gateway["calls"]) == 1
    order.refresh_from_db()
    assert order.payment_status == Order.PAYMENT_PAID
    assert GatewayNotification.objects.get(code="N-1").notification_type == "transaction"


@pytest.mark.django_db
def test_notification_webhook_always_answers_ok(gateway):
    gateway["handler"] = lambda r: httpx.Response(500, text="boom")
    client = APIClient()

    missing_code = client.post("/api/v1/payments/notifications/", {})
    gateway_down = client.post("/api/v1/payments/notifications/", {"notificationCode": "N-2"})
    gateway["handler"] = lambda r: httpx.Response(200, content=transaction_xml("TX-9", 3, "ORD-999999"))
    unknown_order = client.post("/api/v1/payments/notifications/?notificationCode=N-3")

    assert missing_code.status_code == gateway_down.status_code == unknown_order.status_code == 200
    assert not GatewayNotification.objects.filter(processed_at__isnull=False).exists()
