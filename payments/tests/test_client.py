import logging
from decimal import Decimal

import httpx
import pytest
from common.exceptions import GatewayError
from payments.client import mask_url
from payments.markup import ChargeRequest, Item, Sender

from .factories import errors_xml, mock_gateway, transaction_xml


def _request() -> ChargeRequest:
    return ChargeRequest(
        payment_method="boleto",
        sender=Sender(name="José", email="jose@example.com"),
        items=[Item(id="SKU-00001", description="Ração", amount=Decimal("49.90"), quantity=1)],
        reference="ORD-000001",
    )


def test_mask_url_hides_token():
    masked = mask_url("https://ws.gateway.test/v2/sessions?email=shop%40example.com&token=SECRET-TOKEN")

    assert "SECRET-TOKEN" not in masked
    assert "token=%2A%2A%2A%2A" in masked or "token=****" in masked


def test_create_transaction_posts_latin1_markup_with_credentials():
    calls = []
    client = mock_gateway(lambda request: httpx.Response(200, content=transaction_xml("TX1", 1, "ORD-000001")), calls)

    result = client.create_transaction(_request())

    assert (result.code, result.status) == ("TX1", 1)
    request = calls[0]
    assert request.method == "POST"
    assert request.url.path == "/v2/transactions"
    assert request.url.params["email"] == "shop@example.com"
    assert request.url.params["token"] == "SECRET-TOKEN"
    assert request.headers["Content-Type"] == "application/xml;charset=ISO-8859-1"
    assert "<name>José</name>".encode("iso-8859-1") in request.content


def test_gateway_calls_are_logged_without_token_or_payload(caplog):
    client = mock_gateway(lambda request: httpx.Response(200, content=transaction_xml("TX1", 1, "ORD-000001")))

    with caplog.at_level(logging.INFO, logger="storefront.payments"):
        client.create_transaction(_request())

    record = next(r for r in caplog.records if r.getMessage() == "payments.gateway_call")
    assert record.status_code == 200
    assert "SECRET-TOKEN" not in record.url
    assert "<code>TX1</code>" in record.body
    assert all("SKU-00001" not in str(getattr(r, "body", "")) for r in caplog.records)


def test_rejection_becomes_gateway_error_with_processor_messages():
    client = mock_gateway(lambda request: httpx.Response(400, content=errors_xml(("53010", "sender email invalid"))))

    with pytest.raises(GatewayError) as excinfo:
        client.create_transaction(_request())

    assert "53010: sender email invalid" in str(excinfo.value)


def test_server_error_without_body_is_gateway_error():
    client = mock_gateway(lambda request: httpx.Response(503, text="Service Unavailable"))

    with pytest.raises(GatewayError, match="HTTP 503"):
        client.create_session()


def test_network_failure_is_gateway_error():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(GatewayError, match="unreachable"):
        mock_gateway(handler).get_notification("NOTIF-1")


def test_notification_lookup_uses_code_in_path():
    calls = []
    client = mock_gateway(lambda request: httpx.Response(200, content=transaction_xml("TX1", 3, "ORD-000001")), calls)

    result = client.get_notification("766B9C-AD4B044B04DA")

    assert result.status == 3
    assert calls[0].method == "GET"
    assert calls[0].url.path == "/v3/transactions/notifications/766B9C-AD4B044B04DA"


def test_create_session():
    client = mock_gateway(lambda request: httpx.Response(200, content=b"<session><id>abc123</id></session>"))

    with client:
        assert client.create_session() == "abc123"
