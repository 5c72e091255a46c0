from decimal import Decimal

import factory
import httpx
from common.choices import PaymentMethod, PaymentStatus
from factory.django import DjangoModelFactory
from orders.tests.factories import OrderFactory
from payments.client import GatewayClient
from payments.models import PaymentTransaction


class PaymentTransactionFactory(DjangoModelFactory):
    class Meta:
        model = PaymentTransaction

    order = factory.SubFactory(OrderFactory)
    code = factory.Sequence(lambda n: f"TX{n:08d}")
    method = PaymentMethod.PIX
    amount = Decimal("64.90")
    status = PaymentStatus.PENDING


def transaction_xml(code: str, status: int, reference: str, **extra) -> bytes:
    children = "".join(f"<{tag}>{value}</{tag}>" for tag, value in extra.items())
    return (
        '<?xml version="1.0" encoding="ISO-8859-1" standalone="yes"?>'
        f"<transaction><code>{code}</code><reference>{reference}</reference>"
        f"<status>{status}</status>{children}</transaction>"
    ).encode("iso-8859-1")


def errors_xml(*errors) -> bytes:
    body = "".join(f"<error><code>{code}</code><message>{message}</message></error>" for code, message in errors)
    return f'<?xml version="1.0" encoding="ISO-8859-1" standalone="yes"?><errors>{body}</errors>'.encode()


def mock_gateway(handler, calls=None) -> GatewayClient:
    """GatewayClient whose HTTP traffic goes to ``handler(request) -> httpx.Response``."""

    def _record(request):
        if calls is not None:
            calls.append(request)
        return handler(request)

    return GatewayClient(
        base_url="https://ws.gateway.test",
        email="shop@example.com",
        token="SECRET-TOKEN",
        transport=httpx.MockTransport(_record),
    )
