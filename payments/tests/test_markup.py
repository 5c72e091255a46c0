from decimal import Decimal

import pytest
from common.exceptions import GatewayError
from payments.markup import (
    XML_DECLARATION,
    Bank,
    ChargeRequest,
    Document,
    Item,
    Phone,
    Sender,
    Shipping,
    camel,
    parse_errors,
    parse_session,
    parse_transaction,
    singular,
    to_markup,
)

from .factories import errors_xml, transaction_xml


def _charge(**overrides) -> ChargeRequest:
    fields = {
        "payment_method": "eft",
        "sender": Sender(
            name="Ana & Bia",
            email="ana@example.com",
            phone=Phone(area_code="11", number="987654321"),
            documents=[Document(type="CPF", value="12345678909")],
        ),
        "items": [
            Item(id="SKU-00001", description='Dog "comfy" bed', amount=Decimal("49.9"), quantity=2),
            Item(id="SKU-00002", description="Rope <toy>", amount=Decimal("10"), quantity=1),
        ],
        "reference": "ORD-000001",
        "shipping": Shipping(cost=Decimal("15"), address_required=False),
        "bank": Bank(name="itau"),
    }
    fields.update(overrides)
    return ChargeRequest(**fields)


def test_tag_names():
    assert camel("no_interest_installment_quantity") == "noInterestInstallmentQuantity"
    assert camel("reference") == "reference"
    assert singular("items") == "item"
    assert singular("documents") == "document"
    assert singular("bank") == "bank"


def test_charge_request_fields_keep_declared_order():
    markup = to_markup(_charge(notification_url="https://shop.test/hook"))

    assert markup.startswith(XML_DECLARATION + "<payment><paymentMode>default</paymentMode>")
    assert markup.endswith("</payment>")
    positions = [
        markup.index(tag)
        for tag in (
            "<paymentMethod>",
            "<currency>",
            "<notificationURL>",
            "<sender>",
            "<items>",
            "<reference>",
            "<shipping>",
            "<bank>",
        )
    ]
    assert positions == sorted(positions)


def test_lists_become_repeated_singular_tags():
    markup = to_markup(_charge())

    assert markup.count("<item>") == 2
    assert "<items><item><id>SKU-00001</id>" in markup
    assert "<documents><document><type>CPF</type><value>12345678909</value></document></documents>" in markup


def test_values_are_escaped_and_money_has_two_places():
    markup = to_markup(_charge())

    assert "<name>Ana &amp; Bia</name>" in markup
    assert "<description>Dog &quot;comfy&quot; bed</description>" in markup
    assert "<description>Rope &lt;toy&gt;</description>" in markup
    assert "<amount>49.90</amount>" in markup
    assert "<cost>15.00</cost>" in markup
    assert "<addressRequired>false</addressRequired>" in markup


def test_none_fields_are_left_out():
    markup = to_markup(_charge())

    assert "notificationURL" not in markup
    assert "creditCard" not in markup
    assert "extraAmount" not in markup
    assert "<hash>" not in markup


def test_mapping_payloads_are_supported():
    markup = to_markup({"code": "ABC", "items": [{"id": "1"}]}, root="checkout")

    assert markup == XML_DECLARATION + "<checkout><code>ABC</code><items><item><id>1</id></item></items></checkout>"


def test_to_markup_rejects_scalars():
    with pytest.raises(TypeError):
        to_markup("payment")


def test_parse_transaction_reads_pix_fields():
    body = transaction_xml(
        "9E884542-81B3-4419-9A75-BCC6FB495EF1",
        1,
        "ORD-000001",
        grossAmount="64.90",
        paymentLink="https://pay.test/boleto/1",
        qrCode="<![CDATA[data:image/png;base64,AAAA]]>",
        emv="<![CDATA[00020126580014br.gov.bcb.pix]]>",
    )

    result = parse_transaction(body)

    assert result.code == "9E884542-81B3-4419-9A75-BCC6FB495EF1"
    assert result.status == 1
    assert result.reference == "ORD-000001"
    assert result.gross_amount == Decimal("64.90")
    assert result.payment_link == "https://pay.test/boleto/1"
    assert result.qr_code == "data:image/png;base64,AAAA"
    assert result.emv == "00020126580014br.gov.bcb.pix"


def test_parse_transaction_raises_for_errors_document():
    body = errors_xml(("53004", "items invalid quantity."), ("53020", "sender phone is required."))

    with pytest.raises(GatewayError) as excinfo:
        parse_transaction(body)

    assert "53004: items invalid quantity." in str(excinfo.value)
    assert parse_errors(body) == ["53004: items invalid quantity.", "53020: sender phone is required."]


@pytest.mark.parametrize(
    "body",
    [
        b"",
        b"<transaction><code>ABC",
        b"<html>Service unavailable</html>",
        b"<transaction><status>3</status></transaction>",
        b"<transaction><code>ABC</code><status>paid</status></transaction>",
    ],
)
def test_parse_transaction_rejects_unusable_bodies(body):
    with pytest.raises(GatewayError):
        parse_transaction(body)


def test_parse_errors_ignores_non_error_bodies():
    assert parse_errors(b"not xml") == []
    assert parse_errors(transaction_xml("ABC", 3, "ORD-000001")) == []


def test_parse_session():
    assert parse_session(b"<session><id>620f99e348c24f07877c927b353e49d3</id></session>") == (
        "620f99e348c24f07877c927b353e49d3"
    )
    with pytest.raises(GatewayError):
        parse_session(b"<session></session>")
