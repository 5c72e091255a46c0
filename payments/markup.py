"""XML wire format of the payment processor.

Requests are built from dataclasses whose field order is the tag order the
processor expects. ``to_markup`` walks them:

- lists become a wrapper tag holding repeated singular tags (``items`` ->
  ``item``, ``documents`` -> ``document``, otherwise a trailing ``s`` is
  dropped); empty lists are left out;
- nested dataclasses and mappings become nested tags;
- ``None`` fields are left out;
- text is entity-escaped and ``Decimal`` is written with two places.

Responses are parsed with ElementTree into ``TransactionResult``.
"""

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field, fields, is_dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional, Union
from xml.sax.saxutils import escape

from common.exceptions import GatewayError

XML_DECLARATION = '<?xml version="1.0" encoding="ISO-8859-1" standalone="yes"?>'
ENTITIES = {'"': "&quot;", "'": "&apos;"}
SINGULAR_TAGS = {"items": "item", "documents": "document"}
CENTS = Decimal("0.01")


def tag(name: str):
    """Field whose XML tag is not the camelCase of its attribute name."""

    return field(default=None, metadata={"tag": name})


@dataclass
class Phone:
    area_code: str
    number: str


@dataclass
class Document:
    type: str
    value: str


@dataclass(kw_only=True)
class Address:
    street: str
    number: str
    complement: str = ""
    district: str
    postal_code: str
    city: str
    state: str
    country: str = "BRA"


@dataclass
class Sender:
    name: str
    email: str
    phone: Optional[Phone] = None
    documents: list[Document] = field(default_factory=list)
    hash: Optional[str] = None


@dataclass
class Item:
    id: str
    description: str
    amount: Decimal
    quantity: int


@dataclass
class Shipping:
    address_required: bool = True
    address: Optional[Address] = None
    type: int = 3
    cost: Decimal = Decimal("0.00")


@dataclass
class Installment:
    quantity: int
    value: Decimal
    no_interest_installment_quantity: int = 1


@dataclass
class Holder:
    name: str
    documents: list[Document] = field(default_factory=list)
    birth_date: Optional[str] = None
    phone: Optional[Phone] = None


@dataclass
class CreditCard:
    token: str
    installment: Installment
    holder: Holder
    billing_address: Optional[Address] = None


@dataclass
class Bank:
    name: str


@dataclass(kw_only=True)
class ChargeRequest:
    payment_mode: str = "default"
    payment_method: str
    currency: str = "BRL"
    notification_url: Optional[str] = tag("notificationURL")
    sender: Sender
    items: list[Item]
    reference: str
    extra_amount: Optional[Decimal] = None
    redirect_url: Optional[str] = tag("redirectURL")
    shipping: Optional[Shipping] = None
    credit_card: Optional[CreditCard] = None
    bank: Optional[Bank] = None


@dataclass(frozen=True)
class TransactionResult:
    code: str
    status: Optional[int]
    reference: str = ""
    payment_link: str = ""
    qr_code: str = ""
    emv: str = ""
    gross_amount: Optional[Decimal] = None


def camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def singular(name: str) -> str:
    if name in SINGULAR_TAGS:
        return SINGULAR_TAGS[name]
    return name[:-1] if name.endswith("s") else name


def _scalar(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Decimal):
        return str(value.quantize(CENTS))
    return escape(str(value), ENTITIES)


def _children(value) -> list[tuple[str, Any]]:
    if is_dataclass(value):
        return [(f.metadata.get("tag") or camel(f.name), getattr(value, f.name)) for f in fields(value)]
    return list(value.items())


def _render(name: str, value, out: list[str]) -> None:
    if value is None:
        return
    if isinstance(value, (list, tuple)):
        if not value:
            return
        item_tag = singular(name)
        out.append(f"<{name}>")
        for entry in value:
            _render(item_tag, entry, out)
        out.append(f"</{name}>")
        return
    if is_dataclass(value) or isinstance(value, Mapping):
        out.append(f"<{name}>")
        for child_name, child in _children(value):
            _render(child_name, child, out)
        out.append(f"</{name}>")
        return
    out.append(f"<{name}>{_scalar(value)}</{name}>")


def to_markup(payload, root: str = "payment") -> str:
    """Serialize a dataclass or mapping to the processor's XML."""

    if not (is_dataclass(payload) or isinstance(payload, Mapping)):
        raise TypeError("payload must be a dataclass or a mapping")
    out = [XML_DECLARATION]
    _render(root, payload, out)
    return "".join(out)


def _parse(body: Union[str, bytes]) -> ET.Element:
    if not body:
        raise GatewayError("Empty response from payment gateway")
    try:
        return ET.fromstring(body)
    except ET.ParseError as exc:
        raise GatewayError(f"Malformed response from payment gateway: {exc}") from exc


def error_messages(root: ET.Element) -> list[str]:
    return [
        f"{(err.findtext('code') or '').strip()}: {(err.findtext('message') or '').strip()}".strip(": ")
        for err in root.iter("error")
    ]


def _raise_for_errors(root: ET.Element) -> None:
    if root.tag == "errors":
        messages = error_messages(root) or ["unspecified error"]
        raise GatewayError("Payment gateway rejected the request: " + "; ".join(messages))


def parse_errors(body: Union[str, bytes]) -> list[str]:
    """Messages of an ``<errors>`` document; empty when the body is something else."""

    try:
        root = ET.fromstring(body)
    except ET.ParseError:
        return []
    return error_messages(root) if root.tag == "errors" else []


def parse_transaction(body: Union[str, bytes]) -> TransactionResult:
    root = _parse(body)
    _raise_for_errors(root)
    if root.tag != "transaction":
        raise GatewayError(f"Unexpected <{root.tag}> document from payment gateway")
    code = (root.findtext("code") or "").strip()
    if not code:
        raise GatewayError("Payment gateway response has no transaction code")

    raw_status = (root.findtext("status") or "").strip()
    try:
        status = int(raw_status) if raw_status else None
    except ValueError:
        raise GatewayError(f"Unknown transaction status {raw_status!r}")

    try:
        gross_amount = Decimal((root.findtext("grossAmount") or "").strip())
    except InvalidOperation:
        gross_amount = None
    return TransactionResult(
        code=code,
        status=status,
        reference=(root.findtext("reference") or "").strip(),
        payment_link=(root.findtext(".//paymentLink") or "").strip(),
        qr_code=(root.findtext(".//qrCode") or "").strip(),
        emv=(root.findtext(".//emv") or "").strip(),
        gross_amount=gross_amount,
    )


def parse_session(body: Union[str, bytes]) -> str:
    root = _parse(body)
    _raise_for_errors(root)
    session_id = (root.findtext("id") or "").strip()
    if root.tag != "session" or not session_id:
        raise GatewayError("Payment gateway did not return a session id")
    return session_id


# EOF
