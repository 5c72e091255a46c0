"""Email utilities for the orders app.

Uses Django's email backend, with links composed from FRONTEND_URL. Emails
are scheduled with ``transaction.on_commit`` so they only go out for changes
that were actually saved, and a failed send is logged without touching the
order.
"""

import logging

from django.conf import settings
from django.core.mail import send_mail
from django.db import transaction

from .models import Order

logger = logging.getLogger("storefront.orders")


def _order_url(order) -> str:
    frontend = getattr(settings, "FRONTEND_URL", "")
    if not frontend:
        return ""
    return f"{frontend.rstrip('/')}/orders/{order.number or order.id}"


def send_order_paid_email(order) -> None:
    """Send a payment confirmation email to the order's email address."""

    to_email = order.email or getattr(order.user, "email", None)
    if not to_email:
        return

    subject = f"Your order {order.number or order.id} is confirmed"
    lines = [
        f"Hi {order.customer_name},",
        "",
        "Thank you for your purchase! Your payment was confirmed.",
        "",
        f"Order: {order.number or order.id}",
    ]
    for item in order.items.all():
        lines.append(f"  {item.quantity} x {item.product_title} ({item.sku}): R$ {item.line_total:.2f}")
    lines += [
        f"Subtotal: R$ {order.subtotal:.2f}",
        f"Shipping: R$ {order.shipping_cost:.2f}",
        f"Discount: R$ {order.discount:.2f}",
        f"Total: R$ {order.total:.2f}",
    ]
    url = _order_url(order)
    if url:
        lines += ["", f"You can view your order here: {url}"]

    send_mail(subject, "\n".join(lines) + "\n", getattr(settings, "DEFAULT_FROM_EMAIL", None), [to_email])


def send_order_status_email(order) -> None:
    to_email = order.email or getattr(order.user, "email", None)
    if not to_email:
        return

    subject = f"Order {order.number or order.id}: {order.get_status_display()}"
    body = f"Order: {order.number or order.id}\nStatus: {order.get_status_display()}\n"
    if order.tracking_number:
        body += f"Tracking number: {order.tracking_number}\n"
    url = _order_url(order)
    if url:
        body += f"\nYou can view your order here: {url}\n"

    send_mail(subject, body, getattr(settings, "DEFAULT_FROM_EMAIL", None), [to_email])


EMAILS = {
    "paid": send_order_paid_email,
    "status": send_order_status_email,
}


def schedule_order_email(kind: str, order_id: int) -> None:
    """Send an order email once the surrounding transaction commits."""

    def _send():
        try:
            order = Order.objects.get(id=order_id)
            EMAILS[kind](order)
        except Exception:
            logger.warning(
                "orders.email_failed",
                extra={"event": "orders.email_failed", "order_id": order_id, "email_kind": kind},
                exc_info=True,
            )

    transaction.on_commit(_send)


# EOF
