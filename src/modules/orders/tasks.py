"""Asynchronous tasks of the orders module."""

from __future__ import annotations

import structlog
from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail
from django.db import DatabaseError
from django.template.defaultfilters import floatformat

from modules.orders.models import Order

logger = structlog.get_logger(__name__)


def render_confirmation(order: Order) -> tuple[str, str]:
    """Plain-text subject and body of the confirmation e-mail."""
    lines = [
        f"Hi {order.customer.name},",
        "",
        f"Thank you for your order {order.order_number}.",
        "",
    ]
    for item in order.items.all():
        lines.append(
            f"  {item.quantity} x {item.product.name}  "
            f"{order.currency} {floatformat(item.line_total, 2)}"
        )
    lines += [
        "",
        f"Subtotal: {order.currency} {floatformat(order.subtotal, 2)}",
        f"Tax:      {order.currency} {floatformat(order.tax_amount, 2)}",
        f"Shipping: {order.currency} {floatformat(order.shipping_amount, 2)}",
        f"Total:    {order.currency} {floatformat(order.total_amount, 2)}",
    ]
    subject = f"Order Confirmation - {order.order_number}"
    return subject, "\n".join(lines)


@shared_task(
    name="orders.send_order_confirmation",
    bind=True,
    autoretry_for=(DatabaseError,),
    retry_backoff=True,
    max_retries=3,
)
def send_order_confirmation(self, order_id: str) -> dict:
    log = logger.bind(order_id=order_id)
    order = (
        Order.objects.select_related("customer")
        .prefetch_related("items__product")
        .filter(id=order_id)
        .first()
    )
    if order is None:
        log.warning("order.confirmation_skipped", reason="order_not_found")
        return {"status": "skipped", "order_id": order_id}

    subject, body = render_confirmation(order)
    send_mail(
        subject,
        body,
        settings.DEFAULT_FROM_EMAIL,
        [order.customer.email],
        fail_silently=False,
    )
    log.info("order.confirmation_sent", order_number=order.order_number)
    return {"status": "sent", "order_id": order_id}
