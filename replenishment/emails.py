"""Settlement notification emails.

Uses Django's email backend; order links are composed from FRONTEND_URL.
Delivery errors propagate so the caller can log them.
"""

from django.conf import settings
from django.core.mail import send_mail


def _order_url(order) -> str:
    frontend = getattr(settings, "FRONTEND_URL", "")
    if not frontend:
        return ""
    return f"{frontend.rstrip('/')}/orders/{order.id}"


def _itemized_lines(order) -> list[str]:
    return [
        f"- {item.product_title} ({item.product_sku}) x {item.quantity} @ {item.unit_price} = {item.line_total}"
        for item in order.items.all()
    ]


def send_settlement_email(order, result) -> bool:
    """Tell the client how settlement of an automatic order ended.

    Returns False without sending when the client has no email address.
    """
    to_email = order.client.notification_email
    if not to_email:
        return False

    number = order.number or order.id
    if result.paid:
        subject = f"Automatic order {number} confirmed"
        intro = "Your automatic replenishment order was created and paid."
        status_line = f"Payment: {order.payment_status} (transaction {order.transaction_id})"
    else:
        subject = f"Automatic order {number}: payment failed"
        intro = "Your automatic replenishment order was created, but the payment did not go through."
        status_line = f"Payment: {order.payment_status} ({result.reason}: {result.detail})"

    body_lines = [
        intro,
        "",
        f"Order: {number}",
        f"Status: {order.status}",
        status_line,
        "",
        "Items:",
        *_itemized_lines(order),
        "",
        f"Total: {order.total_amount} {str(settings.REPLENISHMENT_CURRENCY).upper()}",
    ]
    url = _order_url(order)
    if url:
        body_lines += ["", f"You can view your order here: {url}"]

    send_mail(
        subject,
        "\n".join(body_lines) + "\n",
        getattr(settings, "DEFAULT_FROM_EMAIL", None),
        [to_email],
        fail_silently=False,
    )
    return True
