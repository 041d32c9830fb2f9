"""Read-only data access helpers for the client directory."""

from typing import Optional

from .models import Client


def list_auto_order_eligible_clients() -> list[int]:
    """Return ids of active clients with at least one auto-order-enabled ledger entry."""

    return list(
        Client.objects.filter(is_active=True, ledger_entries__auto_order_enabled=True)
        .distinct()
        .order_by("id")
        .values_list("id", flat=True)
    )


def get_payment_identity(client: Client) -> Optional[str]:
    """Return the client's payment-gateway customer reference, or None if unset.

    Whitespace-only values are treated as unset.
    """

    ref = (client.gateway_customer_id or "").strip()
    return ref or None


def get_client_for_user(user) -> Optional[Client]:
    """Return the client account owned by the given user, if any."""

    if not getattr(user, "id", None):
        return None
    return Client.objects.select_related("user").filter(user_id=user.id).first()
