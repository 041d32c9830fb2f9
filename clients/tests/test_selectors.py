import pytest
from clients.selectors import get_client_for_user, get_payment_identity, list_auto_order_eligible_clients
from clients.tests.factories import ClientFactory
from django.contrib.auth.models import AnonymousUser
from replenishment.tests.factories import LedgerEntryFactory
from users.tests.factories import UserFactory


@pytest.mark.django_db
def test_eligible_clients_have_an_enabled_entry_and_are_active():
    eligible = ClientFactory()
    LedgerEntryFactory(client=eligible)
    LedgerEntryFactory(client=eligible)
    mixed = ClientFactory()
    LedgerEntryFactory(client=mixed, auto_order_enabled=False)
    LedgerEntryFactory(client=mixed)
    disabled = ClientFactory()
    LedgerEntryFactory(client=disabled, auto_order_enabled=False)
    inactive = ClientFactory(is_active=False)
    LedgerEntryFactory(client=inactive)
    ClientFactory()  # no ledger at all

    assert list_auto_order_eligible_clients() == sorted([eligible.id, mixed.id])


@pytest.mark.django_db
def test_payment_identity_is_none_when_blank():
    assert get_payment_identity(ClientFactory(gateway_customer_id="cus_123")) == "cus_123"
    assert get_payment_identity(ClientFactory(gateway_customer_id=" cus_456 ")) == "cus_456"
    assert get_payment_identity(ClientFactory(gateway_customer_id=None)) is None
    assert get_payment_identity(ClientFactory(gateway_customer_id="  ")) is None


@pytest.mark.django_db
def test_get_client_for_user():
    client = ClientFactory()

    assert get_client_for_user(client.user) == client
    assert get_client_for_user(UserFactory()) is None
    assert get_client_for_user(AnonymousUser()) is None


@pytest.mark.django_db
def test_notification_email_prefers_client_email():
    client = ClientFactory(email="orders@clinic.example")
    assert client.notification_email == "orders@clinic.example"

    client.email = ""
    assert client.notification_email == client.user.email
