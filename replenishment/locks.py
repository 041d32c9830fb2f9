"""Per-client single-flight guard backed by the `SettlementLease` table.

Acquisition is an INSERT against a unique `client` column, so it works
across processes sharing the database. A lease past `expires_at` belongs to
a crashed holder and may be taken over.
"""

import logging
import uuid
from contextlib import contextmanager
from datetime import timedelta
from typing import Iterator, Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from .models import SettlementLease

logger = logging.getLogger("smartsupply.replenishment")


class SettlementInProgress(Exception):
    """Another settlement pass already holds this client's lease."""

    def __init__(self, client_id: int):
        super().__init__(f"Settlement already in progress for client {client_id}")
        self.client_id = client_id


@contextmanager
def single_flight(client_id: int, *, holder: str = "", ttl_seconds: Optional[int] = None) -> Iterator[str]:
    """Hold the client's settlement lease for the duration of the block.

    Raises SettlementInProgress if a live lease exists. Yields the lease token.
    """

    ttl = int(ttl_seconds if ttl_seconds is not None else settings.REPLENISHMENT_LEASE_TTL_SECONDS)
    token = uuid.uuid4().hex
    now = timezone.now()
    expires_at = now + timedelta(seconds=ttl)

    try:
        with transaction.atomic():
            SettlementLease.objects.create(client_id=client_id, token=token, holder=holder, expires_at=expires_at)
    except IntegrityError:
        # Conditional update: only one contender can take over an expired lease
        taken = SettlementLease.objects.filter(client_id=client_id, expires_at__lte=now).update(
            token=token, holder=holder, expires_at=expires_at, updated_at=now
        )
        if not taken:
            raise SettlementInProgress(client_id)
        logger.warning(
            "settlement_lease_taken_over",
            extra={"event": "settlement_lease_taken_over", "client_id": client_id, "holder": holder},
        )

    try:
        yield token
    finally:
        SettlementLease.objects.filter(client_id=client_id, token=token).delete()
