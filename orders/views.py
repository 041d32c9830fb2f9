"""Orders API endpoints (read-only).

Clients can list and inspect their orders, including the automatic orders
created by the replenishment engine and the reason a settlement failed.
"""

from clients.selectors import get_client_for_user
from django.http import Http404
from drf_spectacular.utils import OpenApiExample, OpenApiParameter, extend_schema
from rest_framework import generics
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAuthenticated

from .models import Order
from .serializers import OrderSerializer


class DefaultPagination(PageNumberPagination):
    page_size = 20
    page_size_query_param = "page_size"


class ClientOrdersMixin:
    """Scope order querysets to the authenticated user's client account."""

    def get_client(self):
        client = get_client_for_user(self.request.user)
        if client is None:
            raise Http404("No client account for this user.")
        return client

    def get_queryset(self):
        return Order.objects.filter(client=self.get_client()).prefetch_related("items")


class OrderListView(ClientOrdersMixin, generics.ListAPIView):
    """List the client's orders with basic filters.

    Filters:
    - `status`, `payment_status`, `source`, `number`: exact matches
    - `start`: ISO date/time string; filters `created_at >= start`
    - `end`: ISO date/time string; filters `created_at <= end`
    """

    permission_classes = [IsAuthenticated]
    serializer_class = OrderSerializer
    pagination_class = DefaultPagination
    throttle_scope = "orders"
    filterset_fields = ["status", "payment_status", "source", "number"]
    ordering_fields = ["id", "created_at", "total_amount"]

    def get_queryset(self):
        qs = super().get_queryset().order_by("-id")
        start = self.request.query_params.get("start")
        if start:
            qs = qs.filter(created_at__gte=start)
        end = self.request.query_params.get("end")
        if end:
            qs = qs.filter(created_at__lte=end)
        return qs

    @extend_schema(
        tags=["Orders"],
        summary="List orders",
        description="List the current client's orders with optional filters and pagination.",
        parameters=[
            OpenApiParameter(name="status", description="Order status filter", required=False, type=str),
            OpenApiParameter(name="payment_status", description="Pending, Paid or Failed", required=False, type=str),
            OpenApiParameter(name="source", description="auto or manual", required=False, type=str),
            OpenApiParameter(name="number", description="Order number exact match", required=False, type=str),
            OpenApiParameter(name="start", description="Created at >= start (ISO)", required=False, type=str),
            OpenApiParameter(name="end", description="Created at <= end (ISO)", required=False, type=str),
            OpenApiParameter(name="page", description="Page number", required=False, type=int),
            OpenApiParameter(name="page_size", description="Items per page", required=False, type=int),
        ],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)


class OrderDetailView(ClientOrdersMixin, generics.RetrieveAPIView):
    """Retrieve a single order owned by the current client."""

    permission_classes = [IsAuthenticated]
    throttle_scope = "orders"
    serializer_class = OrderSerializer

    def get_object(self):
        try:
            return self.get_queryset().get(id=int(self.kwargs["order_id"]))
        except (Order.DoesNotExist, ValueError):
            raise Http404("Not found.")

    @extend_schema(
        tags=["Orders"],
        summary="Get order detail",
        examples=[
            OpenApiExample(
                "Failed automatic order",
                value={
                    "id": 42,
                    "number": "AUTO-000042",
                    "source": "auto",
                    "status": "pending",
                    "payment_status": "Failed",
                    "payment_method": "",
                    "transaction_id": "",
                    "failure_reason": "no_instrument",
                    "total_amount": "250.00",
                    "notes": (
                        "Automatic replenishment order generated by the system.\n"
                        "Automatic payment failed (no_instrument): No saved payment method on file."
                    ),
                    "created_at": "2026-01-01T19:53:00Z",
                    "items": [
                        {
                            "id": 7,
                            "product": 3,
                            "product_title": "Nitrile gloves (box of 100)",
                            "product_sku": "GLV-100",
                            "quantity": 20,
                            "unit_price": "12.50",
                            "line_total": "250.00",
                        }
                    ],
                },
                response_only=True,
            )
        ],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)
