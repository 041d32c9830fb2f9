"""Replenishment API endpoints.

- manual "run now" trigger for the current client, and a staff variant for any client
- read-only ledger listing
- pure consumption projection over N days
"""

from clients.models import Client
from clients.selectors import get_client_for_user
from common.choices import RunOutcome
from django.http import Http404
from drf_spectacular.utils import OpenApiExample, OpenApiParameter, extend_schema, inline_serializer
from orders.serializers import OrderSerializer
from orders.services import with_idempotency
from rest_framework import generics, status
from rest_framework import serializers as rf_serializers
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .jobs import RunResult, run_for_client
from .selectors import list_ledger_for_client, project_consumption
from .serializers import LedgerEntrySerializer, ProjectionQuerySerializer, ProjectionSerializer, RunResultSerializer

RUN_STATUS_CODES = {
    RunOutcome.NO_ACTION: status.HTTP_200_OK,
    RunOutcome.SUCCEEDED: status.HTTP_201_CREATED,
    RunOutcome.FAILED: status.HTTP_402_PAYMENT_REQUIRED,
    RunOutcome.IN_PROGRESS: status.HTTP_409_CONFLICT,
}

IDEMPOTENCY_HEADER = OpenApiParameter(
    name="Idempotency-Key",
    location=OpenApiParameter.HEADER,
    required=False,
    description="When provided, repeated calls with the same key return the first response",
    type=str,
)

RUN_EXAMPLES = [
    OpenApiExample("Nothing due", value={"outcome": "no_action"}, response_only=True, status_codes=["200"]),
    OpenApiExample("In progress", value={"outcome": "in_progress"}, response_only=True, status_codes=["409"]),
    OpenApiExample(
        "Payment failed",
        value={
            "outcome": "failed",
            "reason": "no_instrument",
            "detail": "No saved payment method on file.",
            "order": {"id": 42, "number": "AUTO-000042", "payment_status": "Failed"},
        },
        response_only=True,
        status_codes=["402"],
    ),
]


def run_response_body(result: RunResult) -> tuple[dict, int]:
    body = {"outcome": str(result.outcome)}
    if result.reason:
        body["reason"] = str(result.reason)
    if result.detail:
        body["detail"] = result.detail
    if result.order is not None:
        body["order"] = OrderSerializer(result.order).data
    return body, RUN_STATUS_CODES.get(result.outcome, status.HTTP_200_OK)


def current_client(request) -> Client:
    client = get_client_for_user(request.user)
    if client is None:
        raise Http404("No client account for this user.")
    return client


class RunTriggerMixin:
    """Run one replenishment pass, idempotently when an Idempotency-Key header is sent."""

    def run(self, request, client_id: int) -> Response:
        def _handler():
            return run_response_body(run_for_client(client_id, holder=f"api:user:{request.user.id}"))

        idem_key = request.headers.get("Idempotency-Key")
        if idem_key:
            body, code = with_idempotency(
                key=idem_key,
                user=request.user,
                path=str(request.path),
                method=str(request.method),
                handler=_handler,
            )
            return Response(body, status=code)
        body, code = _handler()
        return Response(body, status=code)


class RunNowView(RunTriggerMixin, APIView):
    """Run automatic replenishment now for the current client (no consumption decrement)."""

    permission_classes = [IsAuthenticated]
    throttle_scope = "replenishment_write"

    @extend_schema(
        tags=["Replenishment"],
        summary="Run automatic replenishment now",
        request=None,
        parameters=[IDEMPOTENCY_HEADER],
        responses={
            200: RunResultSerializer,
            201: RunResultSerializer,
            402: RunResultSerializer,
            409: RunResultSerializer,
            404: inline_serializer(name="RunNotFound", fields={"detail": rf_serializers.CharField()}),
        },
        examples=RUN_EXAMPLES,
    )
    def post(self, request):
        return self.run(request, current_client(request).id)


class ClientRunNowView(RunTriggerMixin, APIView):
    """Staff-only: run automatic replenishment now for any client."""

    permission_classes = [IsAdminUser]
    throttle_scope = "replenishment_write"

    @extend_schema(
        tags=["Replenishment"],
        summary="Run automatic replenishment now for a client (staff)",
        request=None,
        parameters=[IDEMPOTENCY_HEADER],
        responses={
            200: RunResultSerializer,
            201: RunResultSerializer,
            402: RunResultSerializer,
            409: RunResultSerializer,
        },
        examples=RUN_EXAMPLES,
    )
    def post(self, request, client_id: int):
        if not Client.objects.filter(id=client_id).exists():
            raise Http404("Client not found.")
        return self.run(request, client_id)


class LedgerListView(generics.ListAPIView):
    """List the current client's ledger entries."""

    permission_classes = [IsAuthenticated]
    serializer_class = LedgerEntrySerializer
    throttle_scope = "replenishment"
    filterset_fields = ["auto_order_enabled", "product"]
    ordering_fields = ["id", "current_stock", "reorder_point"]

    def get_queryset(self):
        return list_ledger_for_client(current_client(self.request).id)

    @extend_schema(tags=["Replenishment"], summary="List ledger entries")
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)


class ProjectionView(APIView):
    """Project the current client's stock over the next N days. Nothing is written."""

    permission_classes = [IsAuthenticated]
    throttle_scope = "replenishment"

    @extend_schema(
        tags=["Replenishment"],
        summary="Project consumption",
        parameters=[
            OpenApiParameter(name="days", description="Horizon in days (1-365)", required=False, type=int),
        ],
        responses={200: ProjectionSerializer(many=True)},
    )
    def get(self, request):
        query = ProjectionQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        client = current_client(request)
        rows = project_consumption(list_ledger_for_client(client.id), query.validated_data["days"])
        return Response(ProjectionSerializer(rows, many=True).data)
