from django.urls import path

from .views import ClientRunNowView, LedgerListView, ProjectionView, RunNowView

app_name = "replenishment"

urlpatterns = [
    path("run/", RunNowView.as_view(), name="run"),
    path("clients/<int:client_id>/run/", ClientRunNowView.as_view(), name="client-run"),
    path("ledger/", LedgerListView.as_view(), name="ledger"),
    path("projection/", ProjectionView.as_view(), name="projection"),
]
