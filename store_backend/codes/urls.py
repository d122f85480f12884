# codes/urls.py

from django.urls import path

from codes.views import CodeAvailabilityView, CodeRegistryStatsView, CodeReserveView

app_name = "codes"

urlpatterns = [
    path("reserve/", CodeReserveView.as_view(), name="reserve"),
    path("stats/", CodeRegistryStatsView.as_view(), name="stats"),
    path("<str:code>/availability/", CodeAvailabilityView.as_view(), name="availability"),
]
