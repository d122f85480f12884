# promotions/urls.py

from django.urls import path

from promotions.views import (
    PromotionDeactivateView,
    PromotionListCreateView,
    PromotionPreviewView,
)

app_name = "promotions"

urlpatterns = [
    path("", PromotionListCreateView.as_view(), name="list-create"),
    path("<str:code>/", PromotionPreviewView.as_view(), name="preview"),
    path("<str:code>/deactivate/", PromotionDeactivateView.as_view(), name="deactivate"),
]
