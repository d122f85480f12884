# giftcards/urls.py

from django.urls import path

from giftcards.views import (
    GiftCardDeactivateView,
    GiftCardIssueView,
    GiftCardPreviewView,
    GiftCardRedeemView,
    GiftCardSearchView,
    GiftCardStatsView,
    GiftCardValidateView,
)

app_name = "giftcards"

urlpatterns = [
    # ---------------- CUSTOMER ----------------
    path("token/<uuid:qr_token>/", GiftCardPreviewView.as_view(), name="preview"),
    path("redeem/", GiftCardRedeemView.as_view(), name="redeem"),
    path("validate/", GiftCardValidateView.as_view(), name="validate"),
    # ---------------- SUPPORT / ADMIN ----------------
    path("", GiftCardIssueView.as_view(), name="issue"),
    path("search/", GiftCardSearchView.as_view(), name="search"),
    path("stats/", GiftCardStatsView.as_view(), name="stats"),
    path("<uuid:pk>/deactivate/", GiftCardDeactivateView.as_view(), name="deactivate"),
]
