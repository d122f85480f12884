# referrals/urls.py

from django.urls import path

from referrals.views import (
    MyReferralView,
    ReferralEligibilityView,
    ReferralHistoryView,
    ReferralRevokeView,
    ReferralSignupView,
    UserReferralView,
)

app_name = "referrals"

urlpatterns = [
    path("me/", MyReferralView.as_view(), name="me"),
    path("history/", ReferralHistoryView.as_view(), name="history"),
    path("eligibility/", ReferralEligibilityView.as_view(), name="eligibility"),
    path("signup/", ReferralSignupView.as_view(), name="signup"),
    path("revoke/", ReferralRevokeView.as_view(), name="revoke"),
    path("users/<uuid:user_id>/", UserReferralView.as_view(), name="user-detail"),
]
