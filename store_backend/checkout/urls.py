# checkout/urls.py

from django.urls import path

from checkout.views import CheckoutQuoteView, PaymentWebhookView

app_name = "checkout"

urlpatterns = [
    path("quote/", CheckoutQuoteView.as_view(), name="quote"),
    path("webhook/", PaymentWebhookView.as_view(), name="webhook"),
]
