# giftcards/apps.py

from django.apps import AppConfig


class GiftCardsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "giftcards"
    verbose_name = "Gift Card Vault"
