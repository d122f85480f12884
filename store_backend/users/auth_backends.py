"""
PATH: users/auth_backends.py

AUTH BACKEND: Email OR Username login (not both)

Rules:
- Identifier containing "@" is treated as an email, otherwise as a username.
- Supplying both email and username explicitly fails authentication.
- Inactive and anonymized (deleted) accounts never authenticate.

Used by Django authenticate() and by SimpleJWT's token endpoint.
"""

from __future__ import annotations

from django.contrib.auth import get_user_model
from django.contrib.auth.backends import BaseBackend

User = get_user_model()


class EmailOrUsernameBackend(BaseBackend):
    def authenticate(self, request, username=None, password=None, **kwargs):
        email_kw = (kwargs.get("email") or "").strip()
        username_kw = (kwargs.get("username") or "").strip()

        if email_kw and username_kw:
            return None

        identifier = (username or email_kw or username_kw or "").strip()
        if not identifier or password is None:
            return None

        lookup = "email__iexact" if "@" in identifier else "username__iexact"
        user = User.objects.filter(**{lookup: identifier}).first()
        if user is None:
            return None

        if not user.is_active or user.anonymized_at is not None:
            return None

        if user.check_password(password):
            return user

        return None

    def get_user(self, user_id):
        return User.objects.filter(pk=user_id, is_active=True).first()
