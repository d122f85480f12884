# core/api.py

"""
API ERROR NORMALIZATION

Canonical envelope used by every view:

    {"error": {"code": "...", "message": "..."}}

Messages are the generic public text of the error class. Internal detail is
logged, never returned.
"""

from __future__ import annotations

import ipaddress
import logging

from django.conf import settings
from rest_framework.response import Response

from core.exceptions import StoreCreditError

logger = logging.getLogger(__name__)


def error_response(*, code: str, message: str, http_status: int, **extra):
    """
    Canonical API error response.
    """
    body = {"code": code, "message": message}
    body.update(extra)
    return Response({"error": body}, status=http_status)


def domain_error_response(exc: StoreCreditError):
    logger.info(
        "Domain error returned to client",
        extra={"code": exc.code, "detail": exc.detail},
    )
    extra = {"retryable": True} if exc.retryable else {}
    return error_response(
        code=exc.code,
        message=str(exc.public_message),
        http_status=exc.http_status,
        **extra,
    )


def normalize_ip(value) -> str | None:
    try:
        return str(ipaddress.ip_address(str(value or "").strip()))
    except ValueError:
        return None


def client_ip(request) -> str | None:
    """
    Client IP as seen by our edge.

    REMOTE_ADDR unless settings.TRUSTED_PROXY_COUNT says how many
    X-Forwarded-For hops our own proxies appended; the hop just before them
    is the client. Anything the client put further left is ignored.
    Unparseable addresses return None.
    """
    trusted = int(getattr(settings, "TRUSTED_PROXY_COUNT", 0) or 0)
    if trusted > 0:
        hops = [hop.strip() for hop in (request.META.get("HTTP_X_FORWARDED_FOR") or "").split(",")]
        hops = [hop for hop in hops if hop]
        if len(hops) >= trusted:
            return normalize_ip(hops[-trusted])
    return normalize_ip(request.META.get("REMOTE_ADDR"))


def result_error_response(result):
    """Envelope for a non-ok ServiceResult (same mapping as raise_for_outcome)."""
    error_cls = result.ERRORS.get(result.outcome, StoreCreditError)
    return domain_error_response(
        error_cls(f"{type(result).__name__}: {result.outcome}")
    )
