# core/notifications.py

"""
OUTBOUND NOTIFICATIONS (FIRE-AND-FORGET)

Delivery (email, push) belongs to an external service. We only POST a small
JSON event to NOTIFICATIONS["WEBHOOK_URL"] once the surrounding transaction
has committed.

RULES:
- Scheduled with transaction.on_commit: a rolled-back mutation never notifies.
- A delivery failure is logged and swallowed. It can never undo or fail the
  mutation that triggered it.
- Disabled when WEBHOOK_URL is empty.
"""

from __future__ import annotations

import json
import logging
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from django.db import transaction
from django.utils import timezone

from core.conf import notifications_setting

logger = logging.getLogger(__name__)

EVENT_REFERRAL_REWARD_CREDITED = "referral.reward_credited"
EVENT_REFERRAL_REWARD_REVOKED = "referral.reward_revoked"
EVENT_GIFT_CARD_REDEEMED = "gift_card.redeemed"
EVENT_GIFT_CARD_ISSUED = "gift_card.issued"


def _deliver(event: str, payload: dict) -> bool:
    url = (notifications_setting("WEBHOOK_URL") or "").strip()
    if not url:
        return False

    body = json.dumps(
        {"event": event, "sent_at": timezone.now().isoformat(), "data": payload},
        ensure_ascii=False,
        default=str,
    ).encode("utf-8")

    req = Request(
        url,
        data=body,
        headers={"Content-Type": "application/json", "Accept": "application/json"},
        method="POST",
    )

    timeout = int(notifications_setting("TIMEOUT_SECONDS", 5) or 5)
    try:
        with urlopen(req, timeout=timeout) as resp:
            resp.read()
    except HTTPError as exc:
        logger.warning(
            "Notification rejected",
            extra={"event": event, "status": exc.code},
        )
        return False
    except (URLError, OSError, ValueError) as exc:
        logger.warning(
            "Notification delivery failed",
            extra={"event": event, "error": str(exc)},
        )
        return False

    logger.info("Notification delivered", extra={"event": event})
    return True


def notify(event: str, payload: dict) -> None:
    """Schedule delivery after commit (immediately if not in a transaction)."""
    transaction.on_commit(lambda: _deliver(event, payload))
