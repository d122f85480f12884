# credits/management/commands/verify_ledgers.py

"""
PATH: credits/management/commands/verify_ledgers.py

Replay every StoreCredit ledger and report inconsistencies.

Exit status:
- 0 when every account replays to its stored balance
- 1 (CommandError) when at least one account does not
"""

from __future__ import annotations

from django.core.management.base import BaseCommand, CommandError

from credits.models import StoreCredit
from credits.services.ledger_service import replay_ledger


class Command(BaseCommand):
    help = "Verify store credit ledgers by replaying their transaction history."

    def add_arguments(self, parser):
        parser.add_argument(
            "--user",
            type=str,
            default="",
            help="Only verify the account of this user id.",
        )

    def handle(self, *args, **options):
        accounts = StoreCredit.objects.all().order_by("created_at")
        user_id = (options.get("user") or "").strip()
        if user_id:
            accounts = accounts.filter(user_id=user_id)

        checked = 0
        broken = 0

        for account in accounts.iterator():
            checked += 1
            audit = replay_ledger(account)
            if audit.ok:
                continue

            broken += 1
            self.stdout.write(
                self.style.ERROR(f"{audit.store_credit_id} (user={audit.user_id}):")
            )
            for problem in audit.problems:
                self.stdout.write(f"  - {problem}")

        self.stdout.write(f"Checked: {checked}  Inconsistent: {broken}")

        if broken:
            raise CommandError(f"{broken} ledger(s) failed verification")

        self.stdout.write(self.style.SUCCESS("All ledgers consistent."))
