"""Management command to expire stale pending rewards."""

from django.core.management.base import BaseCommand

from punchman.services.redemption import RedemptionService


class Command(BaseCommand):
    help = "Mark pending rewards past their expiration date as expired"

    def handle(self, *args, **options):
        count = RedemptionService().mark_expired_rewards()
        self.stdout.write(
            self.style.SUCCESS(f"Expired {count} reward(s).")
        )
