"""Account service - punch card status, history and VIP thresholds."""

import logging

from django.utils import timezone

from punchman import rules
from punchman.config import ConfigSnapshotProvider, get_default_provider
from punchman.exceptions import PunchmanError
from punchman.ledger import LedgerStore
from punchman.models import LoyaltyAccount
from punchman.protocols.loyalty import AvailableReward, LoyaltyStatus, PunchEntry
from punchman.services.punching import credit_punches

logger = logging.getLogger(__name__)


class AccountService:
    """Read API over loyalty accounts, plus the per-customer threshold override."""

    def __init__(self, provider: ConfigSnapshotProvider | None = None, ledger: LedgerStore | None = None):
        self.provider = provider or get_default_provider()
        self.ledger = ledger or LedgerStore()

    def get_status(self, customer_id: str) -> LoyaltyStatus | None:
        """Punch card summary, or None if the customer never earned a punch."""
        account = self.ledger.get_account(customer_id)
        if account is None:
            return None

        config = self.provider.get_config()
        threshold = rules.effective_threshold(account.threshold_override, config.punch_threshold)
        now = timezone.now()
        rewards = [
            AvailableReward(
                id=reward.pk,
                cycle_number=reward.cycle_number,
                earned_at=reward.earned_at,
                expires_at=reward.expires_at,
                is_expired=False,
            )
            for reward in self.ledger.pending_redemptions(customer_id, now=now)
        ]

        return LoyaltyStatus(
            customer_id=customer_id,
            current_punches=account.current_punches,
            threshold=threshold,
            punches_to_next_reward=max(threshold - account.current_punches, 0),
            cycle_number=account.cycle_number,
            available_rewards=len(rewards),
            total_visits=account.total_visits,
            lifetime_earned=account.lifetime_earned,
            lifetime_redeemed=account.lifetime_redeemed,
            threshold_override=account.threshold_override,
            rewards=rewards,
        )

    def get_punch_history(self, customer_id: str, limit: int = 50) -> list[PunchEntry]:
        """Most recent punches first."""
        return [
            PunchEntry(
                id=punch.pk,
                source=punch.source,
                amount=punch.amount,
                cycle_number=punch.cycle_number,
                appointment_id=punch.appointment_id,
                created_at=punch.created_at,
            )
            for punch in self.ledger.punch_history(customer_id, limit=limit)
        ]

    def set_threshold_override(self, customer_id: str, threshold: int | None) -> LoyaltyAccount:
        """
        Set (or clear with None) the punches this customer needs per reward.

        If the card already holds enough punches for the new threshold, the
        completed cycles are issued as rewards right away.

        Raises:
            PunchmanError: INVALID_ARGUMENT for a threshold below 1.
        """
        if threshold is not None and (isinstance(threshold, bool) or not isinstance(threshold, int) or threshold < 1):
            raise PunchmanError("INVALID_ARGUMENT", "Threshold must be a positive integer", threshold=threshold)

        config = self.provider.get_config()

        def update() -> LoyaltyAccount:
            account = self.ledger.get_account_for_update(customer_id, create=True)
            credit_punches(
                self.ledger,
                account,
                [],
                punch_threshold=config.punch_threshold,
                expiration_days=config.redemption.expiration_days,
                threshold_override=threshold,
            )
            return account

        account = self.ledger.run_atomic(update, operation="set_threshold_override")
        logger.info("Threshold override for %s set to %s", customer_id, threshold)
        return account
