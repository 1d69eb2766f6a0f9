"""Redemption service - eligibility, FIFO consumption and expiry of rewards."""

import logging

from django.db import transaction
from django.utils import timezone

from punchman import rules
from punchman.config import ConfigSnapshotProvider, LoyaltyProgramConfig, get_default_provider
from punchman.exceptions import VersionConflict
from punchman.ledger import LedgerStore
from punchman.models import LoyaltyRedemption, RedemptionStatus
from punchman.protocols.loyalty import AvailableReward, EligibilityResult, RedemptionResult
from punchman.signals import reward_redeemed, rewards_expired

logger = logging.getLogger(__name__)


class RedemptionService:
    """
    Consumes rewards, oldest first.

    A reward past its expires_at is never redeemable, whether or not the
    sweep (mark_expired_rewards) already flipped it to expired.
    """

    def __init__(self, provider: ConfigSnapshotProvider | None = None, ledger: LedgerStore | None = None):
        self.provider = provider or get_default_provider()
        self.ledger = ledger or LedgerStore()

    def check_eligibility(self, customer_id: str, service_id: str, service_price) -> EligibilityResult:
        """
        Can this service be paid with a reward, and for how much?

        Read-only. The answer is re-checked by redeem() inside its transaction.
        """
        price = rules.parse_amount(service_price, "service_price")
        config = self.provider.get_config()

        rejection = self._reject(config, service_id)
        if rejection:
            reason, message = rejection
            return EligibilityResult(allowed=False, reason=reason, message=message)

        pending = list(self.ledger.pending_redemptions(customer_id, now=timezone.now()))
        if not pending:
            return EligibilityResult(
                allowed=False,
                reason="NO_PENDING_REWARD",
                message="No reward available",
            )

        value = rules.redemption_value(price, config.redemption.max_value)
        return EligibilityResult(
            allowed=True,
            redemption_value=value,
            pending_reward_id=pending[0].pk,
            available_rewards=len(pending),
            message=f"Reward covers {value}",
        )

    def redeem(
        self,
        customer_id: str,
        appointment_id: str,
        service_id: str,
        service_price,
    ) -> RedemptionResult:
        """
        Consume the oldest redeemable reward for an appointment.

        Repeating the call for the same appointment returns the reward it
        already consumed. Stale pending rewards of the customer are marked
        expired in the same transaction.

        Raises:
            PunchmanError: INVALID_ARGUMENT for a bad amount, config unavailable/invalid, or the ledger failed.
        """
        price = rules.parse_amount(service_price, "service_price")
        config = self.provider.get_config()

        rejection = self._reject(config, service_id)
        if rejection:
            reason, message = rejection
            return RedemptionResult(success=False, reason=reason, message=message)

        value = rules.redemption_value(price, config.redemption.max_value)

        def consume() -> RedemptionResult:
            now = timezone.now()

            existing = self.ledger.redemption_for_appointment(customer_id, appointment_id)
            if existing is not None:
                return RedemptionResult(
                    success=True,
                    redemption_id=existing.pk,
                    redemption_value=existing.redemption_value,
                    remaining_rewards=self.ledger.pending_redemptions(customer_id, now=now).count(),
                    message="Reward already redeemed for this appointment",
                )

            expired = self.ledger.expire_stale_redemptions(now, customer_id=customer_id)
            if expired:
                logger.info("Expired %d stale reward(s) of %s", expired, customer_id)
                transaction.on_commit(
                    lambda: rewards_expired.send(
                        sender=LoyaltyRedemption,
                        count=expired,
                        customer_id=customer_id,
                    )
                )

            reward = self.ledger.pending_redemptions(customer_id, now=now).first()
            if reward is None:
                return RedemptionResult(
                    success=False,
                    reason="NO_PENDING_REWARD",
                    message="No reward available",
                )

            account = self.ledger.get_account_for_update(customer_id)
            consumed = self.ledger.update_redemption_status(
                reward.pk,
                RedemptionStatus.PENDING,
                RedemptionStatus.REDEEMED,
                redeemed_at=now,
                consumed_by_appointment_id=appointment_id,
                redemption_value=value,
            )
            if not consumed:
                raise VersionConflict(f"Reward {reward.pk} left pending concurrently")
            self.ledger.upsert_account(account, lifetime_redeemed=account.lifetime_redeemed + 1)

            reward.status = RedemptionStatus.REDEEMED
            reward.redeemed_at = now
            reward.consumed_by_appointment_id = appointment_id
            reward.redemption_value = value
            transaction.on_commit(
                lambda: reward_redeemed.send(
                    sender=LoyaltyRedemption,
                    redemption=reward,
                    appointment_id=appointment_id,
                    redemption_value=value,
                )
            )

            return RedemptionResult(
                success=True,
                redemption_id=reward.pk,
                redemption_value=value,
                remaining_rewards=self.ledger.pending_redemptions(customer_id, now=now).count(),
                message=f"Reward redeemed: {value}",
            )

        result = self.ledger.run_atomic(consume, operation="redeem")
        if result.success:
            logger.info(
                "Reward %s redeemed by %s on %s (%s)",
                result.redemption_id,
                customer_id,
                appointment_id,
                result.redemption_value,
            )
        return result

    def mark_expired_rewards(self) -> int:
        """
        Sweep: move every pending reward past expires_at to expired.

        Not needed for correctness (redemption checks expiry on read);
        keeps reports and the admin accurate. Returns the number expired.
        """

        def sweep() -> int:
            count = self.ledger.expire_stale_redemptions(timezone.now())
            if count:
                transaction.on_commit(
                    lambda: rewards_expired.send(sender=LoyaltyRedemption, count=count, customer_id=None)
                )
            return count

        count = self.ledger.run_atomic(sweep, operation="mark_expired_rewards")
        logger.info("Expiration sweep marked %d reward(s) expired", count)
        return count

    def get_available_rewards(self, customer_id: str) -> list[AvailableReward]:
        """Pending rewards, oldest first, flagged when already past expiry."""
        now = timezone.now()
        return [
            AvailableReward(
                id=reward.pk,
                cycle_number=reward.cycle_number,
                earned_at=reward.earned_at,
                expires_at=reward.expires_at,
                is_expired=not rules.is_redeemable(reward.expires_at, now),
            )
            for reward in self.ledger.pending_redemptions(customer_id)
        ]

    @staticmethod
    def _reject(config: LoyaltyProgramConfig, service_id: str) -> tuple[str, str] | None:
        if not config.is_enabled:
            return "PROGRAM_DISABLED", "Loyalty program is disabled"
        if not rules.service_eligible(config.redemption, service_id):
            return "SERVICE_NOT_ELIGIBLE", "Service cannot be paid with a reward"
        return None
