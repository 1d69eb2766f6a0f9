"""Referral service - codes, registration and one-time bonus settlement."""

import logging

from django.db import transaction
from django.db.models import Count, Q
from django.utils import timezone

from punchman import rules
from punchman.conf import punchman_settings
from punchman.config import ConfigSnapshotProvider, get_default_provider
from punchman.exceptions import PunchmanError, VersionConflict
from punchman.ledger import LedgerStore
from punchman.models import EventKind, PunchSource, Referral, ReferralCode, ReferralStatus
from punchman.protocols.loyalty import ApplyResult, ReferralStats, SettleResult
from punchman.services.punching import credit_punches
from punchman.signals import referral_applied, referral_completed

logger = logging.getLogger(__name__)


class ReferralService:
    """
    Referral program.

    Lifecycle of a referral:
        apply_code()                  -> pending
        settle_on_first_appointment() -> completed (bonuses paid once)
    """

    def __init__(self, provider: ConfigSnapshotProvider | None = None, ledger: LedgerStore | None = None):
        self.provider = provider or get_default_provider()
        self.ledger = ledger or LedgerStore()

    # ═══════════════════════════════════════════════════════════════
    # Codes
    # ═══════════════════════════════════════════════════════════════

    def generate_code(self, customer_id: str, max_uses: int | None = None) -> ReferralCode:
        """
        Return the customer's active code, creating one if needed.

        Raises:
            PunchmanError: REFERRAL_CODE_UNAVAILABLE when every attempt collided.
        """
        length = punchman_settings.REFERRAL_CODE_LENGTH
        attempts = punchman_settings.REFERRAL_CODE_MAX_ATTEMPTS

        def create() -> ReferralCode:
            existing = self.ledger.get_active_code(customer_id)
            if existing is not None:
                return existing
            for _ in range(attempts):
                code = rules.random_code(length)
                if not self.ledger.code_exists(code):
                    created = self.ledger.insert_referral_code(customer_id, code, max_uses=max_uses)
                    logger.info("Referral code %s issued to %s", code, customer_id)
                    return created
            raise PunchmanError("REFERRAL_CODE_UNAVAILABLE", customer_id=customer_id, attempts=attempts)

        return self.ledger.run_atomic(create, operation="generate_code")

    def deactivate_code(self, customer_id: str) -> int:
        """Deactivate the customer's codes. Existing referrals are kept."""
        count = self.ledger.run_atomic(
            lambda: self.ledger.deactivate_codes(customer_id),
            operation="deactivate_code",
        )
        if count:
            logger.info("Deactivated %d referral code(s) of %s", count, customer_id)
        return count

    # ═══════════════════════════════════════════════════════════════
    # Registration
    # ═══════════════════════════════════════════════════════════════

    def apply_code(self, new_customer_id: str, code: str) -> ApplyResult:
        """
        Link a newly registered customer to the owner of code.

        Checks, in order: referrals enabled, code exists, code active, code
        not exhausted, not the owner's own code, customer never referred.
        """
        config = self.provider.get_config()
        if not config.referral.is_enabled:
            return ApplyResult(
                success=False,
                reason="REFERRALS_DISABLED",
                message="Referral program is disabled",
            )

        normalized = rules.normalize_code(code)
        if not rules.is_valid_code(normalized, punchman_settings.REFERRAL_CODE_LENGTH):
            return ApplyResult(success=False, reason="INVALID_CODE", message="Invalid referral code")

        def apply() -> ApplyResult:
            code_row = self.ledger.get_referral_code(normalized)
            if code_row is None:
                return ApplyResult(success=False, reason="INVALID_CODE", message="Invalid referral code")
            if not code_row.is_active:
                return ApplyResult(
                    success=False,
                    reason="CODE_INACTIVE",
                    message="Referral code is no longer active",
                )
            if code_row.is_exhausted:
                return ApplyResult(
                    success=False,
                    reason="CODE_EXHAUSTED",
                    message="Referral code reached its usage limit",
                )
            if code_row.customer_id == new_customer_id:
                return ApplyResult(
                    success=False,
                    reason="SELF_REFERRAL",
                    message="You cannot use your own referral code",
                )
            if self.ledger.referee_exists(new_customer_id):
                return ApplyResult(
                    success=False,
                    reason="DUPLICATE_REFERRAL",
                    message="Customer was already referred",
                )

            referral = self.ledger.insert_referral(code_row, new_customer_id)
            if not self.ledger.increment_code_uses(code_row):
                raise VersionConflict(f"Referral code {normalized} changed concurrently")

            transaction.on_commit(lambda: referral_applied.send(sender=Referral, referral=referral))
            return ApplyResult(
                success=True,
                referral_id=referral.pk,
                referrer_id=referral.referrer_id,
                message="Referral code applied",
            )

        result = self.ledger.run_atomic(apply, operation="apply_code")
        if result.success:
            logger.info("Referral %s: %s referred by %s", result.referral_id, new_customer_id, result.referrer_id)
        return result

    # ═══════════════════════════════════════════════════════════════
    # Settlement
    # ═══════════════════════════════════════════════════════════════

    def settle_on_first_appointment(self, referee_id: str, appointment_id: str) -> SettleResult:
        """
        Pay both referral bonuses once the referee's first appointment completes.

        Bonus punches go through the same threshold arithmetic as regular
        punches, so either side may complete a card. Replays for the same
        appointment return the original result; any later call is a no-op.
        """
        config = self.provider.get_config()
        if not config.referral.is_enabled:
            return SettleResult(
                success=False,
                referee_id=referee_id,
                reason="REFERRALS_DISABLED",
                message="Referral program is disabled",
            )

        def settle() -> SettleResult:
            receipt = self.ledger.get_receipt(EventKind.REFERRAL_SETTLEMENT, referee_id, appointment_id)
            if receipt is not None:
                return SettleResult.from_dict(receipt)

            referral = self.ledger.get_referral_for_referee(referee_id)
            if referral is None or referral.status != ReferralStatus.PENDING or referral.is_settled:
                return SettleResult(
                    success=False,
                    referee_id=referee_id,
                    reason="NO_PENDING_REFERRAL",
                    message="No pending referral for this customer",
                )

            referrer_outcome = credit_punches(
                self.ledger,
                self.ledger.get_account_for_update(referral.referrer_id, create=True),
                [(PunchSource.REFERRAL_REFERRER, config.referral.referrer_bonus_punches)],
                punch_threshold=config.punch_threshold,
                expiration_days=config.redemption.expiration_days,
                appointment_id=appointment_id,
            )
            referee_outcome = credit_punches(
                self.ledger,
                self.ledger.get_account_for_update(referee_id, create=True),
                [(PunchSource.REFERRAL_REFEREE, config.referral.referee_bonus_punches)],
                punch_threshold=config.punch_threshold,
                expiration_days=config.redemption.expiration_days,
                appointment_id=appointment_id,
            )

            completed = self.ledger.update_referral(
                referral,
                ReferralStatus.PENDING,
                status=ReferralStatus.COMPLETED,
                referrer_bonus_awarded=True,
                referee_bonus_awarded=True,
                completed_at=timezone.now(),
            )
            if not completed:
                raise VersionConflict(f"Referral {referral.pk} settled concurrently")

            result = SettleResult(
                success=True,
                referral_id=referral.pk,
                referrer_id=referral.referrer_id,
                referee_id=referee_id,
                referrer_punches_awarded=referrer_outcome.punches_awarded,
                referee_punches_awarded=referee_outcome.punches_awarded,
                referrer_reward_earned=referrer_outcome.reward_earned,
                referee_reward_earned=referee_outcome.reward_earned,
                message="Referral bonuses awarded",
            )
            self.ledger.save_receipt(EventKind.REFERRAL_SETTLEMENT, referee_id, appointment_id, result.to_dict())
            transaction.on_commit(
                lambda: referral_completed.send(sender=Referral, referral=referral, result=result)
            )
            return result

        result = self.ledger.run_atomic(settle, operation="settle_on_first_appointment")
        if result.success:
            logger.info(
                "Referral %s settled: %s +%d, %s +%d",
                result.referral_id,
                result.referrer_id,
                result.referrer_punches_awarded,
                referee_id,
                result.referee_punches_awarded,
            )
        return result

    # ═══════════════════════════════════════════════════════════════
    # Queries
    # ═══════════════════════════════════════════════════════════════

    def get_referral_stats(self, customer_id: str) -> ReferralStats:
        code = self.ledger.get_active_code(customer_id)
        counts = Referral.objects.filter(referrer_id=customer_id).aggregate(
            total=Count("id"),
            completed=Count("id", filter=Q(status=ReferralStatus.COMPLETED)),
            pending=Count("id", filter=Q(status=ReferralStatus.PENDING)),
        )
        return ReferralStats(
            customer_id=customer_id,
            code=code.code if code else None,
            total_referrals=counts["total"],
            completed_referrals=counts["completed"],
            pending_referrals=counts["pending"],
        )
