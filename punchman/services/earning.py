"""Earning service - punches for completed appointments."""

import logging

from punchman import rules
from punchman.config import ConfigSnapshotProvider, get_default_provider
from punchman.ledger import LedgerStore
from punchman.models import EventKind, PunchSource
from punchman.protocols.loyalty import EarnResult
from punchman.services.punching import credit_punches

logger = logging.getLogger(__name__)


class EarningService:
    """
    Awards punches when a billable appointment completes.

    Safe to call more than once for the same appointment: the first result
    is stored as a receipt and returned unchanged on every replay.
    """

    def __init__(self, provider: ConfigSnapshotProvider | None = None, ledger: LedgerStore | None = None):
        self.provider = provider or get_default_provider()
        self.ledger = ledger or LedgerStore()

    def award_for_appointment(
        self,
        customer_id: str,
        appointment_id: str,
        service_id: str,
        appointment_total,
    ) -> EarnResult:
        """
        Award the visit punch (plus first-visit bonus) for an appointment.

        Args:
            customer_id: Customer that attended
            appointment_id: Completed appointment (idempotency key)
            service_id: Service performed
            appointment_total: Amount billed (Decimal, int or str)

        Returns:
            EarnResult. Rejections come back with success=False and a reason.

        Raises:
            PunchmanError: INVALID_ARGUMENT for a bad amount, config unavailable/invalid, or the ledger failed.
        """
        total = rules.parse_amount(appointment_total, "appointment_total")
        config = self.provider.get_config()

        if not config.is_enabled:
            return EarnResult(
                success=False,
                reason="PROGRAM_DISABLED",
                message="Loyalty program is disabled",
            )
        if not rules.service_qualifies(config.earning, service_id):
            return EarnResult(
                success=False,
                threshold=config.punch_threshold,
                reason="SERVICE_NOT_QUALIFYING",
                message="Service does not earn punches",
            )
        if not rules.meets_minimum_spend(config.earning, total):
            return EarnResult(
                success=False,
                threshold=config.punch_threshold,
                reason="BELOW_MINIMUM_SPEND",
                message=f"Minimum spend for a punch is {config.earning.minimum_spend}",
            )

        def award() -> EarnResult:
            receipt = self.ledger.get_receipt(EventKind.APPOINTMENT_AWARD, customer_id, appointment_id)
            if receipt is not None:
                logger.debug("Replay of award for appointment %s", appointment_id)
                return EarnResult.from_dict(receipt)

            if self.ledger.completion_punch_exists(customer_id, appointment_id):
                # Punched without a receipt: report the current card
                return self._replay_without_receipt(customer_id, appointment_id, config.punch_threshold)

            account = self.ledger.get_account_for_update(customer_id, create=True)
            # Decided from the versioned row so a concurrent first visit conflicts
            is_first_visit = account.total_visits == 0
            bonus = config.earning.first_visit_bonus_punches if is_first_visit else 0

            outcome = credit_punches(
                self.ledger,
                account,
                [(PunchSource.SERVICE_COMPLETION, 1), (PunchSource.FIRST_VISIT_BONUS, bonus)],
                punch_threshold=config.punch_threshold,
                expiration_days=config.redemption.expiration_days,
                appointment_id=appointment_id,
                count_visit=True,
            )

            result = EarnResult(
                success=True,
                punches_awarded=outcome.punches_awarded,
                current_punches=account.current_punches,
                threshold=outcome.threshold,
                reward_earned=outcome.reward_earned,
                rewards_earned=len(outcome.redemptions),
                cycle_number=account.cycle_number,
                is_first_visit=is_first_visit,
                message=self._message(
                    outcome.punches_awarded,
                    account.current_punches,
                    outcome.threshold,
                    outcome.reward_earned,
                ),
            )
            self.ledger.save_receipt(EventKind.APPOINTMENT_AWARD, customer_id, appointment_id, result.to_dict())
            return result

        result = self.ledger.run_atomic(award, operation="award_for_appointment")
        logger.info(
            "Award for %s/%s: +%d (%d/%d)",
            customer_id,
            appointment_id,
            result.punches_awarded,
            result.current_punches,
            result.threshold,
        )
        return result

    def is_first_visit(self, customer_id: str) -> bool:
        """True until the customer's first completed appointment is punched."""
        account = self.ledger.get_account(customer_id)
        return account is None or account.total_visits == 0

    def _replay_without_receipt(self, customer_id: str, appointment_id: str, punch_threshold: int) -> EarnResult:
        account = self.ledger.get_account(customer_id)
        return EarnResult(
            success=True,
            punches_awarded=self.ledger.punches_for_appointment(customer_id, appointment_id),
            current_punches=account.current_punches,
            threshold=rules.effective_threshold(account.threshold_override, punch_threshold),
            cycle_number=account.cycle_number,
            message="Punches already awarded for this appointment",
        )

    @staticmethod
    def _message(punches: int, current: int, threshold: int, reward_earned: bool) -> str:
        if reward_earned:
            return f"Card complete! Reward unlocked. {current}/{threshold} toward the next one"
        return f"+{punches} punch(es), {current}/{threshold}"

