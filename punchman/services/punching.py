"""
Punch crediting shared by earning and referral settlement.

MUST be called inside LedgerStore.run_atomic(): punch rows, issued rewards
and the versioned account write commit or roll back together.
"""

import logging
from dataclasses import dataclass, field

from django.db import transaction
from django.utils import timezone

from punchman import rules
from punchman.ledger import LedgerStore
from punchman.models import LoyaltyAccount, LoyaltyRedemption
from punchman.signals import punches_awarded, reward_earned

logger = logging.getLogger(__name__)


@dataclass
class CreditOutcome:
    """What a credit did to one account."""

    account: LoyaltyAccount
    punches_awarded: int
    threshold: int
    redemptions: list[LoyaltyRedemption] = field(default_factory=list)

    @property
    def reward_earned(self) -> bool:
        return bool(self.redemptions)


def credit_punches(
    ledger: LedgerStore,
    account: LoyaltyAccount,
    grants: list[tuple[str, int]],
    punch_threshold: int,
    expiration_days: int,
    appointment_id: str | None = None,
    count_visit: bool = False,
    **changes,
) -> CreditOutcome:
    """
    Credit punches to an account and issue rewards for completed cycles.

    Args:
        ledger: Ledger store of the running transaction
        account: Account read in this transaction
        grants: (source, count) pairs, written in order
        punch_threshold: Program threshold (the account override wins)
        expiration_days: Reward lifetime, 0 = never expires
        appointment_id: Stored on every punch row
        count_visit: Also increment total_visits
        **changes: Extra account fields written with the same version check

    Raises:
        VersionConflict: The account changed since it was read.
    """
    threshold = rules.effective_threshold(
        changes.get("threshold_override", account.threshold_override),
        punch_threshold,
    )
    total = sum(count for _, count in grants)
    outcome = rules.apply_punches(account.current_punches, account.cycle_number, total, threshold)

    sources = [source for source, count in grants for _ in range(count)]
    if sources:
        ledger.insert_punches(account, zip(sources, outcome.punch_cycles), appointment_id=appointment_id)

    now = timezone.now()
    redemptions = [
        ledger.insert_redemption(
            account,
            cycle_number=cycle,
            earned_at=now,
            expires_at=rules.compute_expires_at(now, expiration_days),
        )
        for cycle in outcome.completed_cycles
    ]

    ledger.upsert_account(
        account,
        current_punches=outcome.current_punches,
        cycle_number=outcome.cycle_number,
        lifetime_earned=account.lifetime_earned + total,
        total_visits=account.total_visits + (1 if count_visit else 0),
        **changes,
    )

    if total:
        logger.info(
            "Credited %d punch(es) to %s: %d/%d, cycle %d",
            total,
            account.customer_id,
            outcome.current_punches,
            threshold,
            outcome.cycle_number,
        )
        transaction.on_commit(
            lambda: punches_awarded.send(
                sender=LoyaltyAccount,
                account=account,
                punches=total,
                sources=sources,
                appointment_id=appointment_id,
            )
        )
    for redemption in redemptions:
        logger.info("Reward issued to %s for cycle %d", account.customer_id, redemption.cycle_number)
        transaction.on_commit(
            lambda redemption=redemption: reward_earned.send(
                sender=LoyaltyRedemption,
                redemption=redemption,
            )
        )

    return CreditOutcome(
        account=account,
        punches_awarded=total,
        threshold=threshold,
        redemptions=redemptions,
    )
