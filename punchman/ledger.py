"""
Ledger store.

The only code allowed to write loyalty accounts, punches, rewards,
referral codes, referrals and receipts. Every engine call runs its
read-modify-write through run_atomic(), the single concurrency primitive:

    ledger = LedgerStore()

    def work():
        account = ledger.get_account_for_update("CUST-1", create=True)
        ledger.upsert_account(account, current_punches=account.current_punches + 1)
        return account

    account = ledger.run_atomic(work, operation="example")

Accounts are never locked. upsert_account() writes only when the version
read is still current; otherwise it raises VersionConflict, run_atomic()
rolls the block back and runs it again from a fresh read.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import TypeVar

from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import F, Q
from django.utils import timezone

from punchman.conf import punchman_settings
from punchman.exceptions import PunchmanError, VersionConflict
from punchman.models import (
    EventKind,
    LoyaltyAccount,
    LoyaltyPunch,
    LoyaltyRedemption,
    ProcessedEvent,
    PunchSource,
    RedemptionStatus,
    Referral,
    ReferralCode,
    ReferralStatus,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LedgerStore:
    """Transactional persistence for the loyalty ledger."""

    def __init__(self, max_retries: int | None = None):
        self.max_retries = (
            punchman_settings.MAX_CONFLICT_RETRIES if max_retries is None else max_retries
        )

    # ═══════════════════════════════════════════════════════════════
    # Transactions
    # ═══════════════════════════════════════════════════════════════

    def run_atomic(self, fn: Callable[[], T], operation: str = "ledger") -> T:
        """
        Run fn in one transaction, retrying on optimistic conflicts.

        VersionConflict and IntegrityError (a concurrent insert won a unique
        constraint) roll back and retry up to max_retries times, then raise
        PunchmanError("CONCURRENCY_CONFLICT", retryable=True). Any other
        database error becomes PunchmanError("LEDGER_UNAVAILABLE").
        """
        attempt = 0
        while True:
            try:
                with transaction.atomic():
                    return fn()
            except (VersionConflict, IntegrityError) as e:
                if attempt >= self.max_retries:
                    logger.warning(
                        "Giving up %s after %d attempts: %s", operation, attempt + 1, e
                    )
                    raise PunchmanError(
                        "CONCURRENCY_CONFLICT",
                        retryable=True,
                        operation=operation,
                        attempts=attempt + 1,
                    ) from e
                attempt += 1
                logger.warning(
                    "Conflict in %s, retrying (%d/%d): %s",
                    operation,
                    attempt,
                    self.max_retries,
                    e,
                )
            except DatabaseError as e:
                logger.error("Ledger error in %s: %s", operation, e)
                raise PunchmanError("LEDGER_UNAVAILABLE", operation=operation) from e

    # ═══════════════════════════════════════════════════════════════
    # Accounts
    # ═══════════════════════════════════════════════════════════════

    def get_account(self, customer_id: str) -> LoyaltyAccount | None:
        return LoyaltyAccount.objects.filter(customer_id=customer_id).first()

    def get_account_for_update(self, customer_id: str, create: bool = False) -> LoyaltyAccount | None:
        """
        Fresh read of the account and its version token.

        No row lock is taken; the version is checked by upsert_account().
        With create=True a missing account is created (lazily, on first punch).
        """
        if create:
            account, created = LoyaltyAccount.objects.get_or_create(customer_id=customer_id)
            if created:
                logger.info("Loyalty account created for %s", customer_id)
            return account
        return self.get_account(customer_id)

    def upsert_account(self, account: LoyaltyAccount, **changes) -> LoyaltyAccount:
        """
        Write changes if nobody updated the account since it was read.

        Raises:
            VersionConflict: the stored version moved on.
        """
        updated = LoyaltyAccount.objects.filter(
            pk=account.pk,
            version=account.version,
        ).update(version=F("version") + 1, updated_at=timezone.now(), **changes)
        if not updated:
            raise VersionConflict(
                f"Account {account.customer_id} changed since version {account.version}"
            )
        for name, value in changes.items():
            setattr(account, name, value)
        account.version += 1
        return account

    # ═══════════════════════════════════════════════════════════════
    # Punches
    # ═══════════════════════════════════════════════════════════════

    def insert_punches(
        self,
        account: LoyaltyAccount,
        entries: Iterable[tuple[str, int]],
        appointment_id: str | None = None,
    ) -> list[LoyaltyPunch]:
        """Insert one row per (source, cycle_number) entry."""
        punches = [
            LoyaltyPunch(
                account=account,
                customer_id=account.customer_id,
                appointment_id=appointment_id,
                cycle_number=cycle_number,
                source=source,
            )
            for source, cycle_number in entries
        ]
        return LoyaltyPunch.objects.bulk_create(punches)

    def completion_punch_exists(self, customer_id: str, appointment_id: str) -> bool:
        return LoyaltyPunch.objects.filter(
            customer_id=customer_id,
            appointment_id=appointment_id,
            source=PunchSource.SERVICE_COMPLETION,
        ).exists()

    def punches_for_appointment(self, customer_id: str, appointment_id: str) -> int:
        return LoyaltyPunch.objects.filter(
            customer_id=customer_id,
            appointment_id=appointment_id,
            source__in=[PunchSource.SERVICE_COMPLETION, PunchSource.FIRST_VISIT_BONUS],
        ).count()

    def punch_history(self, customer_id: str, limit: int = 50) -> list[LoyaltyPunch]:
        return list(LoyaltyPunch.objects.filter(customer_id=customer_id)[:limit])

    # ═══════════════════════════════════════════════════════════════
    # Rewards
    # ═══════════════════════════════════════════════════════════════

    def insert_redemption(
        self,
        account: LoyaltyAccount,
        cycle_number: int,
        earned_at: datetime,
        expires_at: datetime | None,
    ) -> LoyaltyRedemption:
        return LoyaltyRedemption.objects.create(
            account=account,
            customer_id=account.customer_id,
            cycle_number=cycle_number,
            status=RedemptionStatus.PENDING,
            earned_at=earned_at,
            expires_at=expires_at,
        )

    def update_redemption_status(
        self,
        redemption_id: int,
        from_status: str,
        to_status: str,
        **fields,
    ) -> bool:
        """Conditional transition; False when the row was not in from_status."""
        return bool(
            LoyaltyRedemption.objects.filter(pk=redemption_id, status=from_status).update(
                status=to_status, **fields
            )
        )

    def pending_redemptions(self, customer_id: str, now: datetime | None = None):
        """Pending rewards, oldest first; only redeemable ones when now is given."""
        qs = LoyaltyRedemption.objects.filter(
            customer_id=customer_id,
            status=RedemptionStatus.PENDING,
        )
        if now is not None:
            qs = qs.filter(Q(expires_at__isnull=True) | Q(expires_at__gte=now))
        return qs.order_by("earned_at", "id")

    def redemption_for_appointment(self, customer_id: str, appointment_id: str) -> LoyaltyRedemption | None:
        return LoyaltyRedemption.objects.filter(
            customer_id=customer_id,
            consumed_by_appointment_id=appointment_id,
            status=RedemptionStatus.REDEEMED,
        ).first()

    def expire_stale_redemptions(self, now: datetime, customer_id: str | None = None) -> int:
        """Move pending rewards past expires_at to expired. Returns the count."""
        qs = LoyaltyRedemption.objects.filter(
            status=RedemptionStatus.PENDING,
            expires_at__isnull=False,
            expires_at__lt=now,
        )
        if customer_id is not None:
            qs = qs.filter(customer_id=customer_id)
        return qs.update(status=RedemptionStatus.EXPIRED)

    # ═══════════════════════════════════════════════════════════════
    # Referrals
    # ═══════════════════════════════════════════════════════════════

    def get_active_code(self, customer_id: str) -> ReferralCode | None:
        return (
            ReferralCode.objects.filter(customer_id=customer_id, is_active=True)
            .order_by("-created_at", "-id")
            .first()
        )

    def get_referral_code(self, code: str) -> ReferralCode | None:
        return ReferralCode.objects.filter(code=code).first()

    def code_exists(self, code: str) -> bool:
        return ReferralCode.objects.filter(code=code).exists()

    def insert_referral_code(self, customer_id: str, code: str, max_uses: int | None = None) -> ReferralCode:
        return ReferralCode.objects.create(
            customer_id=customer_id,
            code=code,
            max_uses=max_uses,
            uses_count=0,
            is_active=True,
        )

    def increment_code_uses(self, code: ReferralCode) -> bool:
        """Count one use unless the code became inactive or exhausted meanwhile."""
        updated = (
            ReferralCode.objects.filter(pk=code.pk, is_active=True)
            .filter(Q(max_uses__isnull=True) | Q(uses_count__lt=F("max_uses")))
            .update(uses_count=F("uses_count") + 1)
        )
        if updated:
            code.uses_count += 1
        return bool(updated)

    def deactivate_codes(self, customer_id: str) -> int:
        return ReferralCode.objects.filter(customer_id=customer_id, is_active=True).update(
            is_active=False
        )

    def referee_exists(self, customer_id: str) -> bool:
        return Referral.objects.filter(referee_id=customer_id).exists()

    def insert_referral(self, code: ReferralCode, referee_id: str) -> Referral:
        return Referral.objects.create(
            referrer_id=code.customer_id,
            referee_id=referee_id,
            referral_code=code,
            status=ReferralStatus.PENDING,
        )

    def get_referral_for_referee(self, referee_id: str) -> Referral | None:
        return Referral.objects.filter(referee_id=referee_id).select_related("referral_code").first()

    def update_referral(self, referral: Referral, expected_status: str, **fields) -> bool:
        """Conditional update; False when the referral left expected_status."""
        updated = Referral.objects.filter(pk=referral.pk, status=expected_status).update(**fields)
        if updated:
            for name, value in fields.items():
                setattr(referral, name, value)
        return bool(updated)

    # ═══════════════════════════════════════════════════════════════
    # Receipts
    # ═══════════════════════════════════════════════════════════════

    def get_receipt(self, kind: EventKind, customer_id: str, reference: str) -> dict | None:
        return (
            ProcessedEvent.objects.filter(kind=kind, customer_id=customer_id, reference=reference)
            .values_list("result", flat=True)
            .first()
        )

    def save_receipt(self, kind: EventKind, customer_id: str, reference: str, result: dict) -> ProcessedEvent:
        return ProcessedEvent.objects.create(
            kind=kind,
            customer_id=customer_id,
            reference=reference,
            result=result,
        )
