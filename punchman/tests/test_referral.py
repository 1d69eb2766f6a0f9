"""Tests for the referral program."""

from decimal import Decimal
from unittest.mock import patch

import pytest

from punchman.exceptions import PunchmanError
from punchman.models import (
    LoyaltyAccount,
    LoyaltyPunch,
    LoyaltyRedemption,
    PunchSource,
    Referral,
    ReferralCode,
    ReferralStatus,
)


pytestmark = pytest.mark.django_db


@pytest.fixture
def code(referrals):
    return referrals.generate_code("REFERRER")


# ═══════════════════════════════════════════════════════════════════
# Codes
# ═══════════════════════════════════════════════════════════════════


class TestGenerateCode:
    """Referral code issuance."""

    def test_generates_six_char_code(self, referrals):
        code = referrals.generate_code("CUST-1")

        assert len(code.code) == 6
        assert code.code.isalnum()
        assert code.code == code.code.upper()
        assert code.is_active is True
        assert code.uses_count == 0

    def test_returns_existing_active_code(self, referrals):
        first = referrals.generate_code("CUST-1")
        second = referrals.generate_code("CUST-1")

        assert first.pk == second.pk
        assert ReferralCode.objects.count() == 1

    def test_new_code_after_deactivation(self, referrals):
        first = referrals.generate_code("CUST-1")
        assert referrals.deactivate_code("CUST-1") == 1

        second = referrals.generate_code("CUST-1")

        assert second.pk != first.pk
        assert second.is_active is True

    def test_retries_on_collision(self, referrals):
        ReferralCode.objects.create(customer_id="OTHER", code="AAAAAA")

        with patch("punchman.rules.random_code", side_effect=["AAAAAA", "BBBBBB"]):
            code = referrals.generate_code("CUST-1")

        assert code.code == "BBBBBB"

    def test_gives_up_after_max_attempts(self, referrals):
        ReferralCode.objects.create(customer_id="OTHER", code="AAAAAA")

        with patch("punchman.rules.random_code", return_value="AAAAAA"):
            with pytest.raises(PunchmanError) as exc:
                referrals.generate_code("CUST-1")

        assert exc.value.code == "REFERRAL_CODE_UNAVAILABLE"


# ═══════════════════════════════════════════════════════════════════
# Apply
# ═══════════════════════════════════════════════════════════════════


class TestApplyCode:
    """Validation order and effects of apply_code."""

    def test_apply_success(self, referrals, code):
        result = referrals.apply_code("NEWBIE", code.code)

        code.refresh_from_db()
        referral = Referral.objects.get()
        assert result.success is True
        assert result.referral_id == referral.pk
        assert result.referrer_id == "REFERRER"
        assert referral.status == ReferralStatus.PENDING
        assert referral.referee_id == "NEWBIE"
        assert code.uses_count == 1

    def test_code_is_normalized(self, referrals, code):
        result = referrals.apply_code("NEWBIE", f"  {code.code.lower()} ")
        assert result.success is True

    def test_referrals_disabled(self, referrals, code, configure):
        configure(referrals_enabled=False)

        result = referrals.apply_code("NEWBIE", code.code)

        assert result.reason == "REFERRALS_DISABLED"
        assert not Referral.objects.exists()

    @pytest.mark.parametrize("bad", ["", "ABC", "ABCDEFG", "AB-123", None])
    def test_malformed_code(self, referrals, bad):
        result = referrals.apply_code("NEWBIE", bad)
        assert result.reason == "INVALID_CODE"

    def test_unknown_code(self, referrals):
        result = referrals.apply_code("NEWBIE", "ZZZZZZ")
        assert result.reason == "INVALID_CODE"

    def test_inactive_code(self, referrals, code):
        referrals.deactivate_code("REFERRER")

        result = referrals.apply_code("NEWBIE", code.code)

        assert result.reason == "CODE_INACTIVE"

    def test_exhausted_code(self, referrals):
        code = referrals.generate_code("REFERRER", max_uses=1)
        assert referrals.apply_code("FRIEND-1", code.code).success is True

        result = referrals.apply_code("FRIEND-2", code.code)

        assert result.reason == "CODE_EXHAUSTED"
        code.refresh_from_db()
        assert code.uses_count == 1

    def test_self_referral(self, referrals, code):
        result = referrals.apply_code("REFERRER", code.code)
        assert result.reason == "SELF_REFERRAL"

    def test_duplicate_referral_any_code(self, referrals, code):
        other = referrals.generate_code("SOMEONE-ELSE")
        assert referrals.apply_code("NEWBIE", code.code).success is True

        result = referrals.apply_code("NEWBIE", other.code)

        assert result.reason == "DUPLICATE_REFERRAL"
        assert Referral.objects.count() == 1
        other.refresh_from_db()
        assert other.uses_count == 0

    def test_inactive_checked_before_self_referral(self, referrals, code):
        referrals.deactivate_code("REFERRER")
        assert referrals.apply_code("REFERRER", code.code).reason == "CODE_INACTIVE"

    def test_unlimited_uses(self, referrals, code):
        for n in range(5):
            assert referrals.apply_code(f"FRIEND-{n}", code.code).success is True
        code.refresh_from_db()
        assert code.uses_count == 5


# ═══════════════════════════════════════════════════════════════════
# Settle
# ═══════════════════════════════════════════════════════════════════


class TestSettleOnFirstAppointment:
    """One-time bonus payment."""

    def test_settle_awards_both(self, referrals, code):
        referrals.apply_code("NEWBIE", code.code)

        result = referrals.settle_on_first_appointment("NEWBIE", "APPT-1")

        referral = Referral.objects.get()
        assert result.success is True
        assert result.referrer_punches_awarded == 1
        assert result.referee_punches_awarded == 1
        assert referral.status == ReferralStatus.COMPLETED
        assert referral.referrer_bonus_awarded is True
        assert referral.referee_bonus_awarded is True
        assert referral.completed_at is not None
        assert LoyaltyPunch.objects.get(customer_id="REFERRER").source == PunchSource.REFERRAL_REFERRER
        assert LoyaltyPunch.objects.get(customer_id="NEWBIE").source == PunchSource.REFERRAL_REFEREE

    def test_settle_creates_accounts(self, referrals, code):
        referrals.apply_code("NEWBIE", code.code)
        referrals.settle_on_first_appointment("NEWBIE", "APPT-1")

        assert set(LoyaltyAccount.objects.values_list("customer_id", flat=True)) == {"REFERRER", "NEWBIE"}

    def test_settle_twice_awards_once(self, referrals, code):
        referrals.apply_code("NEWBIE", code.code)

        first = referrals.settle_on_first_appointment("NEWBIE", "APPT-1")
        second = referrals.settle_on_first_appointment("NEWBIE", "APPT-1")

        assert first == second
        assert LoyaltyPunch.objects.count() == 2

    def test_later_appointment_is_noop(self, referrals, code):
        referrals.apply_code("NEWBIE", code.code)
        referrals.settle_on_first_appointment("NEWBIE", "APPT-1")

        result = referrals.settle_on_first_appointment("NEWBIE", "APPT-2")

        assert result.success is False
        assert result.reason == "NO_PENDING_REFERRAL"
        assert LoyaltyPunch.objects.count() == 2

    def test_no_referral(self, referrals):
        result = referrals.settle_on_first_appointment("NOBODY", "APPT-1")
        assert result.reason == "NO_PENDING_REFERRAL"

    def test_referrals_disabled(self, referrals, code, configure):
        referrals.apply_code("NEWBIE", code.code)
        configure(referrals_enabled=False)

        result = referrals.settle_on_first_appointment("NEWBIE", "APPT-1")

        assert result.reason == "REFERRALS_DISABLED"
        assert Referral.objects.get().status == ReferralStatus.PENDING

    def test_bonus_can_complete_a_cycle(self, referrals, code, configure):
        configure(punch_threshold=5, referrer_bonus=3)
        LoyaltyAccount.objects.create(customer_id="REFERRER", current_punches=4)
        referrals.apply_code("NEWBIE", code.code)

        result = referrals.settle_on_first_appointment("NEWBIE", "APPT-1")

        account = LoyaltyAccount.objects.get(customer_id="REFERRER")
        assert result.referrer_reward_earned is True
        assert account.current_punches == 2
        assert account.cycle_number == 2
        assert LoyaltyRedemption.objects.filter(customer_id="REFERRER").count() == 1

    def test_custom_bonus_amounts(self, referrals, code, configure):
        configure(referrer_bonus=2, referee_bonus=3)
        referrals.apply_code("NEWBIE", code.code)

        result = referrals.settle_on_first_appointment("NEWBIE", "APPT-1")

        assert result.referrer_punches_awarded == 2
        assert result.referee_punches_awarded == 3
        assert LoyaltyPunch.objects.filter(customer_id="NEWBIE").count() == 3

    def test_with_earning_on_same_appointment(self, referrals, earning, code):
        """The caller awards the visit and settles the referral for the same event."""
        referrals.apply_code("NEWBIE", code.code)

        earned = earning.award_for_appointment("NEWBIE", "APPT-1", "SVC-BATH", Decimal("60"))
        settled = referrals.settle_on_first_appointment("NEWBIE", "APPT-1")

        assert earned.punches_awarded == 1
        assert settled.success is True
        assert LoyaltyAccount.objects.get(customer_id="NEWBIE").current_punches == 2


# ═══════════════════════════════════════════════════════════════════
# Stats
# ═══════════════════════════════════════════════════════════════════


class TestReferralStats:

    def test_stats(self, referrals, code):
        referrals.apply_code("FRIEND-1", code.code)
        referrals.apply_code("FRIEND-2", code.code)
        referrals.settle_on_first_appointment("FRIEND-1", "APPT-1")

        stats = referrals.get_referral_stats("REFERRER")

        assert stats.code == code.code
        assert stats.total_referrals == 2
        assert stats.completed_referrals == 1
        assert stats.pending_referrals == 1

    def test_stats_without_code(self, referrals):
        stats = referrals.get_referral_stats("CUST-1")

        assert stats.code is None
        assert stats.total_referrals == 0
