"""Tests for the account read API and threshold overrides."""

from decimal import Decimal

import pytest

from punchman.exceptions import PunchmanError
from punchman.models import LoyaltyAccount, LoyaltyRedemption, PunchSource


pytestmark = pytest.mark.django_db


class TestGetStatus:
    """Punch card summary."""

    def test_unknown_customer(self, accounts):
        assert accounts.get_status("NOBODY") is None

    def test_status_after_visits(self, accounts, earning, configure):
        configure(punch_threshold=5, first_visit_bonus=1)
        for n in range(3):
            earning.award_for_appointment("CUST-1", f"APPT-{n}", "SVC-BATH", Decimal("60"))

        status = accounts.get_status("CUST-1")

        assert status.current_punches == 4
        assert status.threshold == 5
        assert status.punches_to_next_reward == 1
        assert status.cycle_number == 1
        assert status.total_visits == 3
        assert status.lifetime_earned == 4
        assert status.available_rewards == 0

    def test_status_lists_rewards(self, accounts, earning, configure):
        configure(punch_threshold=5)
        for n in range(5):
            earning.award_for_appointment("CUST-1", f"APPT-{n}", "SVC-BATH", Decimal("60"))

        status = accounts.get_status("CUST-1")

        assert status.available_rewards == 1
        assert status.rewards[0].cycle_number == 1
        assert status.cycle_number == 2

    def test_status_uses_override(self, accounts):
        accounts.set_threshold_override("CUST-VIP", 4)

        status = accounts.get_status("CUST-VIP")

        assert status.threshold == 4
        assert status.threshold_override == 4


class TestPunchHistory:

    def test_most_recent_first(self, accounts, earning, configure):
        configure(first_visit_bonus=1)
        earning.award_for_appointment("CUST-1", "APPT-1", "SVC-BATH", Decimal("60"))
        earning.award_for_appointment("CUST-1", "APPT-2", "SVC-BATH", Decimal("60"))

        history = accounts.get_punch_history("CUST-1")

        assert len(history) == 3
        assert history[0].appointment_id == "APPT-2"
        assert history[0].source == PunchSource.SERVICE_COMPLETION
        assert all(entry.amount == 1 for entry in history)

    def test_limit(self, accounts, earning):
        for n in range(5):
            earning.award_for_appointment("CUST-1", f"APPT-{n}", "SVC-BATH", Decimal("60"))

        assert len(accounts.get_punch_history("CUST-1", limit=2)) == 2


class TestThresholdOverride:
    """Per-customer VIP threshold."""

    def test_set_and_clear(self, accounts):
        account = accounts.set_threshold_override("CUST-1", 3)
        assert account.threshold_override == 3

        account = accounts.set_threshold_override("CUST-1", None)
        assert LoyaltyAccount.objects.get(pk=account.pk).threshold_override is None

    def test_versioned_write(self, accounts):
        accounts.set_threshold_override("CUST-1", 3)
        accounts.set_threshold_override("CUST-1", 4)

        assert LoyaltyAccount.objects.get(customer_id="CUST-1").version == 3

    @pytest.mark.parametrize("value", [0, -1, "5", True])
    def test_invalid_threshold(self, accounts, value):
        with pytest.raises(PunchmanError) as exc:
            accounts.set_threshold_override("CUST-1", value)
        assert exc.value.code == "INVALID_ARGUMENT"

    def test_lower_override_issues_completed_cycles(self, accounts, earning):
        for n in range(7):
            earning.award_for_appointment("CUST-1", f"APPT-{n}", "SVC-BATH", Decimal("60"))

        account = accounts.set_threshold_override("CUST-1", 3)

        # 7 punches at threshold 3: two rewards, one punch left
        assert account.current_punches == 1
        assert account.cycle_number == 3
        assert LoyaltyRedemption.objects.filter(customer_id="CUST-1").count() == 2
