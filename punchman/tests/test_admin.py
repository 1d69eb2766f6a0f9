"""Tests for the punchman admin."""

from decimal import Decimal

import pytest
from django.contrib.admin.sites import AdminSite
from django.contrib.auth.models import User
from django.test import RequestFactory

from punchman.admin import LoyaltyAccountAdmin, LoyaltyRedemptionAdmin, LoyaltySettingAdmin, ReferralCodeAdmin
from punchman.models import LoyaltyAccount, LoyaltyRedemption, LoyaltySetting, ReferralCode


pytestmark = pytest.mark.django_db


@pytest.fixture
def request_with_user():
    request = RequestFactory().post("/admin/")
    request.user = User.objects.create_superuser("admin", "admin@example.com", "x")
    return request


class TestAdmin:

    def test_setting_records_editor(self, request_with_user):
        model_admin = LoyaltySettingAdmin(LoyaltySetting, AdminSite())
        setting = LoyaltySetting(key="loyalty_program", value={"is_enabled": False, "punch_threshold": 9})

        model_admin.save_model(request_with_user, setting, form=None, change=False)

        assert LoyaltySetting.objects.get().updated_by == "admin"

    def test_account_override_goes_through_service(self, request_with_user, earning, provider):
        from unittest.mock import patch

        earning.award_for_appointment("CUST-1", "APPT-1", "SVC-BATH", Decimal("60"))
        model_admin = LoyaltyAccountAdmin(LoyaltyAccount, AdminSite())
        account = LoyaltyAccount.objects.get()
        account.threshold_override = 5

        with patch("punchman.services.account.get_default_provider", return_value=provider):
            model_admin.save_model(request_with_user, account, form=None, change=True)

        stored = LoyaltyAccount.objects.get()
        assert stored.threshold_override == 5
        assert stored.version == 3

    def test_ledger_rows_are_read_only(self, request_with_user):
        model_admin = LoyaltyRedemptionAdmin(LoyaltyRedemption, AdminSite())

        assert model_admin.has_add_permission(request_with_user) is False
        assert model_admin.has_change_permission(request_with_user) is False
        assert model_admin.has_delete_permission(request_with_user) is False

    def test_referral_code_limits_are_read_only(self, request_with_user, referrals):
        code = referrals.generate_code("REFERRER", max_uses=3)
        model_admin = ReferralCodeAdmin(ReferralCode, AdminSite())

        readonly = model_admin.get_readonly_fields(request_with_user, code)

        assert "max_uses" in readonly
        assert "uses_count" in readonly
        assert "is_active" not in readonly

    def test_referral_code_deactivation_goes_through_service(self, request_with_user, referrals, provider):
        from unittest.mock import patch

        code = referrals.generate_code("REFERRER")
        model_admin = ReferralCodeAdmin(ReferralCode, AdminSite())
        code.is_active = False

        with patch("punchman.services.referral.get_default_provider", return_value=provider):
            model_admin.save_model(request_with_user, code, form=None, change=True)

        code.refresh_from_db()
        assert code.is_active is False
        assert "is_active" in model_admin.get_readonly_fields(request_with_user, code)
        assert model_admin.has_delete_permission(request_with_user, code) is False

    def test_referral_code_save_without_deactivation_writes_nothing(self, request_with_user, referrals):
        code = referrals.generate_code("REFERRER", max_uses=1)
        model_admin = ReferralCodeAdmin(ReferralCode, AdminSite())
        code.max_uses = 0

        model_admin.save_model(request_with_user, code, form=None, change=True)

        code.refresh_from_db()
        assert code.max_uses == 1
        assert code.is_active is True
