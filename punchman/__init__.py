"""
Django Punchman - Loyalty punch cards, rewards and referrals.

Usage:
    from punchman import EarningService, RedemptionService, ReferralService
    from punchman.config import get_default_provider

    provider = get_default_provider()

    earning = EarningService(provider)
    result = earning.award_for_appointment("CUST-1", "APPT-1", "SVC-BATH", Decimal("60"))

    redemption = RedemptionService(provider)
    check = redemption.check_eligibility("CUST-1", "SVC-BATH", Decimal("85"))
    if check.allowed:
        redemption.redeem("CUST-1", "APPT-2", "SVC-BATH", Decimal("85"))

    referrals = ReferralService(provider)
    code = referrals.generate_code("CUST-1")
    referrals.apply_code("CUST-2", code.code)
"""


def __getattr__(name):
    if name == "EarningService":
        from punchman.services.earning import EarningService

        return EarningService
    if name == "RedemptionService":
        from punchman.services.redemption import RedemptionService

        return RedemptionService
    if name == "ReferralService":
        from punchman.services.referral import ReferralService

        return ReferralService
    if name == "AccountService":
        from punchman.services.account import AccountService

        return AccountService
    if name == "PunchmanError":
        from punchman.exceptions import PunchmanError

        return PunchmanError
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "EarningService",
    "RedemptionService",
    "ReferralService",
    "AccountService",
    "PunchmanError",
]
__version__ = "0.1.0"
