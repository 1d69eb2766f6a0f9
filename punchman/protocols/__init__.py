"""Punchman protocols."""

from punchman.protocols.config import ConfigSource, SECTION_KEYS
from punchman.protocols.loyalty import (
    ApplyResult,
    AvailableReward,
    EarnResult,
    EligibilityResult,
    LoyaltyStatus,
    PunchEntry,
    RedemptionResult,
    ReferralStats,
    SettleResult,
)

__all__ = [
    # Configuration
    "ConfigSource",
    "SECTION_KEYS",
    # Earning
    "EarnResult",
    # Redemption
    "AvailableReward",
    "EligibilityResult",
    "RedemptionResult",
    # Referrals
    "ApplyResult",
    "SettleResult",
    "ReferralStats",
    # Account
    "LoyaltyStatus",
    "PunchEntry",
]
