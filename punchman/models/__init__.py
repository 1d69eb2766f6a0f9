"""Punchman models.

Ledger models are written only through punchman.ledger.LedgerStore.
"""

from punchman.models.account import LoyaltyAccount
from punchman.models.punch import LoyaltyPunch, PunchSource
from punchman.models.redemption import LoyaltyRedemption, RedemptionStatus
from punchman.models.referral import Referral, ReferralCode, ReferralStatus
from punchman.models.processed_event import EventKind, ProcessedEvent
from punchman.models.setting import LoyaltySetting, SettingKey

__all__ = [
    # Ledger
    "LoyaltyAccount",
    "LoyaltyPunch",
    "PunchSource",
    "LoyaltyRedemption",
    "RedemptionStatus",
    # Referrals
    "ReferralCode",
    "Referral",
    "ReferralStatus",
    # Replay protection
    "ProcessedEvent",
    "EventKind",
    # Configuration source
    "LoyaltySetting",
    "SettingKey",
]
