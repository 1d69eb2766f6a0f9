"""Punchman services.

Each engine takes a ConfigSnapshotProvider (and optionally a LedgerStore)
at construction; both default to the process-wide instances.
"""

from punchman.services.account import AccountService
from punchman.services.earning import EarningService
from punchman.services.redemption import RedemptionService
from punchman.services.referral import ReferralService

__all__ = ["EarningService", "RedemptionService", "ReferralService", "AccountService"]
