"""Result records returned by the loyalty engines."""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from decimal import Decimal


@dataclass(frozen=True)
class EarnResult:
    """Outcome of awarding punches for a completed appointment."""

    success: bool
    punches_awarded: int = 0
    current_punches: int = 0
    threshold: int = 0
    reward_earned: bool = False
    rewards_earned: int = 0
    cycle_number: int = 1
    is_first_visit: bool = False
    reason: str | None = None  # PROGRAM_DISABLED | SERVICE_NOT_QUALIFYING | BELOW_MINIMUM_SPEND
    message: str = ""

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "EarnResult":
        return cls(**data)


@dataclass(frozen=True)
class AvailableReward:
    """A pending reward as seen by the customer."""

    id: int
    cycle_number: int
    earned_at: datetime
    expires_at: datetime | None
    is_expired: bool


@dataclass(frozen=True)
class EligibilityResult:
    """Whether a service can be paid with a reward, and for how much."""

    allowed: bool
    redemption_value: Decimal | None = None
    pending_reward_id: int | None = None
    available_rewards: int = 0
    reason: str | None = None  # PROGRAM_DISABLED | SERVICE_NOT_ELIGIBLE | NO_PENDING_REWARD
    message: str = ""


@dataclass(frozen=True)
class RedemptionResult:
    """Outcome of consuming a reward."""

    success: bool
    redemption_id: int | None = None
    redemption_value: Decimal | None = None
    remaining_rewards: int = 0
    reason: str | None = None
    message: str = ""


@dataclass(frozen=True)
class ApplyResult:
    """Outcome of applying a referral code at registration."""

    success: bool
    referral_id: int | None = None
    referrer_id: str | None = None
    reason: str | None = None
    # REFERRALS_DISABLED | INVALID_CODE | CODE_INACTIVE | CODE_EXHAUSTED
    # SELF_REFERRAL | DUPLICATE_REFERRAL
    message: str = ""


@dataclass(frozen=True)
class SettleResult:
    """Outcome of paying referral bonuses."""

    success: bool
    referral_id: int | None = None
    referrer_id: str | None = None
    referee_id: str | None = None
    referrer_punches_awarded: int = 0
    referee_punches_awarded: int = 0
    referrer_reward_earned: bool = False
    referee_reward_earned: bool = False
    reason: str | None = None  # REFERRALS_DISABLED | NO_PENDING_REFERRAL
    message: str = ""

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "SettleResult":
        return cls(**data)


@dataclass(frozen=True)
class LoyaltyStatus:
    """Punch card summary for display."""

    customer_id: str
    current_punches: int
    threshold: int
    punches_to_next_reward: int
    cycle_number: int
    available_rewards: int
    total_visits: int
    lifetime_earned: int
    lifetime_redeemed: int
    threshold_override: int | None = None
    rewards: list[AvailableReward] = field(default_factory=list)


@dataclass(frozen=True)
class PunchEntry:
    """One line of the punch history."""

    id: int
    source: str
    amount: int
    cycle_number: int
    appointment_id: str | None
    created_at: datetime


@dataclass(frozen=True)
class ReferralStats:
    """Referral activity of one customer."""

    customer_id: str
    code: str | None
    total_referrals: int
    completed_referrals: int
    pending_referrals: int
