"""
Pure loyalty rules.

No database access here: the services feed these functions the values
they read inside their transaction and persist whatever comes back.
"""

import secrets
import string
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from punchman.config import EarningRules, RedemptionRules
from punchman.exceptions import PunchmanError

REFERRAL_CODE_ALPHABET = string.ascii_uppercase + string.digits
CENT = Decimal("0.01")


def parse_amount(value, name: str = "amount") -> Decimal:
    """
    Money amount from a caller (Decimal, int or str).

    Raises:
        PunchmanError: INVALID_ARGUMENT for non-numeric, NaN, infinite or negative values.
    """
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise PunchmanError("INVALID_ARGUMENT", f"{name} must be a number", field=name) from None
    if not amount.is_finite() or amount < 0:
        raise PunchmanError("INVALID_ARGUMENT", f"{name} must be a finite, non-negative number", field=name)
    return amount


# ═══════════════════════════════════════════════════════════════════
# Earning
# ═══════════════════════════════════════════════════════════════════


def service_qualifies(rules: EarningRules, service_id: str) -> bool:
    """Empty qualifying list means every service earns punches."""
    if not rules.qualifying_service_ids:
        return True
    return str(service_id) in rules.qualifying_service_ids


def meets_minimum_spend(rules: EarningRules, total: Decimal) -> bool:
    return total >= rules.minimum_spend


def effective_threshold(threshold_override: int | None, punch_threshold: int) -> int:
    return threshold_override or punch_threshold


@dataclass(frozen=True)
class CycleOutcome:
    """Card state after crediting punches."""

    current_punches: int
    cycle_number: int
    completed_cycles: list[int] = field(default_factory=list)
    punch_cycles: list[int] = field(default_factory=list)  # cycle of each new punch

    @property
    def rewards_earned(self) -> int:
        return len(self.completed_cycles)


def apply_punches(current_punches: int, cycle_number: int, count: int, threshold: int) -> CycleOutcome:
    """
    Add `count` punches to a card.

    Every time the total reaches the threshold a cycle completes and the
    threshold is subtracted; the remainder carries into the next cycle.
    A card already at or above the threshold (override lowered) completes
    with zero new punches.

        >>> apply_punches(8, 1, 3, 9)
        CycleOutcome(current_punches=2, cycle_number=2, completed_cycles=[1], punch_cycles=[1, 2, 2])
    """
    if threshold < 1:
        raise ValueError("threshold must be positive")
    if count < 0:
        raise ValueError("count cannot be negative")

    punch_cycles = [
        cycle_number + (current_punches + i) // threshold
        for i in range(count)
    ]

    total = current_punches + count
    completed = []
    cycle = cycle_number
    while total >= threshold:
        completed.append(cycle)
        cycle += 1
        total -= threshold

    return CycleOutcome(
        current_punches=total,
        cycle_number=cycle,
        completed_cycles=completed,
        punch_cycles=punch_cycles,
    )


# ═══════════════════════════════════════════════════════════════════
# Redemption
# ═══════════════════════════════════════════════════════════════════


def service_eligible(rules: RedemptionRules, service_id: str) -> bool:
    return str(service_id) in rules.eligible_service_ids


def compute_expires_at(earned_at: datetime, expiration_days: int) -> datetime | None:
    if expiration_days == 0:
        return None
    return earned_at + timedelta(days=expiration_days)


def is_redeemable(expires_at: datetime | None, now: datetime) -> bool:
    """A reward stops being redeemable once now is past expires_at."""
    return expires_at is None or now <= expires_at


def redemption_value(service_price: Decimal, max_value: Decimal | None) -> Decimal:
    """Value covered by the reward, rounded to the cent as it is stored."""
    value = service_price if max_value is None else min(service_price, max_value)
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


# ═══════════════════════════════════════════════════════════════════
# Referral codes
# ═══════════════════════════════════════════════════════════════════


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


def is_valid_code(code: str, length: int = 6) -> bool:
    return len(code) == length and all(char in REFERRAL_CODE_ALPHABET for char in code)


def random_code(length: int = 6) -> str:
    return "".join(secrets.choice(REFERRAL_CODE_ALPHABET) for _ in range(length))
