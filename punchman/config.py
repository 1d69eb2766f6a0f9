"""
Loyalty configuration snapshot.

The business rules (program switch, threshold, earning, redemption and
referral rules) live in four JSON sections owned by a ConfigSource. The
ConfigSnapshotProvider assembles them into one validated, immutable
LoyaltyProgramConfig and caches it for CONFIG_CACHE_TTL seconds.

Usage:
    provider = ConfigSnapshotProvider(source)
    config = provider.get_config()
    if config.is_enabled:
        ...
    provider.invalidate()  # after an admin writes a section
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver
from django.utils.module_loading import import_string

from punchman.conf import punchman_settings
from punchman.exceptions import PunchmanError
from punchman.models import LoyaltySetting
from punchman.protocols.config import (
    EARNING_SECTION,
    PROGRAM_SECTION,
    REDEMPTION_SECTION,
    REFERRAL_SECTION,
    SECTION_KEYS,
    ConfigSource,
)

logger = logging.getLogger(__name__)


# Values used when a section was never configured
SECTION_DEFAULTS = {
    PROGRAM_SECTION: {"is_enabled": False, "punch_threshold": 9},
    EARNING_SECTION: {"qualifying_services": [], "minimum_spend": 0, "first_visit_bonus": 0},
    REDEMPTION_SECTION: {"eligible_services": [], "expiration_days": 365, "max_value": None},
    REFERRAL_SECTION: {"is_enabled": False, "referrer_bonus_punches": 1, "referee_bonus_punches": 1},
}


@dataclass(frozen=True)
class EarningRules:
    qualifying_service_ids: frozenset[str]  # empty = every service qualifies
    minimum_spend: Decimal
    first_visit_bonus_punches: int


@dataclass(frozen=True)
class RedemptionRules:
    eligible_service_ids: frozenset[str]
    expiration_days: int  # 0 = never expires
    max_value: Decimal | None  # None = uncapped


@dataclass(frozen=True)
class ReferralRules:
    is_enabled: bool
    referrer_bonus_punches: int
    referee_bonus_punches: int


@dataclass(frozen=True)
class LoyaltyProgramConfig:
    """Validated, immutable loyalty configuration."""

    is_enabled: bool
    punch_threshold: int
    earning: EarningRules
    redemption: RedemptionRules
    referral: ReferralRules


# ═══════════════════════════════════════════════════════════════════
# Validation
# ═══════════════════════════════════════════════════════════════════


def _invalid(section: str, name: str, value) -> PunchmanError:
    return PunchmanError(
        "CONFIG_INVALID",
        f"Invalid value for {section}.{name}: {value!r}",
        section=section,
        field=name,
    )


def _bool(data: dict, section: str, name: str) -> bool:
    value = data.get(name, SECTION_DEFAULTS[section][name])
    if not isinstance(value, bool):
        raise _invalid(section, name, value)
    return value


def _int(data: dict, section: str, name: str, low: int, high: int) -> int:
    value = data.get(name, SECTION_DEFAULTS[section][name])
    if isinstance(value, bool) or not isinstance(value, int):
        raise _invalid(section, name, value)
    if not low <= value <= high:
        raise _invalid(section, name, value)
    return value


def _decimal(data: dict, section: str, name: str, nullable: bool = False) -> Decimal | None:
    value = data.get(name, SECTION_DEFAULTS[section][name])
    if value is None and nullable:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float, str, Decimal)):
        raise _invalid(section, name, value)
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise _invalid(section, name, value) from None
    if not amount.is_finite() or amount < 0:
        raise _invalid(section, name, value)
    return amount


def _ids(data: dict, section: str, name: str) -> frozenset[str]:
    value = data.get(name, SECTION_DEFAULTS[section][name])
    if value is None:
        return frozenset()
    if not isinstance(value, (list, tuple)):
        raise _invalid(section, name, value)
    for item in value:
        if isinstance(item, bool) or not isinstance(item, (str, int)):
            raise _invalid(section, name, value)
    return frozenset(str(item) for item in value)


def build_config(sections: dict[str, dict | None]) -> LoyaltyProgramConfig:
    """
    Validate raw sections and assemble the snapshot.

    A missing section (None) falls back to SECTION_DEFAULTS. Raises
    PunchmanError("CONFIG_INVALID") on the first bad value.
    """
    raw = {}
    for key in SECTION_KEYS:
        data = sections.get(key)
        if data is None:
            data = SECTION_DEFAULTS[key]
        if not isinstance(data, dict):
            raise PunchmanError("CONFIG_INVALID", f"Section {key} is not an object", section=key)
        raw[key] = data

    program = raw[PROGRAM_SECTION]
    earning = raw[EARNING_SECTION]
    redemption = raw[REDEMPTION_SECTION]
    referral = raw[REFERRAL_SECTION]

    config = LoyaltyProgramConfig(
        is_enabled=_bool(program, PROGRAM_SECTION, "is_enabled"),
        punch_threshold=_int(program, PROGRAM_SECTION, "punch_threshold", 5, 20),
        earning=EarningRules(
            qualifying_service_ids=_ids(earning, EARNING_SECTION, "qualifying_services"),
            minimum_spend=_decimal(earning, EARNING_SECTION, "minimum_spend"),
            first_visit_bonus_punches=_int(earning, EARNING_SECTION, "first_visit_bonus", 0, 10),
        ),
        redemption=RedemptionRules(
            eligible_service_ids=_ids(redemption, REDEMPTION_SECTION, "eligible_services"),
            expiration_days=_int(redemption, REDEMPTION_SECTION, "expiration_days", 0, 3650),
            max_value=_decimal(redemption, REDEMPTION_SECTION, "max_value", nullable=True),
        ),
        referral=ReferralRules(
            is_enabled=_bool(referral, REFERRAL_SECTION, "is_enabled"),
            referrer_bonus_punches=_int(referral, REFERRAL_SECTION, "referrer_bonus_punches", 0, 10),
            referee_bonus_punches=_int(referral, REFERRAL_SECTION, "referee_bonus_punches", 0, 10),
        ),
    )

    if config.is_enabled and not config.redemption.eligible_service_ids:
        raise PunchmanError(
            "CONFIG_INVALID",
            "An enabled program needs at least one eligible redemption service",
            section=REDEMPTION_SECTION,
            field="eligible_services",
        )
    return config


# ═══════════════════════════════════════════════════════════════════
# Provider
# ═══════════════════════════════════════════════════════════════════


class ConfigSnapshotProvider:
    """
    Caches the last good LoyaltyProgramConfig for `ttl` seconds.

    A failed refresh raises and leaves the cache empty: an expired snapshot
    is never served. clock must be monotonic; tests inject a fake one.
    """

    def __init__(
        self,
        source: ConfigSource | None = None,
        ttl: float | None = None,
        clock=time.monotonic,
    ):
        if source is None:
            source = import_string(punchman_settings.CONFIG_SOURCE)()
        self.source = source
        self.ttl = punchman_settings.CONFIG_CACHE_TTL if ttl is None else ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._snapshot: LoyaltyProgramConfig | None = None
        self._fetched_at: float | None = None

    def get_config(self) -> LoyaltyProgramConfig:
        with self._lock:
            if self._snapshot is not None and self._clock() - self._fetched_at < self.ttl:
                return self._snapshot
            self._snapshot = None
            self._fetched_at = None

        snapshot = build_config(self._fetch_sections())

        with self._lock:
            self._snapshot = snapshot
            self._fetched_at = self._clock()
        logger.debug("Loyalty config refreshed (enabled=%s)", snapshot.is_enabled)
        return snapshot

    def invalidate(self) -> None:
        with self._lock:
            self._snapshot = None
            self._fetched_at = None

    def _fetch_one(self, key: str) -> dict | None:
        try:
            return self.source.fetch_section(key)
        except Exception as e:
            logger.warning("Failed to fetch loyalty config section %s: %s", key, e)
            raise PunchmanError("CONFIG_UNAVAILABLE", section=key) from e

    def _fetch_sections(self) -> dict[str, dict | None]:
        if getattr(self.source, "parallel_safe", False):
            with ThreadPoolExecutor(max_workers=len(SECTION_KEYS)) as pool:
                values = list(pool.map(self._fetch_one, SECTION_KEYS))
        else:
            values = [self._fetch_one(key) for key in SECTION_KEYS]
        return dict(zip(SECTION_KEYS, values))


_default_provider: ConfigSnapshotProvider | None = None
_default_lock = threading.Lock()


def get_default_provider() -> ConfigSnapshotProvider:
    """Process-wide provider built from PUNCHMAN["CONFIG_SOURCE"]."""
    global _default_provider
    with _default_lock:
        if _default_provider is None:
            _default_provider = ConfigSnapshotProvider()
        return _default_provider


def reset_default_provider() -> None:
    """Forget the process-wide provider (settings changed, tests)."""
    global _default_provider
    with _default_lock:
        _default_provider = None


@receiver(post_save, sender=LoyaltySetting, dispatch_uid="punchman_setting_saved")
@receiver(post_delete, sender=LoyaltySetting, dispatch_uid="punchman_setting_deleted")
def invalidate_on_setting_change(sender, instance, **kwargs):
    provider = _default_provider
    if provider is not None:
        logger.info("Loyalty setting %s changed, invalidating config cache", instance.key)
        provider.invalidate()
