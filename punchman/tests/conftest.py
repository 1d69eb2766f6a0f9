"""Pytest fixtures for Punchman tests."""

import pytest

from punchman.config import ConfigSnapshotProvider, reset_default_provider
from punchman.ledger import LedgerStore


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class DictConfigSource:
    """In-memory ConfigSource; counts fetches and can be told to fail."""

    parallel_safe = True

    def __init__(self, sections: dict | None = None):
        self.sections = dict(sections or {})
        self.fetches = 0
        self.fail_on: str | None = None

    def fetch_section(self, key: str) -> dict | None:
        self.fetches += 1
        if self.fail_on == key:
            raise ConnectionError(f"settings store down ({key})")
        return self.sections.get(key)


def loyalty_sections(
    is_enabled=True,
    punch_threshold=9,
    qualifying_services=None,
    minimum_spend=0,
    first_visit_bonus=0,
    eligible_services=("SVC-BATH", "SVC-GROOM"),
    expiration_days=365,
    max_value=None,
    referrals_enabled=True,
    referrer_bonus=1,
    referee_bonus=1,
) -> dict:
    """Config sections as stored by the settings collaborator."""
    return {
        "loyalty_program": {"is_enabled": is_enabled, "punch_threshold": punch_threshold},
        "loyalty_earning_rules": {
            "qualifying_services": list(qualifying_services or []),
            "minimum_spend": minimum_spend,
            "first_visit_bonus": first_visit_bonus,
        },
        "loyalty_redemption_rules": {
            "eligible_services": list(eligible_services),
            "expiration_days": expiration_days,
            "max_value": max_value,
        },
        "referral_program": {
            "is_enabled": referrals_enabled,
            "referrer_bonus_punches": referrer_bonus,
            "referee_bonus_punches": referee_bonus,
        },
    }


@pytest.fixture(autouse=True)
def _isolated_default_provider():
    """Never share the process-wide provider between tests."""
    reset_default_provider()
    yield
    reset_default_provider()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config_source():
    """Enabled program: threshold 9, no first-visit bonus, 1+1 referral bonus."""
    return DictConfigSource(loyalty_sections())


@pytest.fixture
def provider(config_source, clock):
    return ConfigSnapshotProvider(config_source, ttl=300, clock=clock)


@pytest.fixture
def configure(config_source, provider):
    """Replace the loyalty sections and drop the cached snapshot."""

    def _configure(**options):
        config_source.sections = loyalty_sections(**options)
        provider.invalidate()
        return provider

    return _configure


@pytest.fixture
def ledger():
    return LedgerStore()


@pytest.fixture
def earning(provider, ledger, db):
    from punchman.services.earning import EarningService

    return EarningService(provider, ledger)


@pytest.fixture
def redemption(provider, ledger, db):
    from punchman.services.redemption import RedemptionService

    return RedemptionService(provider, ledger)


@pytest.fixture
def referrals(provider, ledger, db):
    from punchman.services.referral import ReferralService

    return ReferralService(provider, ledger)


@pytest.fixture
def accounts(provider, ledger, db):
    from punchman.services.account import AccountService

    return AccountService(provider, ledger)
