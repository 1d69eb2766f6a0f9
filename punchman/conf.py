"""
Punchman configuration.

Usage in settings.py:
    PUNCHMAN = {
        "CONFIG_CACHE_TTL": 300,
        "MAX_CONFLICT_RETRIES": 3,
    }

These are deployment knobs. Business rules (threshold, earning, redemption,
referral) are read from the loyalty config source, see punchman.config.
"""

from dataclasses import dataclass
from typing import Any

from django.conf import settings


@dataclass
class PunchmanSettings:
    """Punchman configuration settings."""

    # Loyalty config snapshot time-to-live (seconds)
    CONFIG_CACHE_TTL: int = 300

    # ConfigSource implementation (dotted path)
    CONFIG_SOURCE: str = "punchman.adapters.settings_table.SettingsTableConfigSource"

    # Optimistic concurrency retries per engine call
    MAX_CONFLICT_RETRIES: int = 3

    # Referral codes
    REFERRAL_CODE_LENGTH: int = 6
    REFERRAL_CODE_MAX_ATTEMPTS: int = 10


def get_punchman_settings() -> PunchmanSettings:
    """Load settings from Django settings."""
    user_settings: dict[str, Any] = getattr(settings, "PUNCHMAN", {})
    return PunchmanSettings(**user_settings)


class _LazySettings:
    """Lazy proxy that re-reads settings on every attribute access."""

    def __getattr__(self, name):
        return getattr(get_punchman_settings(), name)


punchman_settings = _LazySettings()
