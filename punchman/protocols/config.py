"""Loyalty configuration source protocol."""

from typing import Protocol, runtime_checkable

# Section keys, one independently fetchable JSON record each
PROGRAM_SECTION = "loyalty_program"
EARNING_SECTION = "loyalty_earning_rules"
REDEMPTION_SECTION = "loyalty_redemption_rules"
REFERRAL_SECTION = "referral_program"

SECTION_KEYS = (PROGRAM_SECTION, EARNING_SECTION, REDEMPTION_SECTION, REFERRAL_SECTION)


@runtime_checkable
class ConfigSource(Protocol):
    """
    Protocol for reading loyalty configuration sections.

    Implemented by adapters/settings_table.py (LoyaltySetting rows).

    Configuration in settings.py:
        PUNCHMAN = {
            "CONFIG_SOURCE": "punchman.adapters.settings_table.SettingsTableConfigSource",
        }

    parallel_safe tells the provider whether fetch_section() may be called
    from worker threads. Sources backed by the Django ORM should say False.
    """

    parallel_safe: bool

    def fetch_section(self, key: str) -> dict | None:
        """
        Return the JSON record stored under key.

        Returns:
            The section dict, or None when the section was never configured.

        Raises:
            Any exception when the source cannot be read. The provider
            reports it as CONFIG_UNAVAILABLE.
        """
        ...
