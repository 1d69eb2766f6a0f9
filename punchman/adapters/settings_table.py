"""Punchman adapter: ConfigSource backed by LoyaltySetting rows."""

from __future__ import annotations

from punchman.models import LoyaltySetting


class SettingsTableConfigSource:
    """Adapter: reads config sections from the punchman_setting table."""

    # Worker threads would each open their own DB connection
    parallel_safe = False

    def fetch_section(self, key: str) -> dict | None:
        row = LoyaltySetting.objects.filter(key=key).values_list("value", flat=True).first()
        if row is None:
            return None
        return row
