"""LoyaltySetting model - JSON sections read by the config provider."""

from django.db import models
from django.utils.translation import gettext_lazy as _


class SettingKey(models.TextChoices):
    PROGRAM = "loyalty_program", _("Program status and threshold")
    EARNING = "loyalty_earning_rules", _("Earning rules")
    REDEMPTION = "loyalty_redemption_rules", _("Redemption rules")
    REFERRAL = "referral_program", _("Referral program")


class LoyaltySetting(models.Model):
    """
    One configuration section, stored as JSON.

    Example values:
        loyalty_program:          {"is_enabled": true, "punch_threshold": 9}
        loyalty_earning_rules:    {"qualifying_services": ["SVC-1"], "minimum_spend": 0,
                                   "first_visit_bonus": 2}
        loyalty_redemption_rules: {"eligible_services": ["SVC-1"], "expiration_days": 365,
                                   "max_value": 75}
        referral_program:         {"is_enabled": true, "referrer_bonus_punches": 1,
                                   "referee_bonus_punches": 1}

    Saving or deleting a row invalidates the default config provider.
    """

    key = models.CharField(_("key"), max_length=50, unique=True, choices=SettingKey.choices)
    value = models.JSONField(_("value"), default=dict)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)
    updated_by = models.CharField(_("updated by"), max_length=100, blank=True)

    class Meta:
        db_table = "punchman_setting"
        verbose_name = _("loyalty setting")
        verbose_name_plural = _("loyalty settings")
        ordering = ["key"]

    def __str__(self):
        return self.key
