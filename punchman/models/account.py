"""LoyaltyAccount model - one punch card per customer."""

from django.core.validators import MinValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _


class LoyaltyAccount(models.Model):
    """
    Customer punch card.

    Created lazily on the first punch. current_punches always stays below
    the effective threshold: completed cards become LoyaltyRedemption rows
    and any overflow is carried into the next cycle.

    version is the optimistic concurrency token. Every write goes through
    LedgerStore.upsert_account(), which updates only if the version read
    is still current and bumps it.
    """

    customer_id = models.CharField(
        _("customer"),
        max_length=64,
        unique=True,
        help_text=_("External customer ID"),
    )

    # Card state
    current_punches = models.PositiveIntegerField(_("current punches"), default=0)
    cycle_number = models.PositiveIntegerField(
        _("cycle"),
        default=1,
        help_text=_("Card currently being filled (1 = first card)"),
    )

    # Totals (never decrease)
    lifetime_earned = models.PositiveIntegerField(_("punches earned"), default=0)
    lifetime_redeemed = models.PositiveIntegerField(_("rewards redeemed"), default=0)
    total_visits = models.PositiveIntegerField(
        _("visits"),
        default=0,
        help_text=_("Completed appointments that earned punches"),
    )

    # VIP override
    threshold_override = models.PositiveIntegerField(
        _("threshold override"),
        null=True,
        blank=True,
        validators=[MinValueValidator(1)],
        help_text=_("Punches needed for this customer; empty = program threshold"),
    )

    # Optimistic concurrency
    version = models.PositiveIntegerField(_("version"), default=1)

    created_at = models.DateTimeField(_("created at"), auto_now_add=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        db_table = "punchman_account"
        verbose_name = _("loyalty account")
        verbose_name_plural = _("loyalty accounts")
        ordering = ["-updated_at"]

    def __str__(self):
        return f"{self.customer_id}: {self.current_punches} punches (cycle {self.cycle_number})"
