"""LoyaltyPunch model - append-only punch ledger."""

from django.db import models
from django.db.models import Q
from django.utils.translation import gettext_lazy as _


class PunchSource(models.TextChoices):
    """Why a punch was awarded."""

    SERVICE_COMPLETION = "service_completion", _("Service completion")
    FIRST_VISIT_BONUS = "first_visit_bonus", _("First visit bonus")
    REFERRAL_REFERRER = "referral_referrer", _("Referral (referrer)")
    REFERRAL_REFEREE = "referral_referee", _("Referral (referee)")


class LoyaltyPunch(models.Model):
    """
    Immutable record of a single punch.

    amount is always 1: bonuses are written as several rows so every punch
    can be audited on its own. Rows are never modified or deleted.
    """

    account = models.ForeignKey(
        "punchman.LoyaltyAccount",
        on_delete=models.PROTECT,
        related_name="punches",
        verbose_name=_("account"),
    )
    customer_id = models.CharField(_("customer"), max_length=64, db_index=True)
    appointment_id = models.CharField(
        _("appointment"),
        max_length=64,
        blank=True,
        null=True,
    )

    amount = models.PositiveSmallIntegerField(_("amount"), default=1, editable=False)
    cycle_number = models.PositiveIntegerField(
        _("cycle"),
        help_text=_("Card this punch counts toward"),
    )
    source = models.CharField(
        _("source"),
        max_length=30,
        choices=PunchSource.choices,
    )

    created_at = models.DateTimeField(_("created at"), auto_now_add=True, db_index=True)

    class Meta:
        db_table = "punchman_punch"
        verbose_name = _("punch")
        verbose_name_plural = _("punches")
        ordering = ["-created_at", "-id"]
        constraints = [
            # Idempotency: one completion punch per appointment
            models.UniqueConstraint(
                fields=["customer_id", "appointment_id"],
                condition=Q(source="service_completion"),
                name="punchman_unique_completion_punch",
            ),
        ]
        indexes = [
            models.Index(fields=["customer_id", "source"], name="punchman_pu_custome_4c2d8a_idx"),
            models.Index(fields=["account", "-created_at"], name="punchman_pu_account_9e7b31_idx"),
        ]

    def __str__(self):
        return f"+1 {self.customer_id} [{self.source}] cycle {self.cycle_number}"
