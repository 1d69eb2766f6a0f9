"""
ProcessedEvent model for replay protection.

Stores the result of every processed event so a duplicate delivery
(webhook retry, admin re-run) returns exactly what the first call returned.
"""

from django.db import models
from django.utils.translation import gettext_lazy as _


class EventKind(models.TextChoices):
    APPOINTMENT_AWARD = "appointment_award", _("Appointment award")
    REFERRAL_SETTLEMENT = "referral_settlement", _("Referral settlement")


class ProcessedEvent(models.Model):
    """
    Receipt of an event that changed the ledger.

    reference is the appointment ID for both kinds. result holds the
    serialized result record; it is written once and never updated.
    """

    kind = models.CharField(_("kind"), max_length=30, choices=EventKind.choices)
    customer_id = models.CharField(_("customer"), max_length=64)
    reference = models.CharField(_("reference"), max_length=64)
    result = models.JSONField(_("result"), default=dict)
    processed_at = models.DateTimeField(_("processed at"), auto_now_add=True)

    class Meta:
        db_table = "punchman_processed_event"
        verbose_name = _("processed event")
        verbose_name_plural = _("processed events")
        constraints = [
            models.UniqueConstraint(
                fields=["kind", "customer_id", "reference"],
                name="punchman_unique_processed_event",
            ),
        ]
        indexes = [
            models.Index(fields=["kind", "processed_at"], name="punchman_pr_kind_6b1f0e_idx"),
        ]

    def __str__(self):
        return f"{self.kind}:{self.customer_id}:{self.reference}"
