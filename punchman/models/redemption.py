"""LoyaltyRedemption model - rewards issued by completed cycles."""

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class RedemptionStatus(models.TextChoices):
    PENDING = "pending", _("Pending")
    REDEEMED = "redeemed", _("Redeemed")
    EXPIRED = "expired", _("Expired")


class LoyaltyRedemption(models.Model):
    """
    One reward per completed cycle.

    Lifecycle:
        pending -> redeemed  (RedemptionService.redeem)
        pending -> expired   (lazy check on redeem, or the periodic sweep)

    Both target states are terminal. expires_at is fixed when the reward is
    issued (earned_at + expiration_days) and is null when rewards never expire.
    """

    account = models.ForeignKey(
        "punchman.LoyaltyAccount",
        on_delete=models.PROTECT,
        related_name="redemptions",
        verbose_name=_("account"),
    )
    customer_id = models.CharField(_("customer"), max_length=64, db_index=True)
    cycle_number = models.PositiveIntegerField(_("cycle"))

    status = models.CharField(
        _("status"),
        max_length=20,
        choices=RedemptionStatus.choices,
        default=RedemptionStatus.PENDING,
        db_index=True,
    )

    earned_at = models.DateTimeField(_("earned at"), default=timezone.now, db_index=True)
    expires_at = models.DateTimeField(_("expires at"), null=True, blank=True)
    redeemed_at = models.DateTimeField(_("redeemed at"), null=True, blank=True)
    consumed_by_appointment_id = models.CharField(
        _("redeemed on appointment"),
        max_length=64,
        blank=True,
        null=True,
    )
    redemption_value = models.DecimalField(
        _("redemption value"),
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        help_text=_("Discount applied when redeemed"),
    )

    class Meta:
        db_table = "punchman_redemption"
        verbose_name = _("reward")
        verbose_name_plural = _("rewards")
        ordering = ["earned_at", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["account", "cycle_number"],
                name="punchman_unique_reward_per_cycle",
            ),
        ]
        indexes = [
            models.Index(fields=["customer_id", "status", "earned_at"], name="punchman_re_custome_0a5f42_idx"),
            models.Index(fields=["status", "expires_at"], name="punchman_re_status_7d13c9_idx"),
        ]

    def __str__(self):
        return f"{self.customer_id} cycle {self.cycle_number}: {self.status}"
