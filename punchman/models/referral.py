"""Referral models - customer codes and referral relationships."""

from django.db import models
from django.db.models import F, Q
from django.utils.translation import gettext_lazy as _


class ReferralCode(models.Model):
    """
    Short customer-owned code handed to friends.

    By convention a customer has one active code; nothing stops an admin
    from deactivating it and issuing another. max_uses null = unlimited.
    """

    customer_id = models.CharField(_("customer"), max_length=64, db_index=True)
    code = models.CharField(
        _("code"),
        max_length=20,
        unique=True,
        help_text=_("Uppercase alphanumeric (ex: K7Q2XD)"),
    )
    uses_count = models.PositiveIntegerField(_("uses"), default=0)
    max_uses = models.PositiveIntegerField(
        _("max uses"),
        null=True,
        blank=True,
        help_text=_("Empty = unlimited"),
    )
    is_active = models.BooleanField(_("active"), default=True)
    created_at = models.DateTimeField(_("created at"), auto_now_add=True)

    class Meta:
        db_table = "punchman_referral_code"
        verbose_name = _("referral code")
        verbose_name_plural = _("referral codes")
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=Q(max_uses__isnull=True) | Q(uses_count__lte=F("max_uses")),
                name="punchman_referral_code_max_uses",
            ),
        ]

    def __str__(self):
        return f"{self.code} ({self.customer_id})"

    @property
    def is_exhausted(self) -> bool:
        return self.max_uses is not None and self.uses_count >= self.max_uses


class ReferralStatus(models.TextChoices):
    PENDING = "pending", _("Pending")
    COMPLETED = "completed", _("Completed")
    # Reserved: no timeout policy moves referrals here yet
    EXPIRED = "expired", _("Expired")


class Referral(models.Model):
    """
    A referred customer.

    referee_id is unique: a customer can be referred once in a lifetime,
    whatever code they use. Bonuses are paid when the referee completes
    their first billable appointment.
    """

    referrer_id = models.CharField(_("referrer"), max_length=64, db_index=True)
    referee_id = models.CharField(_("referee"), max_length=64, unique=True)
    referral_code = models.ForeignKey(
        ReferralCode,
        on_delete=models.PROTECT,
        related_name="referrals",
        verbose_name=_("referral code"),
    )

    status = models.CharField(
        _("status"),
        max_length=20,
        choices=ReferralStatus.choices,
        default=ReferralStatus.PENDING,
        db_index=True,
    )
    referrer_bonus_awarded = models.BooleanField(_("referrer bonus awarded"), default=False)
    referee_bonus_awarded = models.BooleanField(_("referee bonus awarded"), default=False)

    completed_at = models.DateTimeField(_("completed at"), null=True, blank=True)
    created_at = models.DateTimeField(_("created at"), auto_now_add=True, db_index=True)

    class Meta:
        db_table = "punchman_referral"
        verbose_name = _("referral")
        verbose_name_plural = _("referrals")
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=~Q(referrer_id=F("referee_id")),
                name="punchman_referrer_not_referee",
            ),
        ]

    def __str__(self):
        return f"{self.referrer_id} -> {self.referee_id} ({self.status})"

    @property
    def is_settled(self) -> bool:
        return self.referrer_bonus_awarded and self.referee_bonus_awarded
