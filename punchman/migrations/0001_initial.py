# Initial punchman schema: ledger, referrals, receipts and settings

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="LoyaltyAccount",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "customer_id",
                    models.CharField(
                        help_text="External customer ID",
                        max_length=64,
                        unique=True,
                        verbose_name="customer",
                    ),
                ),
                ("current_punches", models.PositiveIntegerField(default=0, verbose_name="current punches")),
                (
                    "cycle_number",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Card currently being filled (1 = first card)",
                        verbose_name="cycle",
                    ),
                ),
                ("lifetime_earned", models.PositiveIntegerField(default=0, verbose_name="punches earned")),
                ("lifetime_redeemed", models.PositiveIntegerField(default=0, verbose_name="rewards redeemed")),
                (
                    "total_visits",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Completed appointments that earned punches",
                        verbose_name="visits",
                    ),
                ),
                (
                    "threshold_override",
                    models.PositiveIntegerField(
                        blank=True,
                        help_text="Punches needed for this customer; empty = program threshold",
                        null=True,
                        validators=[django.core.validators.MinValueValidator(1)],
                        verbose_name="threshold override",
                    ),
                ),
                ("version", models.PositiveIntegerField(default=1, verbose_name="version")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
            ],
            options={
                "verbose_name": "loyalty account",
                "verbose_name_plural": "loyalty accounts",
                "db_table": "punchman_account",
                "ordering": ["-updated_at"],
            },
        ),
        migrations.CreateModel(
            name="LoyaltySetting",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "key",
                    models.CharField(
                        choices=[
                            ("loyalty_program", "Program status and threshold"),
                            ("loyalty_earning_rules", "Earning rules"),
                            ("loyalty_redemption_rules", "Redemption rules"),
                            ("referral_program", "Referral program"),
                        ],
                        max_length=50,
                        unique=True,
                        verbose_name="key",
                    ),
                ),
                ("value", models.JSONField(default=dict, verbose_name="value")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
                ("updated_by", models.CharField(blank=True, max_length=100, verbose_name="updated by")),
            ],
            options={
                "verbose_name": "loyalty setting",
                "verbose_name_plural": "loyalty settings",
                "db_table": "punchman_setting",
                "ordering": ["key"],
            },
        ),
        migrations.CreateModel(
            name="ProcessedEvent",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "kind",
                    models.CharField(
                        choices=[
                            ("appointment_award", "Appointment award"),
                            ("referral_settlement", "Referral settlement"),
                        ],
                        max_length=30,
                        verbose_name="kind",
                    ),
                ),
                ("customer_id", models.CharField(max_length=64, verbose_name="customer")),
                ("reference", models.CharField(max_length=64, verbose_name="reference")),
                ("result", models.JSONField(default=dict, verbose_name="result")),
                ("processed_at", models.DateTimeField(auto_now_add=True, verbose_name="processed at")),
            ],
            options={
                "verbose_name": "processed event",
                "verbose_name_plural": "processed events",
                "db_table": "punchman_processed_event",
                "indexes": [
                    models.Index(fields=["kind", "processed_at"], name="punchman_pr_kind_6b1f0e_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("kind", "customer_id", "reference"),
                        name="punchman_unique_processed_event",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="ReferralCode",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("customer_id", models.CharField(db_index=True, max_length=64, verbose_name="customer")),
                (
                    "code",
                    models.CharField(
                        help_text="Uppercase alphanumeric (ex: K7Q2XD)",
                        max_length=20,
                        unique=True,
                        verbose_name="code",
                    ),
                ),
                ("uses_count", models.PositiveIntegerField(default=0, verbose_name="uses")),
                (
                    "max_uses",
                    models.PositiveIntegerField(
                        blank=True,
                        help_text="Empty = unlimited",
                        null=True,
                        verbose_name="max uses",
                    ),
                ),
                ("is_active", models.BooleanField(default=True, verbose_name="active")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
            ],
            options={
                "verbose_name": "referral code",
                "verbose_name_plural": "referral codes",
                "db_table": "punchman_referral_code",
                "ordering": ["-created_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("max_uses__isnull", True), ("uses_count__lte", models.F("max_uses")), _connector="OR"),
                        name="punchman_referral_code_max_uses",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Referral",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("referrer_id", models.CharField(db_index=True, max_length=64, verbose_name="referrer")),
                ("referee_id", models.CharField(max_length=64, unique=True, verbose_name="referee")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("completed", "Completed"),
                            ("expired", "Expired"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=20,
                        verbose_name="status",
                    ),
                ),
                ("referrer_bonus_awarded", models.BooleanField(default=False, verbose_name="referrer bonus awarded")),
                ("referee_bonus_awarded", models.BooleanField(default=False, verbose_name="referee bonus awarded")),
                ("completed_at", models.DateTimeField(blank=True, null=True, verbose_name="completed at")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="created at")),
                (
                    "referral_code",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="referrals",
                        to="punchman.referralcode",
                        verbose_name="referral code",
                    ),
                ),
            ],
            options={
                "verbose_name": "referral",
                "verbose_name_plural": "referrals",
                "db_table": "punchman_referral",
                "ordering": ["-created_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("referrer_id", models.F("referee_id")), _negated=True),
                        name="punchman_referrer_not_referee",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="LoyaltyPunch",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("customer_id", models.CharField(db_index=True, max_length=64, verbose_name="customer")),
                ("appointment_id", models.CharField(blank=True, max_length=64, null=True, verbose_name="appointment")),
                ("amount", models.PositiveSmallIntegerField(default=1, editable=False, verbose_name="amount")),
                (
                    "cycle_number",
                    models.PositiveIntegerField(help_text="Card this punch counts toward", verbose_name="cycle"),
                ),
                (
                    "source",
                    models.CharField(
                        choices=[
                            ("service_completion", "Service completion"),
                            ("first_visit_bonus", "First visit bonus"),
                            ("referral_referrer", "Referral (referrer)"),
                            ("referral_referee", "Referral (referee)"),
                        ],
                        max_length=30,
                        verbose_name="source",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="created at")),
                (
                    "account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="punches",
                        to="punchman.loyaltyaccount",
                        verbose_name="account",
                    ),
                ),
            ],
            options={
                "verbose_name": "punch",
                "verbose_name_plural": "punches",
                "db_table": "punchman_punch",
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(fields=["customer_id", "source"], name="punchman_pu_custome_4c2d8a_idx"),
                    models.Index(fields=["account", "-created_at"], name="punchman_pu_account_9e7b31_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("source", "service_completion")),
                        fields=("customer_id", "appointment_id"),
                        name="punchman_unique_completion_punch",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="LoyaltyRedemption",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("customer_id", models.CharField(db_index=True, max_length=64, verbose_name="customer")),
                ("cycle_number", models.PositiveIntegerField(verbose_name="cycle")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("redeemed", "Redeemed"),
                            ("expired", "Expired"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=20,
                        verbose_name="status",
                    ),
                ),
                (
                    "earned_at",
                    models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name="earned at"),
                ),
                ("expires_at", models.DateTimeField(blank=True, null=True, verbose_name="expires at")),
                ("redeemed_at", models.DateTimeField(blank=True, null=True, verbose_name="redeemed at")),
                (
                    "consumed_by_appointment_id",
                    models.CharField(blank=True, max_length=64, null=True, verbose_name="redeemed on appointment"),
                ),
                (
                    "redemption_value",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Discount applied when redeemed",
                        max_digits=10,
                        null=True,
                        verbose_name="redemption value",
                    ),
                ),
                (
                    "account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="redemptions",
                        to="punchman.loyaltyaccount",
                        verbose_name="account",
                    ),
                ),
            ],
            options={
                "verbose_name": "reward",
                "verbose_name_plural": "rewards",
                "db_table": "punchman_redemption",
                "ordering": ["earned_at", "id"],
                "indexes": [
                    models.Index(fields=["customer_id", "status", "earned_at"], name="punchman_re_custome_0a5f42_idx"),
                    models.Index(fields=["status", "expires_at"], name="punchman_re_status_7d13c9_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("account", "cycle_number"),
                        name="punchman_unique_reward_per_cycle",
                    ),
                ],
            },
        ),
    ]
