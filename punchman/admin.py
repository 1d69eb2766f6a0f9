"""Punchman admin.

Ledger rows (punches, rewards, referrals, receipts) are read-only here:
they are written by the services only. Staff can edit the loyalty settings
sections and a customer's threshold override, and deactivate referral codes.
"""

from django.contrib import admin
from django.utils.html import format_html

from punchman.models import (
    LoyaltyAccount,
    LoyaltyPunch,
    LoyaltyRedemption,
    LoyaltySetting,
    ProcessedEvent,
    Referral,
    ReferralCode,
)


class ReadOnlyAdminMixin:
    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# ===========================================
# Settings
# ===========================================


@admin.register(LoyaltySetting)
class LoyaltySettingAdmin(admin.ModelAdmin):
    list_display = ["key", "updated_at", "updated_by"]
    readonly_fields = ["updated_at", "updated_by"]

    def save_model(self, request, obj, form, change):
        obj.updated_by = request.user.get_username()
        super().save_model(request, obj, form, change)


# ===========================================
# Accounts
# ===========================================


class LoyaltyPunchInline(ReadOnlyAdminMixin, admin.TabularInline):
    model = LoyaltyPunch
    extra = 0
    fields = ["source", "cycle_number", "appointment_id", "created_at"]
    readonly_fields = fields
    ordering = ["-created_at"]
    max_num = 20


class LoyaltyRedemptionInline(ReadOnlyAdminMixin, admin.TabularInline):
    model = LoyaltyRedemption
    extra = 0
    fields = ["cycle_number", "status", "earned_at", "expires_at", "redeemed_at", "redemption_value"]
    readonly_fields = fields


@admin.register(LoyaltyAccount)
class LoyaltyAccountAdmin(admin.ModelAdmin):
    list_display = [
        "customer_id",
        "card_progress",
        "cycle_number",
        "lifetime_earned",
        "lifetime_redeemed",
        "total_visits",
        "threshold_override",
        "updated_at",
    ]
    search_fields = ["customer_id"]
    fields = [
        "customer_id",
        "current_punches",
        "cycle_number",
        "lifetime_earned",
        "lifetime_redeemed",
        "total_visits",
        "threshold_override",
        "version",
        "created_at",
        "updated_at",
    ]
    readonly_fields = [name for name in fields if name != "threshold_override"]
    inlines = [LoyaltyRedemptionInline, LoyaltyPunchInline]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def save_model(self, request, obj, form, change):
        # Versioned write; may issue rewards if the card is already full
        from punchman.services.account import AccountService

        AccountService().set_threshold_override(obj.customer_id, obj.threshold_override)

    def card_progress(self, obj):
        if obj.threshold_override:
            return format_html("{} / {}", obj.current_punches, obj.threshold_override)
        return obj.current_punches

    card_progress.short_description = "Punches"


# ===========================================
# Rewards
# ===========================================


@admin.register(LoyaltyRedemption)
class LoyaltyRedemptionAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = [
        "customer_id",
        "cycle_number",
        "status_badge",
        "earned_at",
        "expires_at",
        "redeemed_at",
        "redemption_value",
    ]
    list_filter = ["status"]
    search_fields = ["customer_id", "consumed_by_appointment_id"]
    date_hierarchy = "earned_at"

    def status_badge(self, obj):
        colors = {
            "pending": "#0d6efd",
            "redeemed": "#198754",
            "expired": "#6c757d",
        }
        return format_html(
            '<span style="background:{}; color:#fff; padding:2px 8px; '
            'border-radius:3px; font-size:11px;">{}</span>',
            colors.get(obj.status, "#6c757d"),
            obj.get_status_display(),
        )

    status_badge.short_description = "Status"


@admin.register(LoyaltyPunch)
class LoyaltyPunchAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ["created_at", "customer_id", "source", "cycle_number", "appointment_id"]
    list_filter = ["source"]
    search_fields = ["customer_id", "appointment_id"]
    date_hierarchy = "created_at"


# ===========================================
# Referrals
# ===========================================


@admin.register(ReferralCode)
class ReferralCodeAdmin(admin.ModelAdmin):
    list_display = ["code", "customer_id", "uses_display", "is_active", "created_at"]
    list_filter = ["is_active"]
    search_fields = ["code", "customer_id"]
    fields = ["code", "customer_id", "uses_count", "max_uses", "is_active", "created_at"]
    readonly_fields = ["code", "customer_id", "uses_count", "max_uses", "created_at"]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def get_readonly_fields(self, request, obj=None):
        # Deactivation is one-way
        if obj is not None and not obj.is_active:
            return [*self.readonly_fields, "is_active"]
        return self.readonly_fields

    def save_model(self, request, obj, form, change):
        if obj.is_active:
            return
        from punchman.services.referral import ReferralService

        ReferralService().deactivate_code(obj.customer_id)

    def uses_display(self, obj):
        if obj.max_uses is None:
            return f"{obj.uses_count}"
        return f"{obj.uses_count}/{obj.max_uses}"

    uses_display.short_description = "Uses"


@admin.register(Referral)
class ReferralAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = [
        "referrer_id",
        "referee_id",
        "status",
        "referrer_bonus_awarded",
        "referee_bonus_awarded",
        "created_at",
        "completed_at",
    ]
    list_filter = ["status"]
    search_fields = ["referrer_id", "referee_id", "referral_code__code"]


@admin.register(ProcessedEvent)
class ProcessedEventAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ["kind", "customer_id", "reference", "processed_at"]
    list_filter = ["kind"]
    search_fields = ["customer_id", "reference"]
