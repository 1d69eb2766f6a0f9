from django.apps import AppConfig


class PunchmanConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "punchman"
    verbose_name = "Punchman - Loyalty Punch Cards"

    def ready(self):
        # Settings writes invalidate the cached config snapshot
        from punchman import config  # noqa: F401
