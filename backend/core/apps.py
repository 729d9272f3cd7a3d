from django.apps import AppConfig


class CoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "core"
    verbose_name = "Election core"

    def ready(self):
        # Connects the cached vote_count receiver.
        from . import candidates  # noqa: F401
