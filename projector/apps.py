from django.apps import AppConfig


class ProjectorConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "projector"
    verbose_name = "Projector Display"
