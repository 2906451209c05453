from django.apps import AppConfig


class RidersApiConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "riders_api"
    verbose_name = "Rider dispatch"
