from django.apps import AppConfig


class CasePackagesConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "drmp_core.case_packages"
