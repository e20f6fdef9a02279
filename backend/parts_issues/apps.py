from django.apps import AppConfig


class PartsIssuesConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'backend.parts_issues'
    verbose_name = 'Parts Issues'
