from django.apps import AppConfig


class JobcardsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'backend.jobcards'
