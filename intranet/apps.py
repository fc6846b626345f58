from django.apps import AppConfig


class IntranetConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'intranet'
    verbose_name = 'Corporate network'
