from django.apps import AppConfig


class CouriersConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.couriers'
    verbose_name = 'Couriers'
