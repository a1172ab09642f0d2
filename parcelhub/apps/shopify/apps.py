from django.apps import AppConfig


class ShopifyConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.shopify'
    verbose_name = 'Shopify'

    def ready(self):
        from . import signals  # noqa: F401
