from django.urls import path

from .views import ShopifyWebhookView

urlpatterns = [
    path('webhooks/shopify/', ShopifyWebhookView.as_view(), name='shopify-webhook'),
]
