from django.urls import path

from .views import AdminCreditAdjustmentView, CreditAccountView, CreditTransactionsView

urlpatterns = [
    path('credits/', CreditAccountView.as_view(), name='credits-account'),
    path('credits/transactions/', CreditTransactionsView.as_view(), name='credits-transactions'),
]

# Mounted under admin/ in config urls
admin_urlpatterns = [
    path('credits/<int:tenant_id>/', AdminCreditAdjustmentView.as_view(), name='admin-credits-adjust'),
]
