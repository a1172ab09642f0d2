from django.urls import path

from .views import OrderDetailView, OrderRefreshStatusesView, OrderRetryDispatchView, OrdersView

urlpatterns = [
    path('orders/', OrdersView.as_view(), name='orders'),
    path('orders/refresh-statuses/', OrderRefreshStatusesView.as_view(), name='orders-refresh-statuses'),
    path('orders/<int:id>/', OrderDetailView.as_view(), name='orders-detail'),
    path('orders/<int:id>/retry-dispatch/', OrderRetryDispatchView.as_view(), name='orders-retry-dispatch'),
]
