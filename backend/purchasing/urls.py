from django.urls import path
from .views import (
    purchase_order_list_create, purchase_order_detail,
    purchase_order_approve, purchase_order_reject,
)

urlpatterns = [
    path('purchase-orders/', purchase_order_list_create, name='purchase-order-list-create'),
    path('purchase-orders/<int:pk>/', purchase_order_detail, name='purchase-order-detail'),
    path('purchase-orders/<int:pk>/approve/', purchase_order_approve, name='purchase-order-approve'),
    path('purchase-orders/<int:pk>/reject/', purchase_order_reject, name='purchase-order-reject'),
]
