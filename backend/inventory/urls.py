from django.urls import path
from .views import central_stock_list, stock_adjustment_list_create

urlpatterns = [
    path('central-stock/', central_stock_list, name='central-stock-list'),
    path('stock-adjustments/', stock_adjustment_list_create, name='stock-adjustment-list-create'),
]
