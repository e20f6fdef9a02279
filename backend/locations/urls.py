from django.urls import path
from .views import service_center_list_create, service_center_detail

urlpatterns = [
    path('service-centers/', service_center_list_create, name='service-center-list-create'),
    path('service-centers/<int:pk>/', service_center_detail, name='service-center-detail'),
]
