from django.urls import path
from .views import part_list_create, part_detail

urlpatterns = [
    path('parts/', part_list_create, name='part-list-create'),
    path('parts/<int:pk>/', part_detail, name='part-detail'),
]
