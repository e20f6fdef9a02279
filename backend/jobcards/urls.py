from django.urls import path
from .views import job_card_list_create, job_card_detail

urlpatterns = [
    path('job-cards/', job_card_list_create, name='job-card-list-create'),
    path('job-cards/<int:pk>/', job_card_detail, name='job-card-detail'),
]
