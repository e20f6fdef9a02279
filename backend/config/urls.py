"""
URL configuration for the service-center parts workflow backend.

Every app mounts its routes under /api/v1/.
"""
from django.contrib import admin
from django.urls import path, include, re_path
from django.conf import settings
from django.views.static import serve

admin.site.site_header = "Service Center Parts Workflow Admin"
admin.site.site_title = "Parts Workflow Admin Portal"
admin.site.index_title = "Central Inventory Administration"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('backend.core.urls')),
    path('api/v1/', include('backend.locations.urls')),
    path('api/v1/', include('backend.catalog.urls')),
    path('api/v1/', include('backend.inventory.urls')),
    path('api/v1/', include('backend.jobcards.urls')),
    path('api/v1/', include('backend.purchasing.urls')),
    path('api/v1/', include('backend.parts_issues.urls')),
    re_path(r'^media/(?P<path>.*)$', serve, {'document_root': settings.MEDIA_ROOT}),
    re_path(r'^static/(?P<path>.*)$', serve, {'document_root': settings.STATIC_ROOT}),
]
