"""
URL configuration for the print shop backend.

Every app contributes its routes under the versioned ``api/v1/`` prefix.
See https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""
from django.contrib import admin
from django.urls import path, include

admin.site.site_header = "Print Shop Management Admin"
admin.site.site_title = "Print Shop Admin Portal"
admin.site.index_title = "Print Shop Administration"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('backend.core.urls')),
    path('api/v1/', include('backend.parties.urls')),
    path('api/v1/', include('backend.catalog.urls')),
    path('api/v1/', include('backend.invoicing.urls')),
    path('api/v1/', include('backend.jobs.urls')),
    path('api/v1/', include('backend.portal.urls')),
    path('api/v1/', include('backend.sales.urls')),
    path('api/v1/', include('backend.timesheets.urls')),
    path('api/v1/', include('backend.reports.urls')),
]
