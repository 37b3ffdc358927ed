"""
URL configuration for backend project.

The admin API lives under /api/v1/admin/, the public storefront reads under /api/v1/.
"""
from django.contrib import admin
from django.urls import path, include

admin.site.site_header = "Storefront Admin Panel"
admin.site.site_title = "Storefront Admin Portal"
admin.site.index_title = "Storefront content"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('backend.core.urls')),
    path('api/v1/', include('backend.catalog.urls')),
    path('api/v1/', include('backend.storefront.urls')),
]
