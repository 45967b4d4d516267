import os
from django.contrib import admin
from django.urls import path, include

# Admin URL path - can be rotated via environment variable
ADMIN_URL = os.getenv('ADMIN_URL', 'admin/')

urlpatterns = [
    path(ADMIN_URL, admin.site.urls),
    path('api/v1/', include('billing.api.urls')),
]
