"""
URL configuration for the notification delivery service.

The delivery pipeline is driven by signals and Celery workers, not HTTP.
The only routes are the Django admin, used by support staff to inspect
notification records and delivery batches.

URL Structure:
    /admin/    - Django admin interface
"""

from django.contrib import admin
from django.urls import path

urlpatterns = [
    path("admin/", admin.site.urls),
]

admin.site.site_header = "FamilyHub Notifications"
admin.site.site_title = "Notifications Admin"
admin.site.index_title = "Delivery pipeline"
