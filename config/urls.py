"""
URL configuration for the Tasks project.
"""
from django.contrib import admin
from django.urls import include, path
from ninja import NinjaAPI

from apps.core.errors import register_exception_handlers
from apps.identity.auth import JWTBearer

api = NinjaAPI(
    title="Tasks API",
    version="1.0.0",
    description="Personal to-do lists for authenticated users",
    docs_url="/docs",
    auth=JWTBearer(),
)
register_exception_handlers(api)

from apps.tasks.api import router as tasks_router

api.add_router("/tasks", tasks_router)

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/', api.urls),
    path('', include('apps.web.urls')),
]
