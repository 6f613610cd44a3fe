"""
URL configuration for core project.
"""
from django.contrib import admin
from django.urls import path
from ninja import NinjaAPI
from employees.api import router as employees_router
from surveys.api import router as surveys_router
from reconciliation.api import router as reconciliation_router

# Initialize Ninja API
api = NinjaAPI(
    title="Survey Reconciliation API",
    version="1.0.0",
    description="Employee roster, survey responses and their reconciliation"
)

# Register routers
api.add_router("", employees_router)  # Employees at /api/employees
api.add_router("", surveys_router)  # Responses at /api/survey-responses
api.add_router("", reconciliation_router)  # /api/reconciliation/...

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/', api.urls),  # All API endpoints under /api/
]
