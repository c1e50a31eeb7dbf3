"""
Root URL configuration.

Structure:
- /api/ - Ticketing JSON API (tickets and migrations)
- /health/ - Database health check
"""

from django.http import JsonResponse
from django.urls import include, path

from src.adapters.django_app.shared.database import check_database_connection


def health(request):
    status = check_database_connection()
    return JsonResponse(status, status=200 if status['healthy'] else 503)


urlpatterns = [
    path('api/', include('src.adapters.django_app.ticketing.urls')),
    path('health/', health, name='health'),
]
