"""
Project configuration of the Burner ticketing backend.

Modules:
- settings: Django settings
- urls: Root URL configuration
- wsgi: WSGI application
- celery: Celery app for asynchronous tasks
- container: Dependency Injection container
"""

# Load the Celery app with Django so shared_task binds to it
from .celery import app as celery_app

__all__ = ('celery_app',)
