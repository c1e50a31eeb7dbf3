"""
Django app configuration of the ticketing domain.
"""

from django.apps import AppConfig


class TicketingConfig(AppConfig):
    """Ticketing app: events, tickets, migrations."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'src.adapters.django_app.ticketing'
    label = 'ticketing'
    verbose_name = 'Ticketing'
