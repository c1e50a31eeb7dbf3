"""
Fixtures of the Django adapter tests.

The database is the in-memory SQLite configured in tests/conftest.py;
tests that touch it use the ``db`` fixture or ``pytest.mark.django_db``.
"""

from datetime import timedelta
import json

import pytest


@pytest.fixture
def event_factory(db, future_start, ticket_price):
    """Create EventModel rows for tests."""
    from src.adapters.django_app.ticketing.models import EventModel

    def create_event(**kwargs):
        defaults = {
            'id': 'evt-001',
            'name': 'Friday Jazz Night',
            'venue': 'The Grand Hall',
            'venue_id': 'the_grand_hall',
            'max_tickets': 100,
            'tickets_sold': 0,
            'price': ticket_price,
            'start_time': future_start,
        }
        defaults.update(kwargs)
        return EventModel.objects.create(**defaults)

    return create_event


@pytest.fixture
def frozen_clock(now):
    """Services of the application container see ``now`` as the current time."""
    from dependency_injector import providers
    from src.config.container import get_container

    container = get_container()
    container.services.clock.override(providers.Object(lambda: now))
    yield container
    container.services.clock.reset_override()


@pytest.fixture
def tonight_event(event_factory, frozen_clock, now):
    """Event starting later today (scannable at ``now``)."""
    return event_factory(id='evt-tonight', start_time=now + timedelta(hours=8))


@pytest.fixture
def identity_provider():
    from django.conf import settings
    from src.adapters.django_app.ticketing.auth import SignedTokenIdentityProvider
    return SignedTokenIdentityProvider(key=settings.IDENTITY_TOKEN_KEY, max_age=3600)


@pytest.fixture
def auth_header(identity_provider):
    """Build the Authorization header for raw claims."""
    def build(**claims):
        return {'HTTP_AUTHORIZATION': f"Bearer {identity_provider.issue_token(claims)}"}
    return build


@pytest.fixture
def api(client, frozen_clock):
    """POST/GET JSON helpers over the Django test client (services on the frozen clock)."""
    class Api:
        def post(self, url, data=None, **headers):
            return client.post(
                url,
                data=json.dumps(data) if data is not None else '',
                content_type='application/json',
                **headers,
            )

        def get(self, url, **headers):
            return client.get(url, **headers)

    return Api()
