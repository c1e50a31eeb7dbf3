"""
Pytest configuration shared by every test.

- Django settings for an in-memory SQLite database (pytest-django)
- Markers (slow, integration)
- Fixtures shared by the core and adapter suites
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
import os
import sys

import pytest

# Project root on the path so ``src`` imports resolve
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


TEST_QR_SECRET = 'test-qr-secret'
TEST_IDENTITY_KEY = 'test-identity-key'


def pytest_configure(config):
    """Configure Django and register the custom markers."""
    import django
    from django.conf import settings

    if not settings.configured:
        settings.configure(
            DEBUG=True,
            SECRET_KEY='test-secret-key',
            DATABASES={
                'default': {
                    'ENGINE': 'django.db.backends.sqlite3',
                    'NAME': ':memory:',
                }
            },
            INSTALLED_APPS=[
                'django.contrib.contenttypes',
                'src.adapters.django_app.ticketing.apps.TicketingConfig',
            ],
            ROOT_URLCONF='src.config.urls',
            MIDDLEWARE=[],
            DEFAULT_AUTO_FIELD='django.db.models.BigAutoField',
            USE_TZ=True,
            TIME_ZONE='UTC',
            QR_SECRET=TEST_QR_SECRET,
            QR_SIGNATURE_LENGTH=16,
            IDENTITY_TOKEN_KEY=TEST_IDENTITY_KEY,
            IDENTITY_TOKEN_MAX_AGE=3600,
            PURCHASE_TRANSACTION_MAX_ATTEMPTS=5,
            MIGRATION_BATCH_SIZE=500,
            EVENT_PUBLISHER_MODE='memory',
            CELERY_BROKER_URL='memory://',
            CELERY_RESULT_BACKEND='cache+memory://',
            CELERY_TASK_ALWAYS_EAGER=True,
        )
        django.setup()

    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --run-integration is given."""
    if config.getoption("--run-integration", default=False):
        return

    skip_integration = pytest.mark.skip(reason="Need --run-integration option to run")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


def pytest_addoption(parser):
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration tests"
    )


# =============================================================================
# Shared fixtures
# =============================================================================

@pytest.fixture(autouse=True)
def reset_container():
    """Every test starts with a fresh DI container."""
    from src.config.container import reset_container as reset
    reset()
    yield
    reset()


@pytest.fixture
def now():
    """A fixed 'now' at midday, so 'later today' stays on the same date."""
    return datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(now):
    return lambda: now


@pytest.fixture
def future_start(now):
    return now + timedelta(days=7)


@pytest.fixture
def ticket_price():
    return Decimal('25.00')
