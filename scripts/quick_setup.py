#!/usr/bin/env python
"""
Quick setup for local development.

This script:
1. Configures Django settings
2. Creates the SQLite database
3. Runs the migrations
4. Seeds legacy shaped sample data (optional)
5. Prints bearer tokens for a site admin and a regular user

Usage:
    python scripts/quick_setup.py
    python scripts/quick_setup.py --with-sample-data
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
import argparse
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def setup_django():
    """Configure Django for standalone use."""
    os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'src.config.settings')
    os.environ.setdefault('QR_SECRET', 'dev-qr-secret')

    import django
    django.setup()


def run_migrations():
    from django.core.management import call_command

    print("📦 Running migrations...")
    call_command('migrate', verbosity=1)
    print("✅ Migrations done!")


def create_sample_data():
    """
    Seed events the way the legacy data looks: free text venues, no
    venue_id, per-user bookmarks. Running the data migrations afterwards
    links everything up.
    """
    from src.adapters.django_app.ticketing.models import EventModel, LegacyBookmarkModel

    now = datetime.now(timezone.utc)
    sample_events = [
        {'id': 'evt-001', 'name': 'Friday Jazz Night', 'venue': 'The Grand Hall',
         'max_tickets': 200, 'price': Decimal('35.00'), 'date': now + timedelta(days=3)},
        {'id': 'evt-002', 'name': 'Indie Showcase', 'venue': 'the grand hall!',
         'max_tickets': 150, 'price': Decimal('20.00'), 'date': now + timedelta(days=10)},
        {'id': 'evt-003', 'name': 'Techno Marathon', 'venue': 'Warehouse 9',
         'max_tickets': 500, 'price': Decimal('45.50'), 'date': now + timedelta(hours=6)},
        {'id': 'evt-004', 'name': 'Sold Out Classic', 'venue': 'Warehouse 9',
         'max_tickets': 2, 'tickets_sold': 2, 'price': Decimal('60.00'), 'date': now + timedelta(days=1)},
    ]

    print("📝 Creating sample events...")
    for data in sample_events:
        EventModel.objects.update_or_create(id=data['id'], defaults=data)
        print(f"   ✓ {data['name']} @ {data['venue']}")

    for user_id, event_id in [('user-001', 'evt-001'), ('user-001', 'evt-003'), ('user-002', 'evt-001')]:
        LegacyBookmarkModel.objects.update_or_create(
            id=f"{user_id}:{event_id}",
            defaults={'user_id': user_id, 'event_id': event_id, 'bookmarked_at': now},
        )

    print(f"✅ {len(sample_events)} events created!")


def check_connection():
    from src.adapters.django_app.shared.database import check_database_connection

    print("🔍 Checking database connection...")
    status = check_database_connection()
    if status['healthy']:
        print("✅ Connection OK!")
        return True
    print(f"❌ Connection error: {status.get('error')}")
    return False


def show_info():
    from django.conf import settings
    from src.config.container import get_container

    provider = get_container().identity_provider()

    print("\n" + "=" * 60)
    print("📊 Setup information")
    print("=" * 60)
    print(f"  Database Engine: {settings.DATABASES['default']['ENGINE']}")
    print(f"  Database Name: {settings.DATABASES['default']['NAME']}")
    print(f"  Debug Mode: {settings.DEBUG}")
    print("=" * 60)
    print("\n🔑 Bearer tokens:")
    print(f"   siteAdmin: {provider.issue_token({'uid': 'admin-001', 'role': 'siteAdmin'})}")
    print(f"   user:      {provider.issue_token({'uid': 'user-001', 'role': 'user'})}")
    print("\n🚀 Next steps:")
    print("   1. python manage.py runserver")
    print("   2. POST http://localhost:8000/api/migrations/create_venues/run/")
    print("   3. POST http://localhost:8000/api/tickets/purchase/ {\"eventId\": \"evt-001\"}")
    print("\n")


def main():
    parser = argparse.ArgumentParser(description='Quick setup for development')
    parser.add_argument(
        '--with-sample-data',
        action='store_true',
        help='Create sample data'
    )
    parser.add_argument(
        '--check-only',
        action='store_true',
        help='Only check the database connection'
    )

    args = parser.parse_args()

    print("\n" + "=" * 60)
    print("🔧 Burner Ticketing - Quick Setup")
    print("=" * 60 + "\n")

    setup_django()

    if args.check_only:
        check_connection()
        return

    if not check_connection():
        print("\n⚠️  Make sure the database is running.")
        print("   To use SQLite, unset DATABASE_URL.")
        return

    run_migrations()

    if args.with_sample_data:
        create_sample_data()

    show_info()


if __name__ == '__main__':
    main()
