"""
Initial migration of the ticketing domain.

Creates the tables:
- events, tickets, user_tickets, financial_transactions
- venues, bookmarks, user_bookmarks, users, event_stats
"""

from django.db import migrations, models
import django.db.models.expressions


STATUS_CHOICES = [
    ('confirmed', 'Confirmed'),
    ('used', 'Used'),
    ('cancelled', 'Cancelled'),
    ('refunded', 'Refunded'),
    ('deleted', 'Deleted'),
]


def ticket_fields():
    """Columns shared by tickets and user_tickets."""
    return [
        ('id', models.CharField(max_length=36, primary_key=True, serialize=False)),
        ('event_id', models.CharField(db_index=True, max_length=64)),
        ('user_id', models.CharField(db_index=True, max_length=128)),
        ('ticket_number', models.CharField(blank=True, max_length=32, null=True)),
        ('event_name', models.CharField(blank=True, max_length=200, null=True)),
        ('venue', models.CharField(blank=True, max_length=200, null=True)),
        ('venue_id', models.CharField(blank=True, max_length=200, null=True)),
        ('start_time', models.DateTimeField(blank=True, null=True)),
        ('total_price', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
        ('purchase_price', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
        ('price_per_ticket', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
        ('purchase_date', models.DateTimeField(blank=True, null=True)),
        ('status', models.CharField(blank=True, choices=STATUS_CHOICES, max_length=20, null=True)),
        ('is_used', models.BooleanField(blank=True, null=True)),
        ('qr_code', models.TextField(blank=True, null=True)),
        ('qr_code_signature', models.CharField(blank=True, max_length=64, null=True)),
        ('used_at', models.DateTimeField(blank=True, null=True)),
        ('scanned_by', models.CharField(blank=True, max_length=128, null=True)),
        ('scanned_by_email', models.CharField(blank=True, max_length=254, null=True)),
        ('cancelled_at', models.DateTimeField(blank=True, null=True)),
        ('cancel_reason', models.TextField(blank=True, null=True)),
        ('refunded_at', models.DateTimeField(blank=True, null=True)),
        ('refund_amount', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
        ('transferred_from', models.CharField(blank=True, max_length=128, null=True)),
        ('transferred_at', models.DateTimeField(blank=True, null=True)),
        ('deleted_at', models.DateTimeField(blank=True, null=True)),
        ('migrated_phase4', models.BooleanField(default=False)),
        ('updated_at', models.DateTimeField(blank=True, null=True)),
    ]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        # =================================================================
        # Table: events
        # =================================================================
        migrations.CreateModel(
            name='EventModel',
            fields=[
                ('id', models.CharField(max_length=64, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=200)),
                ('venue', models.CharField(blank=True, max_length=200, null=True)),
                ('venue_id', models.CharField(blank=True, db_index=True, max_length=200, null=True)),
                ('max_tickets', models.PositiveIntegerField(default=0)),
                ('tickets_sold', models.PositiveIntegerField(default=0)),
                ('price', models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ('date', models.DateTimeField(blank=True, null=True)),
                ('start_time', models.DateTimeField(blank=True, null=True)),
                ('end_time', models.DateTimeField(blank=True, null=True)),
                ('status', models.CharField(blank=True, max_length=20, null=True)),
                ('category', models.CharField(blank=True, max_length=100, null=True)),
                ('tags', models.JSONField(blank=True, null=True)),
                ('organizer_id', models.CharField(blank=True, max_length=128, null=True)),
                ('created_by', models.CharField(blank=True, max_length=128, null=True)),
                ('migrated_venue_id', models.BooleanField(default=False)),
                ('migrated_phase4', models.BooleanField(default=False)),
                ('updated_at', models.DateTimeField(blank=True, null=True)),
            ],
            options={
                'verbose_name': 'Event',
                'verbose_name_plural': 'Events',
                'db_table': 'events',
                'constraints': [
                    models.CheckConstraint(
                        condition=models.Q(
                            ('tickets_sold__lte', django.db.models.expressions.F('max_tickets'))
                        ),
                        name='events_tickets_sold_within_capacity',
                    ),
                ],
            },
        ),

        # =================================================================
        # Tables: tickets / user_tickets
        # =================================================================
        migrations.CreateModel(
            name='TicketModel',
            fields=ticket_fields(),
            options={
                'verbose_name': 'Ticket',
                'verbose_name_plural': 'Tickets',
                'db_table': 'tickets',
                'indexes': [
                    models.Index(
                        fields=['event_id', 'user_id', 'status'],
                        name='tickets_event_user_status_idx',
                    ),
                ],
                'constraints': [
                    models.UniqueConstraint(
                        condition=models.Q(('status', 'confirmed')),
                        fields=('event_id', 'user_id'),
                        name='tickets_one_confirmed_per_user_event',
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name='UserTicketModel',
            fields=ticket_fields(),
            options={
                'verbose_name': 'User ticket',
                'verbose_name_plural': 'User tickets',
                'db_table': 'user_tickets',
            },
        ),

        # =================================================================
        # Table: financial_transactions
        # =================================================================
        migrations.CreateModel(
            name='FinancialTransactionModel',
            fields=[
                ('id', models.CharField(max_length=36, primary_key=True, serialize=False)),
                ('type', models.CharField(default='ticket_purchase', max_length=32)),
                ('user_id', models.CharField(db_index=True, max_length=128)),
                ('event_id', models.CharField(db_index=True, max_length=64)),
                ('ticket_id', models.CharField(db_index=True, max_length=36)),
                ('amount', models.DecimalField(decimal_places=2, max_digits=10)),
                ('timestamp', models.DateTimeField()),
                ('status', models.CharField(default='completed', max_length=20)),
            ],
            options={
                'db_table': 'financial_transactions',
                'ordering': ['-timestamp'],
            },
        ),

        # =================================================================
        # Migration targets: venues, bookmarks, users, event_stats
        # =================================================================
        migrations.CreateModel(
            name='VenueModel',
            fields=[
                ('id', models.CharField(max_length=200, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=200)),
                ('admins', models.JSONField(blank=True, default=list)),
                ('sub_admins', models.JSONField(blank=True, default=list)),
                ('active', models.BooleanField(default=True)),
                ('event_ids', models.JSONField(blank=True, default=list)),
                ('event_count', models.PositiveIntegerField(default=0)),
                ('created_at', models.DateTimeField(blank=True, null=True)),
                ('created_by', models.CharField(blank=True, max_length=128, null=True)),
                ('migrated', models.BooleanField(default=False)),
                ('address', models.CharField(blank=True, max_length=300, null=True)),
                ('city', models.CharField(blank=True, max_length=100, null=True)),
                ('capacity', models.PositiveIntegerField(blank=True, null=True)),
                ('image_url', models.URLField(blank=True, null=True)),
                ('coordinates', models.JSONField(blank=True, null=True)),
                ('contact_email', models.CharField(blank=True, max_length=254, null=True)),
                ('website', models.CharField(blank=True, max_length=200, null=True)),
                ('migrated_phase4', models.BooleanField(default=False)),
                ('updated_at', models.DateTimeField(blank=True, null=True)),
            ],
            options={
                'db_table': 'venues',
            },
        ),
        migrations.CreateModel(
            name='BookmarkModel',
            fields=[
                ('id', models.CharField(max_length=200, primary_key=True, serialize=False)),
                ('user_id', models.CharField(db_index=True, max_length=128)),
                ('event_id', models.CharField(db_index=True, max_length=64)),
                ('bookmarked_at', models.DateTimeField(blank=True, null=True)),
                ('migrated', models.BooleanField(default=False)),
            ],
            options={
                'db_table': 'bookmarks',
            },
        ),
        migrations.CreateModel(
            name='LegacyBookmarkModel',
            fields=[
                ('id', models.CharField(max_length=200, primary_key=True, serialize=False)),
                ('user_id', models.CharField(db_index=True, max_length=128)),
                ('event_id', models.CharField(blank=True, max_length=64, null=True)),
                ('bookmarked_at', models.DateTimeField(blank=True, null=True)),
            ],
            options={
                'db_table': 'user_bookmarks',
            },
        ),
        migrations.CreateModel(
            name='UserProfileModel',
            fields=[
                ('id', models.CharField(max_length=128, primary_key=True, serialize=False)),
                ('email', models.CharField(blank=True, max_length=254, null=True)),
                ('display_name', models.CharField(blank=True, max_length=200, null=True)),
                ('phone_number', models.CharField(blank=True, max_length=32, null=True)),
                ('stripe_customer_id', models.CharField(blank=True, max_length=64, null=True)),
                ('profile_image_url', models.URLField(blank=True, null=True)),
                ('preferences', models.JSONField(blank=True, null=True)),
                ('migrated_phase4', models.BooleanField(default=False)),
                ('updated_at', models.DateTimeField(blank=True, null=True)),
            ],
            options={
                'db_table': 'users',
            },
        ),
        migrations.CreateModel(
            name='EventStatsModel',
            fields=[
                ('id', models.CharField(max_length=64, primary_key=True, serialize=False)),
                ('total_bookmarks', models.PositiveIntegerField(default=0)),
                ('total_tickets_sold', models.PositiveIntegerField(default=0)),
                ('tickets_used', models.PositiveIntegerField(default=0)),
                ('total_revenue', models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ('tickets_sold_today', models.PositiveIntegerField(default=0)),
                ('trending_score', models.FloatField(default=0.0)),
                ('last_updated', models.DateTimeField(blank=True, null=True)),
            ],
            options={
                'db_table': 'event_stats',
            },
        ),
    ]
