"""
Django models of the ticketing domain.

These models are ADAPTERS: they persist the entities defined in
src/core/ticketing/entities.py and the raw records reshaped by
src/core/data_migrations. Business rules stay in the core.

Tables:
- events: events and their inventory counter
- tickets / user_tickets: root ticket and purchaser mirror
- financial_transactions: append-only purchase audit trail
- venues, bookmarks, user_bookmarks, users, event_stats: records
  handled by the data migrations and the stats projection

References between tables are plain identifier columns (no foreign
keys), so migrations can process legacy rows whose references are
dangling.
"""

from django.db import models
from django.db.models import F, Q


class TicketStatusChoices(models.TextChoices):
    """Mirrors TicketStatus of the core."""
    CONFIRMED = 'confirmed', 'Confirmed'
    USED = 'used', 'Used'
    CANCELLED = 'cancelled', 'Cancelled'
    REFUNDED = 'refunded', 'Refunded'
    DELETED = 'deleted', 'Deleted'


class EventModel(models.Model):
    """
    Persisted event.

    Fields:
        max_tickets: Capacity
        tickets_sold: Running counter, changed only by the purchase transaction
        price: Price of one ticket
        venue: Free text venue name (legacy)
        venue_id: Normalized venue reference (backfilled by migration)
        date: Legacy start time, copied to start_time by migration
    """

    id = models.CharField(max_length=64, primary_key=True)
    name = models.CharField(max_length=200)
    venue = models.CharField(max_length=200, null=True, blank=True)
    venue_id = models.CharField(max_length=200, null=True, blank=True, db_index=True)

    max_tickets = models.PositiveIntegerField(default=0)
    tickets_sold = models.PositiveIntegerField(default=0)
    price = models.DecimalField(max_digits=10, decimal_places=2, default=0)

    date = models.DateTimeField(null=True, blank=True)
    start_time = models.DateTimeField(null=True, blank=True)
    end_time = models.DateTimeField(null=True, blank=True)

    status = models.CharField(max_length=20, null=True, blank=True)
    category = models.CharField(max_length=100, null=True, blank=True)
    tags = models.JSONField(null=True, blank=True)
    organizer_id = models.CharField(max_length=128, null=True, blank=True)
    created_by = models.CharField(max_length=128, null=True, blank=True)

    migrated_venue_id = models.BooleanField(default=False)
    migrated_phase4 = models.BooleanField(default=False)
    updated_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'events'
        verbose_name = 'Event'
        verbose_name_plural = 'Events'
        constraints = [
            models.CheckConstraint(
                condition=Q(tickets_sold__lte=F('max_tickets')),
                name='events_tickets_sold_within_capacity',
            ),
        ]

    def __str__(self):
        return f"{self.name} ({self.tickets_sold}/{self.max_tickets})"


class TicketFields(models.Model):
    """Columns shared by the root ticket table and its mirror."""

    id = models.CharField(max_length=36, primary_key=True)
    event_id = models.CharField(max_length=64, db_index=True)
    user_id = models.CharField(max_length=128, db_index=True)
    ticket_number = models.CharField(max_length=32, null=True, blank=True)
    event_name = models.CharField(max_length=200, null=True, blank=True)
    venue = models.CharField(max_length=200, null=True, blank=True)
    venue_id = models.CharField(max_length=200, null=True, blank=True)
    start_time = models.DateTimeField(null=True, blank=True)

    total_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    purchase_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    price_per_ticket = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    purchase_date = models.DateTimeField(null=True, blank=True)

    status = models.CharField(
        max_length=20,
        choices=TicketStatusChoices.choices,
        null=True,
        blank=True,
    )
    is_used = models.BooleanField(null=True, blank=True)
    qr_code = models.TextField(null=True, blank=True)
    qr_code_signature = models.CharField(max_length=64, null=True, blank=True)

    used_at = models.DateTimeField(null=True, blank=True)
    scanned_by = models.CharField(max_length=128, null=True, blank=True)
    scanned_by_email = models.CharField(max_length=254, null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancel_reason = models.TextField(null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)
    refund_amount = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    transferred_from = models.CharField(max_length=128, null=True, blank=True)
    transferred_at = models.DateTimeField(null=True, blank=True)
    deleted_at = models.DateTimeField(null=True, blank=True)

    migrated_phase4 = models.BooleanField(default=False)
    updated_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        abstract = True


class TicketModel(TicketFields):
    """
    Root ticket record.

    The partial unique constraint backs the one-confirmed-ticket-per
    (event, user) rule at the database level.
    """

    class Meta:
        db_table = 'tickets'
        verbose_name = 'Ticket'
        verbose_name_plural = 'Tickets'
        indexes = [
            models.Index(fields=['event_id', 'user_id', 'status'], name='tickets_event_user_status_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['event_id', 'user_id'],
                condition=Q(status='confirmed'),
                name='tickets_one_confirmed_per_user_event',
            ),
        ]

    def __str__(self):
        return f"[{self.ticket_number}] {self.event_name} ({self.status})"


class UserTicketModel(TicketFields):
    """Purchaser scoped mirror of TicketModel."""

    class Meta:
        db_table = 'user_tickets'
        verbose_name = 'User ticket'
        verbose_name_plural = 'User tickets'


class FinancialTransactionModel(models.Model):
    """Append-only purchase audit record."""

    id = models.CharField(max_length=36, primary_key=True)
    type = models.CharField(max_length=32, default='ticket_purchase')
    user_id = models.CharField(max_length=128, db_index=True)
    event_id = models.CharField(max_length=64, db_index=True)
    ticket_id = models.CharField(max_length=36, db_index=True)
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    timestamp = models.DateTimeField()
    status = models.CharField(max_length=20, default='completed')

    class Meta:
        db_table = 'financial_transactions'
        ordering = ['-timestamp']

    def __str__(self):
        return f"{self.type} {self.amount} ({self.ticket_id[:8]})"


class VenueModel(models.Model):
    id = models.CharField(max_length=200, primary_key=True)
    name = models.CharField(max_length=200)
    admins = models.JSONField(default=list, blank=True)
    sub_admins = models.JSONField(default=list, blank=True)
    active = models.BooleanField(default=True)
    event_ids = models.JSONField(default=list, blank=True)
    event_count = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(null=True, blank=True)
    created_by = models.CharField(max_length=128, null=True, blank=True)
    migrated = models.BooleanField(default=False)

    address = models.CharField(max_length=300, null=True, blank=True)
    city = models.CharField(max_length=100, null=True, blank=True)
    capacity = models.PositiveIntegerField(null=True, blank=True)
    image_url = models.URLField(null=True, blank=True)
    coordinates = models.JSONField(null=True, blank=True)
    contact_email = models.CharField(max_length=254, null=True, blank=True)
    website = models.CharField(max_length=200, null=True, blank=True)
    migrated_phase4 = models.BooleanField(default=False)
    updated_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'venues'

    def __str__(self):
        return self.name


class BookmarkModel(models.Model):
    """Root bookmark, keyed ``{user_id}_{event_id}``."""

    id = models.CharField(max_length=200, primary_key=True)
    user_id = models.CharField(max_length=128, db_index=True)
    event_id = models.CharField(max_length=64, db_index=True)
    bookmarked_at = models.DateTimeField(null=True, blank=True)
    migrated = models.BooleanField(default=False)

    class Meta:
        db_table = 'bookmarks'


class LegacyBookmarkModel(models.Model):
    """Per-user bookmark of the old layout, source of the relocation."""

    id = models.CharField(max_length=200, primary_key=True)
    user_id = models.CharField(max_length=128, db_index=True)
    event_id = models.CharField(max_length=64, null=True, blank=True)
    bookmarked_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'user_bookmarks'


class UserProfileModel(models.Model):
    id = models.CharField(max_length=128, primary_key=True)
    email = models.CharField(max_length=254, null=True, blank=True)
    display_name = models.CharField(max_length=200, null=True, blank=True)
    phone_number = models.CharField(max_length=32, null=True, blank=True)
    stripe_customer_id = models.CharField(max_length=64, null=True, blank=True)
    profile_image_url = models.URLField(null=True, blank=True)
    preferences = models.JSONField(null=True, blank=True)
    migrated_phase4 = models.BooleanField(default=False)
    updated_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'users'


class EventStatsModel(models.Model):
    """Read optimized statistics of one event (id = event id)."""

    id = models.CharField(max_length=64, primary_key=True)
    total_bookmarks = models.PositiveIntegerField(default=0)
    total_tickets_sold = models.PositiveIntegerField(default=0)
    tickets_used = models.PositiveIntegerField(default=0)
    total_revenue = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    tickets_sold_today = models.PositiveIntegerField(default=0)
    trending_score = models.FloatField(default=0.0)
    last_updated = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'event_stats'
