"""
Event Handlers - asynchronous consumers of domain events.

Run by Celery workers after the producing transaction committed:

- Event stats projection: keeps ``event_stats`` current as tickets are
  purchased, scanned, cancelled, refunded or deleted
- Data migrations: ``run_data_migration`` runs a migration in a worker
- Scheduled: ``refresh_event_stats`` recomputes every event nightly

Pattern:
    @shared_task(bind=True, ...)
    def handle_<event>(self, event_data: dict) -> None:
        ...
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict
import logging

from celery import shared_task
from django.db import transaction
from django.db.models import F

from src.core.data_migrations.phases import event_stats_from

logger = logging.getLogger(__name__)

SYSTEM_CLAIMS = {'uid': 'system', 'role': 'siteAdmin'}


def _stats_model():
    from src.adapters.django_app.ticketing.models import EventStatsModel
    return EventStatsModel


def recompute_event_stats(event_id: str) -> Dict[str, Any]:
    """
    Rebuild the stats record of one event from the ticket and bookmark tables.

    Counts tickets with the same rules as the ``create_event_stats``
    migration, legacy rows without a status included.

    Returns:
        The stored statistics
    """
    from src.adapters.django_app.ticketing.models import BookmarkModel, TicketModel

    now = datetime.now(timezone.utc)
    values = event_stats_from(
        TicketModel.objects.filter(event_id=event_id).values().iterator(),
        BookmarkModel.objects.filter(event_id=event_id).count(),
        now,
    )
    values['last_updated'] = now
    _stats_model().objects.update_or_create(id=event_id, defaults=values)
    return values


def _increment_stats(event_id: str, **increments) -> None:
    """Apply counter increments to the stats record, creating it on first use."""
    model = _stats_model()
    with transaction.atomic():
        model.objects.get_or_create(id=event_id)
        model.objects.filter(id=event_id).update(
            last_updated=datetime.now(timezone.utc),
            **{field: F(field) + value for field, value in increments.items()},
        )


# =============================================================================
# Event Handlers - Tickets
# =============================================================================

@shared_task(
    bind=True,
    max_retries=3,
    default_retry_delay=60,
    autoretry_for=(Exception,),
    acks_late=True,
)
def handle_ticket_purchased(self, event_data: Dict[str, Any]) -> None:
    """
    TicketPurchasedEvent: one more ticket sold, today, for ``amount``.

    Args:
        event_data: Serialized event (``DomainEvent.to_dict``)
    """
    data = event_data.get('data', {})
    event_id = data.get('ticketed_event_id')
    logger.info(
        f"[HANDLER] TicketPurchased: {event_data.get('aggregate_id')} | "
        f"event={event_id} | user={data.get('user_id')}"
    )
    _increment_stats(
        event_id,
        total_tickets_sold=1,
        tickets_sold_today=1,
        total_revenue=Decimal(data.get('amount') or '0'),
    )


@shared_task(
    bind=True,
    max_retries=3,
    default_retry_delay=60,
    autoretry_for=(Exception,),
    acks_late=True,
)
def handle_ticket_scanned(self, event_data: Dict[str, Any]) -> None:
    data = event_data.get('data', {})
    event_id = data.get('ticketed_event_id')
    logger.info(
        f"[HANDLER] TicketScanned: {event_data.get('aggregate_id')} | "
        f"event={event_id} | scanner={data.get('scanned_by')}"
    )
    _increment_stats(event_id, tickets_used=1)


@shared_task(
    bind=True,
    max_retries=3,
    default_retry_delay=60,
    autoretry_for=(Exception,),
    acks_late=True,
)
def handle_ticket_voided(self, event_data: Dict[str, Any]) -> None:
    """
    Cancelled, refunded or deleted ticket.

    The ticket no longer counts; its previous status is unknown here,
    so the event's stats are recomputed.
    """
    data = event_data.get('data', {})
    event_id = data.get('ticketed_event_id')
    logger.info(
        f"[HANDLER] {event_data.get('event_type')}: {event_data.get('aggregate_id')} | event={event_id}"
    )
    recompute_event_stats(event_id)


# =============================================================================
# Event Dispatcher (Router)
# =============================================================================

EVENT_HANDLERS = {
    'TicketPurchasedEvent': handle_ticket_purchased,
    'TicketScannedEvent': handle_ticket_scanned,
    'TicketCancelledEvent': handle_ticket_voided,
    'TicketRefundedEvent': handle_ticket_voided,
    'TicketDeletedEvent': handle_ticket_voided,
}


@shared_task(bind=True, max_retries=5, default_retry_delay=30)
def dispatch_domain_event(self, event_type: str, event_data: Dict[str, Any]) -> None:
    """
    Entry point for every published domain event.

    Args:
        event_type: Event class name (e.g. 'TicketPurchasedEvent')
        event_data: Serialized event
    """
    handler = EVENT_HANDLERS.get(event_type)

    if handler:
        logger.info(f"[DISPATCHER] Routing {event_type}")
        handler.delay(event_data)
    else:
        logger.warning(f"[DISPATCHER] No handler for {event_type}")


# =============================================================================
# Data migrations
# =============================================================================

@shared_task(bind=True, acks_late=True)
def run_data_migration(self, name: str, claims_data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Run a data migration in a worker.

    Args:
        name: Migration name (e.g. 'create_venues')
        claims_data: Caller claims as produced by ``claims_to_dict``

    Returns:
        ``{"success": True, **report}`` or ``{"success": False, "error": {...}}``
    """
    from src.config.container import get_container
    from src.core.identity.claims import parse_claims

    logger.info(f"[MIGRATION] {name} requested by {claims_data.get('uid')}")
    runner = get_container().services.migration_runner()
    result = runner.run(name, parse_claims(claims_data))
    if result.is_success:
        return {'success': True, **result.value.to_dict()}
    return {'success': False, 'error': {'code': result.kind.value, 'message': result.message}}


# =============================================================================
# Scheduled Tasks (Beat)
# =============================================================================

@shared_task(bind=True)
def refresh_event_stats(self) -> Dict[str, Any]:
    """
    Full recompute of ``event_stats``.

    Executed nightly by Celery Beat; repairs drift of the incremental
    projection and resets ``tickets_sold_today``.
    """
    from src.config.container import get_container
    from src.core.identity.claims import parse_claims

    logger.info("[SCHEDULED] Refreshing event stats...")
    runner = get_container().services.migration_runner()
    result = runner.run('create_event_stats', parse_claims(SYSTEM_CLAIMS))
    if result.is_failure:
        logger.error(f"[SCHEDULED] Event stats refresh failed: {result.message}")
        return {}
    logger.info(f"[SCHEDULED] {result.value.message}")
    return result.value.to_dict()
