"""
Mappers between core entities and Django models.

- EventMapper: EventModel ↔ EventEntity
- TicketMapper: TicketModel / UserTicketModel ↔ TicketEntity
- FinancialTransactionMapper: FinancialTransactionEntity ↔ FinancialTransactionModel

Mappers are stateless and hold no business logic.
"""

from decimal import Decimal
from typing import Any, Dict, List

from src.core.ticketing.entities import (
    EventEntity,
    FinancialTransactionEntity,
    TicketEntity,
    TicketStatus,
)

from .models import EventModel, FinancialTransactionModel, TicketFields


class EventMapper:

    @staticmethod
    def to_entity(model: EventModel) -> EventEntity:
        """
        Convert an EventModel to an EventEntity.

        Legacy rows without ``start_time`` fall back to ``date``.
        """
        return EventEntity(
            id=model.id,
            name=model.name,
            max_tickets=model.max_tickets,
            tickets_sold=model.tickets_sold,
            price=Decimal(model.price),
            venue=model.venue,
            venue_id=model.venue_id,
            start_time=model.start_time or model.date,
            end_time=model.end_time,
            status=model.status,
        )

    @staticmethod
    def to_fields(entity: EventEntity) -> Dict[str, Any]:
        return {
            'name': entity.name,
            'max_tickets': entity.max_tickets,
            'tickets_sold': entity.tickets_sold,
            'price': entity.price,
            'venue': entity.venue,
            'venue_id': entity.venue_id,
            'start_time': entity.start_time,
            'end_time': entity.end_time,
            'status': entity.status,
        }


class TicketMapper:
    """
    Mapper for tickets.

    The same conversion serves the root table and the mirror, since
    both share the TicketFields columns.
    """

    @staticmethod
    def to_entity(model: TicketFields) -> TicketEntity:
        status = TicketStatus.from_string(model.status) if model.status else (
            TicketStatus.USED if model.is_used else TicketStatus.CONFIRMED
        )
        price = model.total_price
        if price is None:
            price = model.purchase_price if model.purchase_price is not None else model.price_per_ticket
        return TicketEntity(
            id=model.id,
            event_id=model.event_id,
            user_id=model.user_id,
            ticket_number=model.ticket_number or "",
            event_name=model.event_name or "",
            total_price=Decimal(price or 0),
            purchase_date=model.purchase_date,
            venue=model.venue,
            venue_id=model.venue_id,
            start_time=model.start_time,
            status=status,
            qr_code=model.qr_code or "",
            used_at=model.used_at,
            scanned_by=model.scanned_by,
            scanned_by_email=model.scanned_by_email,
            cancelled_at=model.cancelled_at,
            cancel_reason=model.cancel_reason,
            refunded_at=model.refunded_at,
            refund_amount=model.refund_amount,
            transferred_from=model.transferred_from,
            transferred_at=model.transferred_at,
            deleted_at=model.deleted_at,
        )

    @staticmethod
    def to_entity_list(models) -> List[TicketEntity]:
        return [TicketMapper.to_entity(model) for model in models]

    @staticmethod
    def to_fields(entity: TicketEntity) -> Dict[str, Any]:
        """Column values shared by both copies (everything but the id)."""
        return {
            'event_id': entity.event_id,
            'user_id': entity.user_id,
            'ticket_number': entity.ticket_number,
            'event_name': entity.event_name,
            'venue': entity.venue,
            'venue_id': entity.venue_id,
            'start_time': entity.start_time,
            'total_price': entity.total_price,
            'purchase_price': entity.total_price,
            'purchase_date': entity.purchase_date,
            'status': entity.status.value,
            'is_used': entity.status == TicketStatus.USED,
            'qr_code': entity.qr_code,
            'used_at': entity.used_at,
            'scanned_by': entity.scanned_by,
            'scanned_by_email': entity.scanned_by_email,
            'cancelled_at': entity.cancelled_at,
            'cancel_reason': entity.cancel_reason,
            'refunded_at': entity.refunded_at,
            'refund_amount': entity.refund_amount,
            'transferred_from': entity.transferred_from,
            'transferred_at': entity.transferred_at,
            'deleted_at': entity.deleted_at,
        }


class FinancialTransactionMapper:

    @staticmethod
    def to_model(entity: FinancialTransactionEntity) -> FinancialTransactionModel:
        return FinancialTransactionModel(
            id=entity.id,
            type=entity.type,
            user_id=entity.user_id,
            event_id=entity.event_id,
            ticket_id=entity.ticket_id,
            amount=entity.amount,
            timestamp=entity.timestamp,
            status=entity.status,
        )

    @staticmethod
    def to_entity(model: FinancialTransactionModel) -> FinancialTransactionEntity:
        return FinancialTransactionEntity(
            id=model.id,
            user_id=model.user_id,
            event_id=model.event_id,
            ticket_id=model.ticket_id,
            amount=Decimal(model.amount),
            timestamp=model.timestamp,
            type=model.type,
            status=model.status,
        )
