"""
JSON API views of the ticketing domain.

Endpoints:
- POST /api/tickets/purchase/ - Purchase a ticket
- POST /api/tickets/<id>/scan/ - Validate a ticket at the door
- POST /api/tickets/<id>/cancel/ - Cancel a ticket
- POST /api/tickets/<id>/refund/ - Refund a ticket
- POST /api/tickets/<id>/delete/ - Soft delete a ticket
- POST /api/tickets/<id>/transfer/ - Transfer a ticket to another user
- GET /api/tickets/check/?eventId= - Does the caller hold a ticket for an event
- GET /api/tickets/mine/ - The caller's tickets
- GET /api/tickets/scan-history/ - Tickets scanned by the caller
- POST /api/migrations/<name>/run/ - Run a data migration
- GET /api/migrations/<name>/status/ - Completion of one migration
- GET /api/migrations/status/ - Phase 1 verification
- GET /api/migrations/phase4/status/ - Phase 4 verification

Format:
- Input: JSON body
- Output: JSON; failures are ``{success: false, error: {code, message}}``
  with the HTTP status of the error kind

Authentication:
- ``Authorization: Bearer <signed token>`` (see auth.py)
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional
import json
import logging

from django.http import HttpRequest, JsonResponse
from django.utils.dateparse import parse_datetime
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt

from src.config.container import get_container
from src.core.identity.claims import CallerClaims
from src.core.shared.exceptions import DomainException, ErrorKind, ValidationError
from src.core.shared.result import Result
from src.core.ticketing.dtos import (
    CancelTicketInputDTO,
    CheckUserTicketInputDTO,
    DeleteTicketInputDTO,
    PurchaseTicketInputDTO,
    RefundTicketInputDTO,
    ScanHistoryInputDTO,
    ScanTicketInputDTO,
    TransferTicketInputDTO,
)
from src.core.ticketing.ports import DEFAULT_SCAN_HISTORY_LIMIT

logger = logging.getLogger(__name__)


# =============================================================================
# Helpers
# =============================================================================

def error_response(code: str, message: str, status: int) -> JsonResponse:
    return JsonResponse({'success': False, 'error': {'code': code, 'message': message}}, status=status)


def json_response(data: Dict[str, Any], status: int = 200) -> JsonResponse:
    return JsonResponse(data, status=status)


def parse_json_body(request: HttpRequest) -> Dict:
    """
    Parse the JSON body of the request.

    Raises:
        ValidationError: If the body is not a JSON object
    """
    if not request.body:
        return {}

    try:
        data = json.loads(request.body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValidationError(f"Invalid JSON: {e}")
    if not isinstance(data, dict):
        raise ValidationError("JSON body must be an object")
    return data


def parse_amount(value: Any) -> Optional[Decimal]:
    if value is None or value == '':
        return None
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError("Invalid refund amount", field='amount')
    if not amount.is_finite():
        raise ValidationError("Invalid refund amount", field='amount')
    return amount


def parse_timestamp(value: Optional[str], field: str) -> Optional[datetime]:
    """ISO 8601 query parameter; naive values are taken as UTC."""
    if not value:
        return None
    try:
        parsed = parse_datetime(value)
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationError(f"Invalid {field}", field=field)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_limit(value: Optional[str]) -> int:
    if value is None or value == '':
        return DEFAULT_SCAN_HISTORY_LIMIT
    try:
        return int(value)
    except ValueError:
        raise ValidationError("limit must be an integer", field='limit')


# =============================================================================
# Base API View
# =============================================================================

@method_decorator(csrf_exempt, name='dispatch')
class BaseAPIView(View):
    """
    Base view of the JSON API.

    Provides:
    - JSON body parsing
    - Caller claims from the bearer token
    - Service lookup in the DI container
    - Mapping of Failure results and exceptions to error responses
    """

    def get_container(self):
        return get_container()

    def get_service(self, service_name: str):
        return getattr(self.get_container().services, service_name)()

    def get_claims(self, request: HttpRequest) -> Optional[CallerClaims]:
        return self.get_container().identity_provider().claims_from_request(request)

    def parse_body(self, request: HttpRequest) -> Dict:
        return parse_json_body(request)

    def result_response(self, result: Result, to_dict=None) -> JsonResponse:
        """Render a Result: the value on success, the error otherwise."""
        if result.is_failure:
            return self.error_from_exception(result.error)
        value = result.value
        return json_response(to_dict(value) if to_dict else value)

    def error_from_exception(self, e: DomainException) -> JsonResponse:
        kind = e.kind
        if kind == ErrorKind.INTERNAL:
            logger.error(f"API internal error: {e.message}")
        return error_response(kind.value, e.message, kind.http_status)

    def handle_exception(self, e: Exception) -> JsonResponse:
        if isinstance(e, DomainException):
            return self.error_from_exception(e)

        logger.exception(f"Unexpected API error: {e}")
        return error_response(ErrorKind.INTERNAL.value, "Internal server error", 500)


# =============================================================================
# Ticket API Views
# =============================================================================

class PurchaseTicketAPIView(BaseAPIView):
    """
    POST /api/tickets/purchase/

    Body JSON:
    {
        "eventId": "string (required)"
    }
    """

    def post(self, request: HttpRequest) -> JsonResponse:
        try:
            claims = self.get_claims(request)
            data = self.parse_body(request)
            result = self.get_service('purchase_ticket_service').execute(
                claims, PurchaseTicketInputDTO(event_id=data.get('eventId'))
            )
            return self.result_response(result, lambda output: output.to_response_dict())
        except Exception as e:
            return self.handle_exception(e)


class ScanTicketAPIView(BaseAPIView):
    """POST /api/tickets/<id>/scan/ with optional {"qrCodeData"}."""

    def post(self, request: HttpRequest, pk: str) -> JsonResponse:
        try:
            claims = self.get_claims(request)
            data = self.parse_body(request)
            result = self.get_service('scan_ticket_service').execute(
                claims, ScanTicketInputDTO(ticket_id=pk, qr_code_data=data.get('qrCodeData'))
            )
            return self.result_response(result, lambda output: output.to_response_dict())
        except Exception as e:
            return self.handle_exception(e)


class CancelTicketAPIView(BaseAPIView):
    """POST /api/tickets/<id>/cancel/ with optional {"reason"}."""

    def post(self, request: HttpRequest, pk: str) -> JsonResponse:
        try:
            claims = self.get_claims(request)
            data = self.parse_body(request)
            result = self.get_service('cancel_ticket_service').execute(
                claims, CancelTicketInputDTO(ticket_id=pk, reason=data.get('reason'))
            )
            return self.result_response(
                result, lambda ticket: {'success': True, 'ticket': ticket.to_response_dict()}
            )
        except Exception as e:
            return self.handle_exception(e)


class RefundTicketAPIView(BaseAPIView):
    """POST /api/tickets/<id>/refund/ with optional {"amount"} (defaults to the price paid)."""

    def post(self, request: HttpRequest, pk: str) -> JsonResponse:
        try:
            claims = self.get_claims(request)
            data = self.parse_body(request)
            result = self.get_service('refund_ticket_service').execute(
                claims, RefundTicketInputDTO(ticket_id=pk, amount=parse_amount(data.get('amount')))
            )
            return self.result_response(
                result, lambda ticket: {'success': True, 'ticket': ticket.to_response_dict()}
            )
        except Exception as e:
            return self.handle_exception(e)


class DeleteTicketAPIView(BaseAPIView):
    """POST /api/tickets/<id>/delete/ (site admins)."""

    def post(self, request: HttpRequest, pk: str) -> JsonResponse:
        try:
            claims = self.get_claims(request)
            result = self.get_service('delete_ticket_service').execute(
                claims, DeleteTicketInputDTO(ticket_id=pk)
            )
            return self.result_response(
                result, lambda ticket: {'success': True, 'ticket': ticket.to_response_dict()}
            )
        except Exception as e:
            return self.handle_exception(e)


class TransferTicketAPIView(BaseAPIView):
    """
    POST /api/tickets/<id>/transfer/

    Body JSON:
    {
        "recipientEmail": "string (required)"
    }
    """

    def post(self, request: HttpRequest, pk: str) -> JsonResponse:
        try:
            claims = self.get_claims(request)
            data = self.parse_body(request)
            result = self.get_service('transfer_ticket_service').execute(
                claims, TransferTicketInputDTO(ticket_id=pk, recipient_email=data.get('recipientEmail'))
            )
            return self.result_response(result, lambda output: output.to_response_dict())
        except Exception as e:
            return self.handle_exception(e)


class CheckUserTicketAPIView(BaseAPIView):
    """GET /api/tickets/check/?eventId=<id>"""

    def get(self, request: HttpRequest) -> JsonResponse:
        try:
            claims = self.get_claims(request)
            result = self.get_service('check_user_ticket_service').execute(
                claims, CheckUserTicketInputDTO(event_id=request.GET.get('eventId'))
            )
            return self.result_response(result, lambda output: output.to_response_dict())
        except Exception as e:
            return self.handle_exception(e)


class UserTicketsAPIView(BaseAPIView):
    """GET /api/tickets/mine/ - latest purchase first."""

    def get(self, request: HttpRequest) -> JsonResponse:
        try:
            claims = self.get_claims(request)
            result = self.get_service('list_user_tickets_service').execute(claims)
            return self.result_response(
                result,
                lambda tickets: {'success': True, 'tickets': [t.to_response_dict() for t in tickets]},
            )
        except Exception as e:
            return self.handle_exception(e)


class ScanHistoryAPIView(BaseAPIView):
    """GET /api/tickets/scan-history/?limit=&startDate=&endDate= (scanners)."""

    def get(self, request: HttpRequest) -> JsonResponse:
        try:
            claims = self.get_claims(request)
            input_dto = ScanHistoryInputDTO(
                limit=parse_limit(request.GET.get('limit')),
                since=parse_timestamp(request.GET.get('startDate'), 'startDate'),
                until=parse_timestamp(request.GET.get('endDate'), 'endDate'),
            )
            result = self.get_service('scan_history_service').execute(claims, input_dto)
            return self.result_response(result, lambda output: output.to_response_dict())
        except Exception as e:
            return self.handle_exception(e)


# =============================================================================
# Migration API Views
# =============================================================================

class RunMigrationAPIView(BaseAPIView):
    """
    POST /api/migrations/<name>/run/

    Runs synchronously and returns the report:
    {success, message, updated, created, skipped, errors}
    """

    def post(self, request: HttpRequest, name: str) -> JsonResponse:
        try:
            claims = self.get_claims(request)
            result = self.get_service('migration_runner').run(name, claims)
            return self.result_response(result, lambda report: {'success': True, **report.to_dict()})
        except Exception as e:
            return self.handle_exception(e)


class MigrationStatusAPIView(BaseAPIView):
    """GET /api/migrations/<name>/status/"""

    def get(self, request: HttpRequest, name: str) -> JsonResponse:
        try:
            claims = self.get_claims(request)
            result = self.get_service('migration_runner').status(name, claims)
            return self.result_response(result, lambda summary: {'success': True, 'migration': name, **summary})
        except Exception as e:
            return self.handle_exception(e)


class VerifyMigrationStatusAPIView(BaseAPIView):
    """GET /api/migrations/status/"""

    def get(self, request: HttpRequest) -> JsonResponse:
        try:
            claims = self.get_claims(request)
            result = self.get_service('migration_runner').verify_migration_status(claims)
            return self.result_response(result, lambda summary: {'success': True, **summary})
        except Exception as e:
            return self.handle_exception(e)


class VerifyPhase4StatusAPIView(BaseAPIView):
    """GET /api/migrations/phase4/status/"""

    def get(self, request: HttpRequest) -> JsonResponse:
        try:
            claims = self.get_claims(request)
            result = self.get_service('migration_runner').verify_phase4_status(claims)
            return self.result_response(result, lambda summary: {'success': True, **summary})
        except Exception as e:
            return self.handle_exception(e)
