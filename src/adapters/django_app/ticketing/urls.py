"""
URL patterns of the ticketing API.

Ticket endpoints:
- POST /api/tickets/purchase/ - Purchase a ticket
- POST /api/tickets/<id>/scan/ - Scan a ticket
- POST /api/tickets/<id>/cancel/ - Cancel a ticket
- POST /api/tickets/<id>/refund/ - Refund a ticket
- POST /api/tickets/<id>/delete/ - Soft delete a ticket
- POST /api/tickets/<id>/transfer/ - Transfer a ticket
- GET /api/tickets/check/ - Does the caller hold a ticket for an event
- GET /api/tickets/mine/ - The caller's tickets
- GET /api/tickets/scan-history/ - Scans by the calling scanner

Migration endpoints (site admins):
- POST /api/migrations/<name>/run/
- GET /api/migrations/<name>/status/
- GET /api/migrations/status/
- GET /api/migrations/phase4/status/
"""

from django.urls import path
from . import api_views

app_name = 'ticketing'

urlpatterns = [
    # =========================================================================
    # Tickets
    # =========================================================================

    path('tickets/purchase/', api_views.PurchaseTicketAPIView.as_view(), name='purchase'),
    path('tickets/check/', api_views.CheckUserTicketAPIView.as_view(), name='check'),
    path('tickets/mine/', api_views.UserTicketsAPIView.as_view(), name='mine'),
    path('tickets/scan-history/', api_views.ScanHistoryAPIView.as_view(), name='scan_history'),
    path('tickets/<str:pk>/scan/', api_views.ScanTicketAPIView.as_view(), name='scan'),
    path('tickets/<str:pk>/cancel/', api_views.CancelTicketAPIView.as_view(), name='cancel'),
    path('tickets/<str:pk>/refund/', api_views.RefundTicketAPIView.as_view(), name='refund'),
    path('tickets/<str:pk>/delete/', api_views.DeleteTicketAPIView.as_view(), name='delete'),
    path('tickets/<str:pk>/transfer/', api_views.TransferTicketAPIView.as_view(), name='transfer'),

    # =========================================================================
    # Migrations (fixed paths before <name> so they don't conflict)
    # =========================================================================

    path('migrations/status/', api_views.VerifyMigrationStatusAPIView.as_view(), name='migrations_status'),
    path('migrations/phase4/status/', api_views.VerifyPhase4StatusAPIView.as_view(), name='migrations_phase4_status'),
    path('migrations/<str:name>/run/', api_views.RunMigrationAPIView.as_view(), name='migration_run'),
    path('migrations/<str:name>/status/', api_views.MigrationStatusAPIView.as_view(), name='migration_status'),
]
