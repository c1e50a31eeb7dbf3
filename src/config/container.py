"""
Dependency Injection Container.

Wires every dependency of the application with dependency-injector.
Nothing in the core reaches for a global: repositories, unit of work,
QR codec and clock are handed to the services by these providers.

Patterns:
- Singleton: stateless adapters (repositories, codec, identity provider)
- Factory: new instance per call (services, Unit of Work)
- Configuration: values from Django settings

Containers:
- Services: use cases, independent of the infrastructure behind them
- Container: Django / Celery infrastructure (production)
- TestingContainer: in-memory infrastructure (tests, scripts)

Adapters are referenced by dotted path and imported when the container
class is defined; import this module only after ``django.setup()``.
"""

from typing import Any, Dict, Optional

from dependency_injector import containers, providers

from src.core.data_migrations.runner import MigrationRunner
from src.core.shared.interfaces import utc_now
from src.core.ticketing.inventory import InventoryLedger
from src.core.ticketing.issuer import TicketIssuer
from src.core.ticketing.qr_codec import QRSecurityCodec
from src.core.ticketing.use_cases import (
    CancelTicketService,
    CheckUserTicketService,
    DeleteTicketService,
    ListUserTicketsService,
    PurchaseTicketService,
    RefundTicketService,
    ScanHistoryService,
    ScanTicketService,
    TransferTicketService,
)


DEFAULT_CONFIG: Dict[str, Any] = {
    'qr_secret': '',
    'qr_signature_length': 16,
    'identity_token_key': '',
    'identity_token_max_age': 3600,
    'purchase_max_attempts': 5,
    'migration_batch_size': 500,
    'event_publisher_mode': 'sync',
}


# =============================================================================
# Services (Use Cases)
# =============================================================================

class Services(containers.DeclarativeContainer):
    """
    Use cases over abstract infrastructure.

    The infrastructure providers are declared as dependencies and
    supplied by the enclosing container.

    Example:
        service = container.services.purchase_ticket_service()
        result = service.execute(claims, PurchaseTicketInputDTO(event_id="e1"))
    """

    config = providers.Configuration()

    event_repository = providers.Dependency()
    ticket_repository = providers.Dependency()
    transaction_repository = providers.Dependency()
    record_store = providers.Dependency()
    user_directory = providers.Dependency()
    unit_of_work = providers.Dependency()
    qr_codec = providers.Dependency()
    clock = providers.Object(utc_now)

    inventory = providers.Factory(InventoryLedger, event_repo=event_repository)

    issuer = providers.Factory(
        TicketIssuer,
        ticket_repo=ticket_repository,
        qr_codec=qr_codec,
    )

    purchase_ticket_service = providers.Factory(
        PurchaseTicketService,
        inventory=inventory,
        issuer=issuer,
        transaction_repo=transaction_repository,
        uow=unit_of_work,
        clock=clock,
        max_attempts=config.purchase_max_attempts,
    )

    scan_ticket_service = providers.Factory(
        ScanTicketService,
        ticket_repo=ticket_repository,
        event_repo=event_repository,
        qr_codec=qr_codec,
        uow=unit_of_work,
        clock=clock,
    )

    cancel_ticket_service = providers.Factory(
        CancelTicketService,
        ticket_repo=ticket_repository,
        uow=unit_of_work,
        clock=clock,
    )

    refund_ticket_service = providers.Factory(
        RefundTicketService,
        ticket_repo=ticket_repository,
        uow=unit_of_work,
        clock=clock,
    )

    delete_ticket_service = providers.Factory(
        DeleteTicketService,
        ticket_repo=ticket_repository,
        uow=unit_of_work,
        clock=clock,
    )

    transfer_ticket_service = providers.Factory(
        TransferTicketService,
        ticket_repo=ticket_repository,
        user_directory=user_directory,
        qr_codec=qr_codec,
        uow=unit_of_work,
        clock=clock,
    )

    check_user_ticket_service = providers.Factory(
        CheckUserTicketService,
        ticket_repo=ticket_repository,
    )

    list_user_tickets_service = providers.Factory(
        ListUserTicketsService,
        ticket_repo=ticket_repository,
        qr_codec=qr_codec,
    )

    scan_history_service = providers.Factory(
        ScanHistoryService,
        ticket_repo=ticket_repository,
    )

    migration_runner = providers.Factory(
        MigrationRunner,
        store=record_store,
        batch_size=config.migration_batch_size,
        clock=clock,
    )


# =============================================================================
# Production Container
# =============================================================================

class Container(containers.DeclarativeContainer):
    """
    Main container (Django ORM, Celery).

    Example:
        container = Container()
        container.config.from_dict(settings_config())
        service = container.services.purchase_ticket_service()
    """

    config = providers.Configuration(default=DEFAULT_CONFIG)

    # =========================================================================
    # Infrastructure
    # =========================================================================

    event_publisher = providers.Singleton(
        'src.adapters.django_app.events.publishers.get_event_publisher',
        mode=config.event_publisher_mode,
    )

    identity_provider = providers.Singleton(
        'src.adapters.django_app.ticketing.auth.SignedTokenIdentityProvider',
        key=config.identity_token_key,
        max_age=config.identity_token_max_age,
    )

    qr_codec = providers.Singleton(
        QRSecurityCodec,
        secret=config.qr_secret,
        signature_length=config.qr_signature_length,
    )

    # =========================================================================
    # Repositories
    # =========================================================================

    event_repository = providers.Singleton(
        'src.adapters.django_app.ticketing.repositories.DjangoEventRepository'
    )

    ticket_repository = providers.Singleton(
        'src.adapters.django_app.ticketing.repositories.DjangoTicketRepository'
    )

    transaction_repository = providers.Singleton(
        'src.adapters.django_app.ticketing.repositories.DjangoFinancialTransactionRepository'
    )

    record_store = providers.Singleton(
        'src.adapters.django_app.ticketing.repositories.DjangoRecordStore'
    )

    user_directory = providers.Singleton(
        'src.adapters.django_app.ticketing.repositories.DjangoUserDirectory'
    )

    # =========================================================================
    # Unit of Work (new instance per operation)
    # =========================================================================

    unit_of_work = providers.Factory(
        'src.adapters.django_app.shared.unit_of_work.DjangoUnitOfWork',
        event_publisher=event_publisher,
    )

    services = providers.Container(
        Services,
        config=config,
        event_repository=event_repository,
        ticket_repository=ticket_repository,
        transaction_repository=transaction_repository,
        record_store=record_store,
        user_directory=user_directory,
        unit_of_work=unit_of_work,
        qr_codec=qr_codec,
    )


def settings_config() -> Dict[str, Any]:
    """Container configuration read from Django settings."""
    from django.conf import settings

    return {
        'qr_secret': getattr(settings, 'QR_SECRET', ''),
        'qr_signature_length': getattr(settings, 'QR_SIGNATURE_LENGTH', 16),
        'identity_token_key': getattr(settings, 'IDENTITY_TOKEN_KEY', settings.SECRET_KEY),
        'identity_token_max_age': getattr(settings, 'IDENTITY_TOKEN_MAX_AGE', 3600),
        'purchase_max_attempts': getattr(settings, 'PURCHASE_TRANSACTION_MAX_ATTEMPTS', 5),
        'migration_batch_size': getattr(settings, 'MIGRATION_BATCH_SIZE', 500),
        'event_publisher_mode': getattr(settings, 'EVENT_PUBLISHER_MODE', 'sync'),
    }


# =============================================================================
# Global Container
# =============================================================================

_container: Optional[containers.DeclarativeContainer] = None


def get_container():
    """
    Return the application container, creating it on first use.

    Returns:
        Configured container
    """
    global _container

    if _container is None:
        _container = Container()
        _container.config.from_dict(settings_config())

    return _container


def set_container(container: containers.DeclarativeContainer) -> None:
    """Install a specific container (tests install a TestingContainer)."""
    global _container
    _container = container


def reset_container() -> None:
    """Drop the current container (for tests)."""
    global _container
    _container = None


# =============================================================================
# Testing Container
# =============================================================================

TESTING_CONFIG = dict(
    DEFAULT_CONFIG,
    qr_secret='test-qr-secret',
    identity_token_key='test-identity-key',
)


class TestingContainer(containers.DeclarativeContainer):
    """
    Container with in-memory infrastructure.

    All repositories share one InMemoryDatastore, and every Unit of Work
    locks it for the duration of its transaction.

    Example:
        container = TestingContainer()
        container.event_repository().save(EventEntity(id="e1", name="Gig", max_tickets=10))
        result = container.services.purchase_ticket_service().execute(claims, dto)
    """

    __test__ = False

    config = providers.Configuration(default=TESTING_CONFIG)

    datastore = providers.Singleton(
        'src.core.shared.memory.InMemoryDatastore'
    )

    event_publisher = providers.Singleton(
        'src.adapters.django_app.events.publishers.InMemoryEventPublisher'
    )

    identity_provider = providers.Singleton(
        'src.adapters.django_app.ticketing.auth.SignedTokenIdentityProvider',
        key=config.identity_token_key,
        max_age=config.identity_token_max_age,
    )

    qr_codec = providers.Singleton(
        QRSecurityCodec,
        secret=config.qr_secret,
        signature_length=config.qr_signature_length,
    )

    event_repository = providers.Singleton(
        'src.core.ticketing.ports.InMemoryEventRepository',
        datastore=datastore,
    )

    ticket_repository = providers.Singleton(
        'src.core.ticketing.ports.InMemoryTicketRepository',
        datastore=datastore,
    )

    transaction_repository = providers.Singleton(
        'src.core.ticketing.ports.InMemoryFinancialTransactionRepository',
        datastore=datastore,
    )

    record_store = providers.Singleton(
        'src.core.data_migrations.ports.InMemoryRecordStore'
    )

    user_directory = providers.Singleton(
        'src.core.ticketing.ports.InMemoryUserDirectory',
        datastore=datastore,
    )

    unit_of_work = providers.Factory(
        'src.core.shared.memory.InMemoryUnitOfWork',
        datastore=datastore,
        event_publisher=event_publisher,
    )

    services = providers.Container(
        Services,
        config=config,
        event_repository=event_repository,
        ticket_repository=ticket_repository,
        transaction_repository=transaction_repository,
        record_store=record_store,
        user_directory=user_directory,
        unit_of_work=unit_of_work,
        qr_codec=qr_codec,
    )
