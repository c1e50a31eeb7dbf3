"""
Celery configuration.

Celery runs:
- Domain event handlers (event stats projection)
- Data migrations started asynchronously
- Scheduled tasks (nightly event stats refresh)

Architecture:
- Broker: RabbitMQ
- Backend: Redis (task results)

Usage:
    celery -A src.config.celery worker -l INFO -Q default,events,migrations
    celery -A src.config.celery beat -l INFO
"""

import os
from celery import Celery
from celery.schedules import crontab
from kombu import Queue, Exchange

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'src.config.settings')

app = Celery('ticketing')

# CELERY_* settings of Django
app.config_from_object('django.conf:settings', namespace='CELERY')

app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',

    timezone='UTC',
    enable_utc=True,

    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,

    task_default_retry_delay=60,
    task_max_retries=3,

    result_expires=3600,

    worker_send_task_events=True,
    task_send_sent_event=True,
    task_default_queue='default',
)

app.conf.task_queues = (
    Queue('default', Exchange('default'), routing_key='default'),
    Queue('events', Exchange('events'), routing_key='events.#'),
    Queue('migrations', Exchange('migrations'), routing_key='migrations.#'),
)

# Specific routes first; long running jobs get their own queue
app.conf.task_routes = {
    'src.adapters.django_app.events.handlers.run_data_migration': {'queue': 'migrations'},
    'src.adapters.django_app.events.handlers.refresh_event_stats': {'queue': 'migrations'},
    'src.adapters.django_app.events.handlers.*': {'queue': 'events'},
}

app.autodiscover_tasks(['src.adapters.django_app.events'], related_name='handlers')

app.conf.beat_schedule = {
    'refresh-event-stats': {
        'task': 'src.adapters.django_app.events.handlers.refresh_event_stats',
        'schedule': crontab(hour=0, minute=5),
    },
}
