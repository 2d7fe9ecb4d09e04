"""Celery application instance shared across the backend.

Start a worker (owns the WhatsApp session, so keep it to one process) with:
    celery -A app.celery_app worker -Q reminder,discovery,inbound,session -P threads -l info --concurrency=4
and the scheduler with:
    celery -A app.celery_app beat -l info
"""

from celery import Celery
from celery.schedules import crontab
from celery.signals import worker_init

from config import settings

BROKER_URL = settings.REDIS_URL

celery_app = Celery("clicksaude_reminders", broker=BROKER_URL, backend=BROKER_URL)

# Global task settings
celery_app.conf.task_acks_late = True
celery_app.conf.task_reject_on_worker_lost = True
celery_app.conf.task_default_retry_delay = 2  # seconds
celery_app.conf.timezone = settings.DEFAULT_TIMEZONE

celery_app.conf.task_routes = {
    "app.workers.reminder.send_reminder": {"queue": "reminder"},
    "app.workers.reminder.dispatch_next_day": {"queue": "discovery"},
    "app.workers.inbound.handle_event": {"queue": "inbound"},
    "app.workers.session.*": {"queue": "session"},
}

# Beat schedule: look for tomorrow's appointments at the top of every hour
celery_app.conf.beat_schedule = {
    "dispatch-next-day-reminders": {
        "task": "app.workers.reminder.dispatch_next_day",
        "schedule": crontab(minute=0),
    }
}


@worker_init.connect
def _configure_db(**_kwargs):
    import db

    db.use_null_pool()


# --- Ensure tasks are registered ---
import app.workers.reminder  # noqa: E402,F401
import app.workers.inbound  # noqa: E402,F401
import app.workers.session  # noqa: E402,F401
