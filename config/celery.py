import os

from celery import Celery
from celery.schedules import crontab  # type: ignore

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings.dev")

app = Celery("rental_bookings")

app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()


# ============================================================================
# CELERY BEAT SCHEDULE (Periodic Tasks)
# ============================================================================

app.conf.beat_schedule = {
    # Pending requests whose stay already began - every hour
    "expire-stale-pending-bookings": {
        "task": "bookings.expire_stale_pending",
        "schedule": crontab(minute=5),
        "options": {"expires": 55 * 60},
    },
}
