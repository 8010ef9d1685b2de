"""
Celery Beat Schedule Configuration for HireMatch

Periodic jobs that keep interview reservations consistent with the
external booking service.

Schedule Format:
- crontab(minute, hour, day_of_week, day_of_month, month_of_year)
- timedelta for interval-based schedules
"""

from datetime import timedelta


CELERY_BEAT_SCHEDULE = {
    # ==========================================================================
    # BOOKING RECONCILIATION TASKS
    # ==========================================================================

    'expire-stale-reservations-every-minute': {
        'task': 'ats.tasks.expire_stale_reservations',
        'schedule': timedelta(minutes=1),
        'options': {'queue': 'ats'},
    },

    'reconcile-pending-bookings-5min': {
        'task': 'ats.tasks.reconcile_pending_bookings',
        'schedule': timedelta(minutes=5),
        'options': {'queue': 'ats'},
    },
}
