"""
Celery Tasks for ATS (Applicant Tracking System) App

This module contains periodic tasks for interview booking:
- Expiry of provisional reservations that were never confirmed
- Reconciliation of released interviews against the booking provider

Both run from the beat schedule in hirematch.celery_beat_schedule.
"""

import logging
from celery import shared_task
from celery.exceptions import SoftTimeLimitExceeded
from django.utils import timezone

logger = logging.getLogger(__name__)
security_logger = logging.getLogger('security.ats.booking')


# ==================== RESERVATION EXPIRY ====================

@shared_task(
    bind=True,
    name='ats.tasks.expire_stale_reservations',
    max_retries=3,
    default_retry_delay=30,
    soft_time_limit=120,
    time_limit=150,
)
def expire_stale_reservations(self):
    """
    Release interviews stuck in requested/pending_external past their
    reservation deadline.

    Returns:
        dict: Summary of released reservations.
    """
    from ats.services import expire_stale_reservations as expire

    try:
        now = timezone.now()
        released = expire()

        if released:
            security_logger.info(f"Released {released} expired interview reservations")

        return {
            'status': 'success',
            'released_count': released,
            'timestamp': now.isoformat(),
        }

    except SoftTimeLimitExceeded:
        logger.warning("Reservation expiry exceeded soft time limit")
        raise

    except Exception as e:
        logger.error(f"Error expiring reservations: {str(e)}")
        raise self.retry(exc=e)


# ==================== BOOKING RECONCILIATION ====================

@shared_task(
    bind=True,
    name='ats.tasks.reconcile_pending_bookings',
    max_retries=3,
    default_retry_delay=120,
    soft_time_limit=240,
    time_limit=280,
)
def reconcile_pending_bookings(self):
    """
    Look released interviews up at the booking provider and confirm or
    cancel bookings that went through after the caller stopped waiting.

    Returns:
        dict: Counts of confirmed, cancelled, released and errored interviews.
    """
    from ats.services import reconcile_pending_bookings as reconcile

    try:
        now = timezone.now()
        counts = reconcile()

        logger.info(
            f"Reconciled bookings: {counts['confirmed']} confirmed, "
            f"{counts['cancelled']} cancelled, {counts['released']} released, "
            f"{counts['errors']} errors"
        )

        return {
            'status': 'success',
            **counts,
            'timestamp': now.isoformat(),
        }

    except SoftTimeLimitExceeded:
        logger.warning("Booking reconciliation exceeded soft time limit")
        raise

    except Exception as e:
        logger.error(f"Error reconciling bookings: {str(e)}")
        raise self.retry(exc=e)
