"""
ATS Task Tests - periodic expiry and reconciliation tasks

Celery runs eagerly under hirematch.settings_test, so tasks execute in
process and exceptions propagate.
"""

from datetime import timedelta
from unittest.mock import patch

import pytest
from django.utils import timezone

from hirematch.celery import app
from integrations.providers.booking import CalComBookingProvider
from ats.models import InterviewStatus
from ats.tasks import expire_stale_reservations, reconcile_pending_bookings


@pytest.mark.booking
@pytest.mark.django_db
class TestBookingTasks:

    def test_expire_stale_reservations(self, interview_factory):
        interview = interview_factory(
            status='requested',
            external_booking_ref='',
            reserved_until=timezone.now() - timedelta(minutes=1),
        )

        result = expire_stale_reservations.delay().get()

        assert result['status'] == 'success'
        assert result['released_count'] == 1
        interview.refresh_from_db()
        assert interview.status == InterviewStatus.FAILED

    def test_expire_with_nothing_stale(self):
        result = expire_stale_reservations.apply().get()

        assert result['released_count'] == 0

    def test_reconcile_pending_bookings(self, interview_factory, booking_provider):
        interview_factory(
            status='failed',
            external_booking_ref='',
            reserved_until=timezone.now() - timedelta(minutes=1),
        )

        with patch.object(CalComBookingProvider, 'from_settings', return_value=booking_provider):
            result = reconcile_pending_bookings.delay().get()

        assert result['status'] == 'success'
        assert result['released'] == 1
        assert result['confirmed'] == 0

    @pytest.mark.parametrize('task', [expire_stale_reservations, reconcile_pending_bookings])
    def test_soft_limit_fires_before_hard_limit(self, task):
        assert task.soft_time_limit < task.time_limit
        assert task.time_limit <= app.conf.task_time_limit

    def test_task_names(self):
        assert expire_stale_reservations.name == 'ats.tasks.expire_stale_reservations'
        assert reconcile_pending_bookings.name == 'ats.tasks.reconcile_pending_bookings'
