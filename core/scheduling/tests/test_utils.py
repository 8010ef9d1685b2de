"""
Tests for scheduling utilities.

Author: HireMatch Team
"""

from datetime import datetime, timedelta, timezone as dt_timezone
from zoneinfo import ZoneInfo

from django.test import SimpleTestCase
from django.utils import timezone

from core.scheduling.exceptions import ValidationError
from core.scheduling.utils import (
    count_time_slots,
    ensure_aware,
    get_safe_timezone,
    intervals_overlap,
    iter_time_slots,
    to_utc,
    validate_time_slot,
    validate_timezone,
)


class TestValidateTimezone(SimpleTestCase):
    """Tests for validate_timezone function."""

    def test_common_timezone(self):
        self.assertTrue(validate_timezone('UTC'))
        self.assertTrue(validate_timezone('America/Toronto'))

    def test_uncommon_iana_timezone(self):
        self.assertTrue(validate_timezone('Africa/Nairobi'))

    def test_invalid_timezone(self):
        self.assertFalse(validate_timezone('Invalid/Timezone'))
        self.assertFalse(validate_timezone(''))
        self.assertFalse(validate_timezone(None))

    def test_safe_timezone_falls_back(self):
        self.assertEqual(get_safe_timezone('Not/AZone'), ZoneInfo('UTC'))

    def test_safe_timezone_raises_when_default_invalid(self):
        with self.assertRaises(ValueError):
            get_safe_timezone('Not/AZone', default='Also/Bad')


class TestTimezoneNormalization(SimpleTestCase):
    """Tests for ensure_aware and to_utc."""

    def test_naive_datetime_is_localized(self):
        dt = datetime(2026, 1, 20, 14, 0)
        aware = ensure_aware(dt, 'America/Toronto')

        self.assertEqual(aware.tzinfo, ZoneInfo('America/Toronto'))
        self.assertEqual(aware.hour, 14)

    def test_aware_datetime_passes_through(self):
        dt = datetime(2026, 1, 20, 14, 0, tzinfo=dt_timezone.utc)
        self.assertIs(ensure_aware(dt, 'America/Toronto'), dt)

    def test_to_utc(self):
        # 14:00 Toronto in January is 19:00 UTC
        converted = to_utc(datetime(2026, 1, 20, 14, 0), 'America/Toronto')

        self.assertEqual(converted, datetime(2026, 1, 20, 19, 0, tzinfo=dt_timezone.utc))


class TestValidateTimeSlot(SimpleTestCase):
    """Tests for validate_time_slot function."""

    def test_valid_time_slot(self):
        """Test validation of valid time slot."""
        start = timezone.now() + timedelta(hours=1)
        end = start + timedelta(hours=1)

        # Should not raise
        validate_time_slot(start, end)

    def test_start_after_end_raises_error(self):
        """Test that start after end raises ValidationError."""
        start = timezone.now() + timedelta(hours=2)
        end = start - timedelta(hours=1)

        with self.assertRaises(ValidationError) as ctx:
            validate_time_slot(start, end, field='preferred_slots')
        self.assertEqual(ctx.exception.field, 'preferred_slots')

    def test_zero_length_raises_error(self):
        start = timezone.now()

        with self.assertRaises(ValidationError):
            validate_time_slot(start, start)

    def test_missing_bound_raises_error(self):
        with self.assertRaises(ValidationError):
            validate_time_slot(None, timezone.now())

    def test_min_duration_validation(self):
        """Test minimum duration validation."""
        start = timezone.now() + timedelta(hours=1)
        end = start + timedelta(minutes=15)

        with self.assertRaises(ValidationError):
            validate_time_slot(start, end, min_duration=timedelta(minutes=30))

    def test_max_duration_validation(self):
        """Test maximum duration validation."""
        start = timezone.now() + timedelta(hours=1)
        end = start + timedelta(hours=3)

        with self.assertRaises(ValidationError):
            validate_time_slot(start, end, max_duration=timedelta(hours=2))


class TestIntervalsOverlap(SimpleTestCase):
    """Half-open overlap semantics."""

    def setUp(self):
        self.base = datetime(2026, 3, 2, tzinfo=dt_timezone.utc)

    def at(self, hour, minute=0):
        return self.base.replace(hour=hour, minute=minute)

    def test_partial_overlap(self):
        self.assertTrue(intervals_overlap(self.at(10), self.at(11), self.at(10, 30), self.at(11, 30)))

    def test_touching_intervals_do_not_overlap(self):
        self.assertFalse(intervals_overlap(self.at(10), self.at(11), self.at(11), self.at(12)))
        self.assertFalse(intervals_overlap(self.at(11), self.at(12), self.at(10), self.at(11)))

    def test_containment_overlaps(self):
        self.assertTrue(intervals_overlap(self.at(9), self.at(12), self.at(10), self.at(11)))


class TestIterTimeSlots(SimpleTestCase):
    """Tests for iter_time_slots and count_time_slots."""

    def setUp(self):
        self.start = datetime(2026, 3, 2, 10, 0, tzinfo=dt_timezone.utc)

    def test_two_hour_window_hourly_slots_half_hour_step(self):
        slots = list(iter_time_slots(
            self.start, self.start + timedelta(hours=2),
            duration=timedelta(minutes=60),
            step=timedelta(minutes=30),
        ))

        self.assertEqual([s.strftime('%H:%M') for s, _ in slots], ['10:00', '10:30', '11:00'])
        self.assertEqual(slots[-1][1], self.start + timedelta(hours=2))

    def test_window_shorter_than_duration(self):
        slots = list(iter_time_slots(
            self.start, self.start + timedelta(minutes=45),
            duration=timedelta(minutes=60),
            step=timedelta(minutes=30),
        ))
        self.assertEqual(slots, [])

    def test_count_matches_iteration(self):
        for window_minutes, duration, step in [(120, 60, 30), (480, 45, 15), (90, 30, 60), (30, 60, 30)]:
            window = timedelta(minutes=window_minutes)
            slots = list(iter_time_slots(
                self.start, self.start + window,
                duration=timedelta(minutes=duration),
                step=timedelta(minutes=step),
            ))
            self.assertEqual(
                len(slots),
                count_time_slots(window, timedelta(minutes=duration), timedelta(minutes=step)),
            )

    def test_non_positive_step_rejected(self):
        with self.assertRaises(ValidationError):
            list(iter_time_slots(
                self.start, self.start + timedelta(hours=1),
                duration=timedelta(minutes=30),
                step=timedelta(0),
            ))
